from pydantic import model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Database
    database_url: str = "sqlite+aiosqlite:///./claims.db"
    db_echo: bool = False

    # App
    environment: str = "development"
    log_level: str = "INFO"
    log_format: str = "text"  # "text" | "json"
    allowed_origins: str = "http://localhost:3000,http://localhost:5173,http://localhost"

    # External risk score service
    risk_service_url: str | None = None
    risk_score_timeout_seconds: float = 2.0
    default_risk_score: float = 0.0

    # Fraud scoring
    duplicate_window_days: int = 30
    duplicate_amount_tolerance: float = 0.01
    duplicate_score_floor: float = 85.0

    # Optimistic concurrency
    cas_max_retries: int = 3

    # Attachments
    blob_storage_dir: str = "./blobs"
    max_attachment_bytes: int = 10 * 1024 * 1024
    allowed_attachment_types: str = (
        "application/pdf,image/png,image/jpeg,"
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
    )

    # Rule catalog
    seed_default_rules: bool = True

    model_config = {"env_file": ".env", "extra": "ignore"}

    @property
    def attachment_types(self) -> set[str]:
        return {t.strip() for t in self.allowed_attachment_types.split(",") if t.strip()}

    @model_validator(mode="after")
    def _validate_production(self):
        if self.environment == "production":
            if self.database_url.startswith("sqlite"):
                raise ValueError(
                    "Production requires a server database, not the SQLite dev file"
                )
        if self.risk_score_timeout_seconds <= 0:
            raise ValueError("risk_score_timeout_seconds must be positive")
        if self.cas_max_retries < 1:
            raise ValueError("cas_max_retries must be at least 1")
        return self


settings = Settings()
