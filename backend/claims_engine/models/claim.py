from datetime import datetime
from decimal import Decimal

from sqlalchemy import String, Boolean, DateTime, Integer, Numeric, ForeignKey, JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from claims_engine.database import Base, utcnow
from claims_engine.enums import ClaimStatus, VALID_TRANSITIONS
from claims_engine.errors import IllegalTransition, ValidationError


class Claim(Base):
    __tablename__ = "claims"

    id: Mapped[int] = mapped_column(primary_key=True)
    claim_id: Mapped[str] = mapped_column(String(30), unique=True, index=True)
    policy_id: Mapped[str] = mapped_column(String(64), index=True)
    claimant_name: Mapped[str] = mapped_column(String(200), index=True)
    claimant_age: Mapped[int | None] = mapped_column(Integer, nullable=True)
    claimed_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    status: Mapped[str] = mapped_column(String(20), default=ClaimStatus.PENDING.value, index=True)
    # Risk annotation, populated from the latest fraud assessment
    risk_score: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
    risk_level: Mapped[str | None] = mapped_column(String(10), nullable=True, index=True)
    risk_reasons: Mapped[list] = mapped_column(JSON, default=list)
    validated: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    attachments: Mapped[list["ClaimAttachment"]] = relationship(
        back_populates="claim", order_by="ClaimAttachment.id", cascade="all, delete-orphan", lazy="selectin",
    )

    # UPDATE ... WHERE version = :loaded_version; a zero rowcount raises StaleDataError
    __mapper_args__ = {"version_id_col": version}

    @validates("claimed_amount")
    def _freeze_amount(self, key, value):
        if self.claimed_amount is not None and Decimal(str(value)) != self.claimed_amount:
            raise ValidationError(
                "claimed amount is immutable after creation",
                {"claimed_amount": "cannot be changed"},
            )
        return value

    @validates("status")
    def _check_transition(self, key, value):
        value = ClaimStatus(value).value
        current = self.status
        if current is None:
            return value
        if ClaimStatus(value) not in VALID_TRANSITIONS[ClaimStatus(current)]:
            raise IllegalTransition(self.claim_id, current, value)
        return value


class ClaimAttachment(Base):
    __tablename__ = "claim_attachments"

    id: Mapped[int] = mapped_column(primary_key=True)
    claim_pk: Mapped[int] = mapped_column(ForeignKey("claims.id"), index=True)
    filename: Mapped[str] = mapped_column(String(255))
    content_type: Mapped[str] = mapped_column(String(120))
    storage_handle: Mapped[str] = mapped_column(String(255))
    document_type: Mapped[str] = mapped_column(String(30), default="bill_receipt")
    size_bytes: Mapped[int] = mapped_column(Integer, default=0)
    uploaded_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    claim: Mapped[Claim] = relationship(back_populates="attachments")
