import logging
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from claims_engine.config import settings
from claims_engine.database import async_session, create_schema, engine
from claims_engine.errors import ClaimsEngineError
from claims_engine.middleware.logging_config import configure_logging

configure_logging(settings.log_level, settings.log_format)

from claims_engine.api.audit import router as audit_router  # noqa: E402
from claims_engine.api.claims import router as claims_router  # noqa: E402
from claims_engine.api.deps import build_services  # noqa: E402
from claims_engine.api.metrics import router as metrics_router  # noqa: E402
from claims_engine.api.rules import router as rules_router  # noqa: E402

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Production schemas come from Alembic; the SQLite dev database is created in place
    if settings.database_url.startswith("sqlite"):
        await create_schema()

    if getattr(app.state, "services", None) is None:
        app.state.services = build_services(async_session)
    services = app.state.services

    if settings.seed_default_rules:
        await services.catalog.seed_defaults()
    counts = await services.aggregator.reconcile()
    logger.info("Claims engine started (%s): %s", settings.environment, counts.as_dict())
    yield
    await engine.dispose()


app = FastAPI(
    title="Claims Engine",
    description="Claim lifecycle, rule evaluation and fraud scoring",
    version="0.1.0",
    lifespan=lifespan,
)

# ── CORS ─────────────────────────────────────────────────────────────────────
origins = [o.strip() for o in settings.allowed_origins.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH"],
    allow_headers=["Content-Type", "Authorization", "X-Request-ID", "X-Actor"],
)

# ── Request context middleware (request ID + timing) ─────────────────────────
from claims_engine.middleware.request_context import RequestContextMiddleware  # noqa: E402

app.add_middleware(RequestContextMiddleware)

# ── Prometheus metrics middleware ────────────────────────────────────────────
from claims_engine.middleware.metrics import PrometheusMiddleware  # noqa: E402

app.add_middleware(PrometheusMiddleware)


@app.exception_handler(ClaimsEngineError)
async def claims_engine_error_handler(request: Request, exc: ClaimsEngineError):
    if exc.http_status >= 500:
        logger.error("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.http_status, content=exc.to_dict())


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Return detailed error info in development mode so 500s are debuggable."""
    tb = traceback.format_exc()
    logger.error(
        "Unhandled %s on %s %s: %s\n%s",
        type(exc).__name__, request.method, request.url.path, exc, tb,
    )
    if settings.environment == "development":
        return JSONResponse(
            status_code=500,
            content={"code": "internal_error", "detail": f"{type(exc).__name__}: {exc}",
                     "traceback": tb.splitlines()[-5:]},
        )
    return JSONResponse(status_code=500, content={"code": "internal_error", "detail": "Internal Server Error"})


app.include_router(claims_router)
app.include_router(rules_router)
app.include_router(audit_router)
app.include_router(metrics_router)


@app.get("/api/health")
async def health_check(request: Request):
    components: dict = {}

    sessionmaker = request.app.state.services.store.sessionmaker
    try:
        async with sessionmaker() as session:
            await session.execute(text("SELECT 1"))
        components["database"] = {"status": "connected"}
    except Exception as exc:
        components["database"] = {"status": "disconnected", "error": str(exc)}

    components["risk_service"] = (
        {"status": "configured", "url": settings.risk_service_url}
        if settings.risk_service_url
        else {"status": "static", "score": settings.default_risk_score}
    )

    overall = "healthy" if components["database"]["status"] == "connected" else "unhealthy"
    return {"status": overall, "environment": settings.environment, "components": components}
