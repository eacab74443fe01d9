"""FastAPI application entry point for ContextGuard.

Mounts the organization-scoped context router plus liveness and version
endpoints. Module loggers use stdlib ``logging``; their records are routed
through structlog so every line carries the bound request id.
"""

import logging

import structlog
from fastapi import FastAPI, Request
from sqlalchemy import text

from contextguard.api.context import router as context_router
from contextguard.config.settings import Environment, Settings, get_settings
from contextguard.context.serializer import SCHEMA_VERSION
from contextguard.db.session import get_session_factory
from contextguard.models.common import new_uuid7

APP_VERSION = "0.1.0"

settings = get_settings()


def configure_logging(config: Settings) -> None:
    """Render stdlib and structlog records through one structlog pipeline."""
    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    renderer = (
        structlog.dev.ConsoleRenderer()
        if config.ENVIRONMENT == Environment.DEV
        else structlog.processors.JSONRenderer()
    )
    structlog.configure(
        processors=[*shared_processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler()
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
    ))
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(config.LOG_LEVEL.value)


configure_logging(settings)

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

app = FastAPI(
    title="ContextGuard API",
    description="Role-filtered, audited contact context for AI prompts.",
    version=APP_VERSION,
)

# Organization-scoped: /v1/organizations/{organization_id}/contacts/{contact_id}/context
app.include_router(context_router)


@app.middleware("http")
async def bind_request_id(request: Request, call_next):
    """Bind a request id to every log line emitted while serving the request."""
    request_id = request.headers.get("x-request-id") or str(new_uuid7())
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id, path=request.url.path)
    response = await call_next(request)
    response.headers["X-Request-Id"] = request_id
    return response


@app.get("/health")
async def health_check() -> dict:
    """Liveness check. Always 200; reports "degraded" when the database is down."""
    checks: dict[str, bool] = {"api": True}
    try:
        async with get_session_factory()() as session:
            await session.execute(text("SELECT 1"))
        checks["database"] = True
    except Exception:
        logger.warning("health_check.database_unreachable", exc_info=True)
        checks["database"] = False

    return {
        "status": "ok" if all(checks.values()) else "degraded",
        "version": APP_VERSION,
        "environment": settings.ENVIRONMENT.value,
        "checks": checks,
    }


@app.get("/api/version")
async def get_version() -> dict[str, str]:
    return {
        "name": "ContextGuard",
        "version": APP_VERSION,
        "contextSchemaVersion": SCHEMA_VERSION,
        "environment": settings.ENVIRONMENT.value,
    }
