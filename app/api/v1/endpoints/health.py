"""Health check endpoints."""

import structlog
from fastapi import APIRouter, status
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError

from app.config import settings
from app.core.redis_client import check_redis_connection
from app.database import check_database_connection, column_available, table_available
from app.dependencies import DatabaseSession
from app.models.appointments import appointment_durations
from app.models.billing import payments

logger = structlog.get_logger(__name__)

router = APIRouter()

PRESENT = "present"
MISSING = "missing"
UNKNOWN = "unknown"


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    service: str
    version: str
    environment: str


class SchemaStatus(BaseModel):
    """Presence of schema pieces that later migrations add."""

    appointment_durations: str
    payment_approval_column: str


class DetailedHealthResponse(BaseModel):
    """Detailed health check response model."""

    status: str
    version: str
    environment: str
    database: str
    redis: str
    schema_status: SchemaStatus
    migrations_pending: bool


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    tags=["Health"],
    summary="Basic health check",
)
async def health_check() -> HealthResponse:
    """Liveness of the portal API."""
    return HealthResponse(
        status="healthy",
        service=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
    )


async def _schema_status(db: DatabaseSession) -> SchemaStatus:
    """
    Check the optional schema pieces the portal falls back around.

    The duration store and the dedicated approval column are read when
    present; without them durations live on the appointment row and
    approvals are derived from payment notes.
    """
    try:
        durations = await table_available(db, appointment_durations)
        approval = await column_available(db, payments.c.approval_status)
    except SQLAlchemyError as e:
        logger.warning("schema_check_failed", error=str(e))
        return SchemaStatus(appointment_durations=UNKNOWN, payment_approval_column=UNKNOWN)

    return SchemaStatus(
        appointment_durations=PRESENT if durations else MISSING,
        payment_approval_column=PRESENT if approval else MISSING,
    )


@router.get(
    "/health/detailed",
    response_model=DetailedHealthResponse,
    status_code=status.HTTP_200_OK,
    tags=["Health"],
    summary="Detailed health check",
)
async def detailed_health_check(db: DatabaseSession) -> DetailedHealthResponse:
    """
    Detailed health check with database, Redis and schema status.

    Returns:
        Dependency health and which migrations have not been applied
    """
    db_healthy = await check_database_connection()
    redis_healthy = await check_redis_connection()

    if db_healthy:
        schema = await _schema_status(db)
    else:
        schema = SchemaStatus(appointment_durations=UNKNOWN, payment_approval_column=UNKNOWN)
    pending = MISSING in (schema.appointment_durations, schema.payment_approval_column)
    if pending:
        logger.info("migrations_pending", **schema.model_dump())

    return DetailedHealthResponse(
        status="healthy" if db_healthy and redis_healthy else "degraded",
        version=settings.app_version,
        environment=settings.environment,
        database="healthy" if db_healthy else "unhealthy",
        redis="healthy" if redis_healthy else "unhealthy",
        schema_status=schema,
        migrations_pending=pending,
    )


@router.get(
    "/ping",
    status_code=status.HTTP_200_OK,
    tags=["Health"],
    summary="Simple ping",
)
async def ping() -> dict[str, str]:
    return {"message": "pong"}
