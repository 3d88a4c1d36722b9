"""Service catalog and doctor pricing."""

from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

import structlog
from sqlalchemy import delete, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import NotFoundException
from app.core.redis_client import CacheManager
from app.models.services import doctor_service_pricing, services
from app.schemas.services import DoctorPricingResponse, ServiceCreate, ServiceResponse

logger = structlog.get_logger(__name__)

SERVICES_CACHE_KEY = "services:list"

# Displayed price range when none is given
PRICE_MIN_FACTOR = Decimal("0.8")
PRICE_MAX_FACTOR = Decimal("1.2")


def default_price_range(
    price: Decimal,
    price_min: Decimal | None = None,
    price_max: Decimal | None = None,
) -> tuple[Decimal, Decimal]:
    """Fill a missing price range with whole amounts 20% around the price."""
    if not price_min:
        price_min = (price * PRICE_MIN_FACTOR).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    if not price_max:
        price_max = (price * PRICE_MAX_FACTOR).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return price_min, price_max


class CatalogService:
    """Service for the clinic's service catalog."""

    def __init__(self, db: AsyncSession, cache_manager: CacheManager | None = None):
        """Initialize service with database session and optional cache."""
        self.db = db
        self.cache = cache_manager

    def _invalidate(self) -> None:
        if self.cache:
            self.cache.delete(SERVICES_CACHE_KEY)

    def _values(self, data: ServiceCreate) -> dict:
        price_min, price_max = default_price_range(data.price, data.price_min, data.price_max)
        return {
            "name": data.name,
            "description": data.description,
            "category": data.category,
            "price": data.price,
            "price_min": price_min,
            "price_max": price_max,
            "duration": data.duration,
        }

    async def list_services(self) -> list[ServiceResponse]:
        """List catalog services ordered by name, served from cache when possible."""
        if self.cache:
            cached = self.cache.get_json(SERVICES_CACHE_KEY)
            if cached is not None:
                return [ServiceResponse.model_validate(item) for item in cached]

        result = await self.db.execute(select(services).order_by(services.c.name))
        items = [ServiceResponse.model_validate(dict(row)) for row in result.mappings().all()]

        if self.cache:
            self.cache.set_json(
                SERVICES_CACHE_KEY,
                [item.model_dump(mode="json") for item in items],
                ttl=settings.services_cache_ttl,
            )

        return items

    async def get_service(self, service_id: UUID) -> ServiceResponse:
        """
        Get a catalog service.

        Raises:
            NotFoundException: If the service does not exist
        """
        result = await self.db.execute(select(services).where(services.c.id == service_id))
        row = result.mappings().first()
        if not row:
            raise NotFoundException("Service not found")
        return ServiceResponse.model_validate(dict(row))

    async def create_service(self, data: ServiceCreate) -> ServiceResponse:
        """Add a service to the catalog."""
        stmt = insert(services).values(**self._values(data)).returning(services)
        result = await self.db.execute(stmt)
        await self.db.commit()
        self._invalidate()

        row = result.mappings().first()
        logger.info("service_created", service_id=str(row["id"]), name=row["name"])
        return ServiceResponse.model_validate(dict(row))

    async def update_service(self, service_id: UUID, data: ServiceCreate) -> ServiceResponse:
        """Replace a catalog entry."""
        stmt = (
            update(services)
            .where(services.c.id == service_id)
            .values(**self._values(data), updated_at=datetime.now(UTC))
            .returning(services)
        )
        result = await self.db.execute(stmt)
        row = result.mappings().first()
        if not row:
            await self.db.rollback()
            raise NotFoundException("Service not found")

        await self.db.commit()
        self._invalidate()
        return ServiceResponse.model_validate(dict(row))

    async def delete_service(self, service_id: UUID) -> None:
        """Remove a service and the doctor prices attached to it."""
        await self.get_service(service_id)

        await self.db.execute(
            delete(doctor_service_pricing).where(doctor_service_pricing.c.service_id == service_id)
        )
        await self.db.execute(delete(services).where(services.c.id == service_id))
        await self.db.commit()
        self._invalidate()
        logger.info("service_deleted", service_id=str(service_id))

    async def list_doctor_pricing(self, doctor_id: UUID) -> list[DoctorPricingResponse]:
        """Prices a doctor has set for catalog services."""
        result = await self.db.execute(
            select(doctor_service_pricing).where(doctor_service_pricing.c.doctor_id == doctor_id)
        )
        return [DoctorPricingResponse.model_validate(dict(row)) for row in result.mappings().all()]

    async def set_doctor_price(
        self, doctor_id: UUID, service_id: UUID, price: Decimal
    ) -> DoctorPricingResponse:
        """Insert or update a doctor's price for a service."""
        await self.get_service(service_id)

        existing = await self.db.execute(
            select(doctor_service_pricing.c.id).where(
                doctor_service_pricing.c.doctor_id == doctor_id,
                doctor_service_pricing.c.service_id == service_id,
            )
        )
        pricing_id = existing.scalar_one_or_none()

        if pricing_id is not None:
            stmt = (
                update(doctor_service_pricing)
                .where(doctor_service_pricing.c.id == pricing_id)
                .values(price=price, updated_at=datetime.now(UTC))
            )
        else:
            stmt = insert(doctor_service_pricing).values(
                doctor_id=doctor_id, service_id=service_id, price=price
            )
        await self.db.execute(stmt)
        await self.db.commit()

        return DoctorPricingResponse(doctor_id=doctor_id, service_id=service_id, price=price)
