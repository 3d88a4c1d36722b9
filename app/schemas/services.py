"""Service catalog schemas."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field, field_serializer


class ServiceBase(BaseModel):
    """Common service fields."""

    name: str = Field(..., min_length=1, max_length=200)
    description: str | None = None
    category: str = Field(default="general", max_length=100)
    price: Decimal = Field(..., gt=0)
    price_min: Decimal | None = Field(None, ge=0)
    price_max: Decimal | None = Field(None, ge=0)
    duration: int = Field(default=30, ge=5, le=480, description="Typical length in minutes")


class ServiceCreate(ServiceBase):
    """Schema for adding a service to the catalog."""


class ServiceUpdate(ServiceBase):
    """Schema for replacing a catalog entry."""


class ServiceResponse(ServiceBase):
    """Catalog entry."""

    id: UUID
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @field_serializer("price", "price_min", "price_max", when_used="json")
    def serialize_decimal(self, value: Decimal | None) -> float | None:
        """Serialize Decimal to float for JSON."""
        return float(value) if value is not None else None


class DoctorPricingUpdate(BaseModel):
    """A doctor's own price for a service."""

    price: Decimal = Field(..., gt=0)


class DoctorPricingResponse(BaseModel):
    """Doctor price override."""

    doctor_id: UUID
    service_id: UUID
    price: Decimal

    @field_serializer("price", when_used="json")
    def serialize_price(self, value: Decimal) -> float:
        return float(value)
