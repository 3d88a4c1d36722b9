"""Database models."""

from app.models import appointments as _appointments
from app.models import billing as _billing
from app.models import profiles as _profiles
from app.models import services as _services
from app.models.appointments import (
    appointment_durations,
    appointment_services,
    appointments,
)
from app.models.billing import invoice_items, invoices, payments
from app.models.profiles import profiles
from app.models.services import doctor_service_pricing, services

# Every table module keeps its own MetaData
all_metadata = [
    _profiles.metadata,
    _services.metadata,
    _appointments.metadata,
    _billing.metadata,
]

__all__ = [
    "all_metadata",
    "appointment_durations",
    "appointment_services",
    "appointments",
    "doctor_service_pricing",
    "invoice_items",
    "invoices",
    "payments",
    "profiles",
    "services",
]
