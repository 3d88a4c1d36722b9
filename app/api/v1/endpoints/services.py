"""Service catalog endpoints."""

from uuid import UUID

from fastapi import APIRouter, status

from app.dependencies import (
    AdminUser,
    CacheManagerDep,
    CurrentUser,
    DatabaseSession,
    DoctorUser,
)
from app.schemas.services import (
    DoctorPricingResponse,
    DoctorPricingUpdate,
    ServiceCreate,
    ServiceResponse,
    ServiceUpdate,
)
from app.services.catalog_service import CatalogService

router = APIRouter()


@router.get("/", response_model=list[ServiceResponse], summary="List services")
async def list_services(
    db: DatabaseSession,
    cache_manager: CacheManagerDep,
    current_user: CurrentUser,
) -> list[ServiceResponse]:
    """List the clinic's services ordered by name."""
    return await CatalogService(db, cache_manager).list_services()


@router.post(
    "/",
    response_model=ServiceResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add a service",
)
async def create_service(
    data: ServiceCreate,
    db: DatabaseSession,
    cache_manager: CacheManagerDep,
    admin_user: AdminUser,
) -> ServiceResponse:
    """Add a service to the catalog. Missing price bounds default to ±20%."""
    return await CatalogService(db, cache_manager).create_service(data)


@router.get(
    "/pricing/me",
    response_model=list[DoctorPricingResponse],
    summary="List my service prices",
)
async def list_my_pricing(db: DatabaseSession, doctor: DoctorUser) -> list[DoctorPricingResponse]:
    """Prices the signed-in doctor has set."""
    return await CatalogService(db).list_doctor_pricing(doctor["id"])


@router.put("/{service_id}", response_model=ServiceResponse, summary="Update a service")
async def update_service(
    service_id: UUID,
    data: ServiceUpdate,
    db: DatabaseSession,
    cache_manager: CacheManagerDep,
    admin_user: AdminUser,
) -> ServiceResponse:
    """Replace a catalog entry."""
    return await CatalogService(db, cache_manager).update_service(service_id, data)


@router.delete(
    "/{service_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a service",
)
async def delete_service(
    service_id: UUID,
    db: DatabaseSession,
    cache_manager: CacheManagerDep,
    admin_user: AdminUser,
) -> None:
    """Remove a service from the catalog."""
    await CatalogService(db, cache_manager).delete_service(service_id)


@router.put(
    "/{service_id}/pricing",
    response_model=DoctorPricingResponse,
    summary="Set my price for a service",
)
async def set_my_price(
    service_id: UUID,
    data: DoctorPricingUpdate,
    db: DatabaseSession,
    doctor: DoctorUser,
) -> DoctorPricingResponse:
    """Set the signed-in doctor's price for a service."""
    return await CatalogService(db).set_doctor_price(doctor["id"], service_id, data.price)
