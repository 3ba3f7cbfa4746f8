"""Service catalog and service request routers"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from .schemas import (
    AdminResponseCreate,
    ClientFeedbackCreate,
    ServiceCreate,
    ServiceRequestCreate,
    ServiceRequestDetail,
    ServiceRequestReject,
    ServiceRequestResponse,
    ServiceResponse,
    ServiceUpdate,
)
from .service import ServiceCatalogService

router = APIRouter(prefix="/services", tags=["Service Catalog"])
requests_router = APIRouter(prefix="/service-requests", tags=["Service Requests"])


def get_catalog_service(db: Session = Depends(get_db)) -> ServiceCatalogService:
    return ServiceCatalogService(db)


# ============================================================================
# CATALOG
# ============================================================================


@router.get("", response_model=list[ServiceResponse])
async def list_services(
    category: Optional[str] = Query(None),
    is_active: Optional[bool] = Query(None),
    current_user: User = Depends(get_current_user),
    service: ServiceCatalogService = Depends(get_catalog_service),
):
    return service.list_services(current_user, category, is_active)


@router.post("", response_model=ServiceResponse, status_code=201)
async def create_service(
    data: ServiceCreate,
    current_user: User = Depends(get_current_user),
    service: ServiceCatalogService = Depends(get_catalog_service),
):
    return service.create_service(current_user, data)


@router.get("/{service_id}", response_model=ServiceResponse)
async def get_service(
    service_id: int,
    current_user: User = Depends(get_current_user),
    service: ServiceCatalogService = Depends(get_catalog_service),
):
    return service.get_service(service_id, current_user)


@router.patch("/{service_id}", response_model=ServiceResponse)
async def update_service(
    service_id: int,
    data: ServiceUpdate,
    current_user: User = Depends(get_current_user),
    service: ServiceCatalogService = Depends(get_catalog_service),
):
    return service.update_service(service_id, current_user, data)


@router.delete("/{service_id}")
async def delete_service(
    service_id: int,
    current_user: User = Depends(get_current_user),
    service: ServiceCatalogService = Depends(get_catalog_service),
):
    return service.delete_service(service_id, current_user)


# ============================================================================
# REQUESTS
# ============================================================================


@requests_router.get("", response_model=list[ServiceRequestResponse])
async def list_requests(
    status: Optional[str] = Query(None),
    organization_id: Optional[int] = Query(None),
    current_user: User = Depends(get_current_user),
    service: ServiceCatalogService = Depends(get_catalog_service),
):
    return service.list_requests(current_user, status, organization_id)


@requests_router.post("", response_model=ServiceRequestResponse, status_code=201)
async def create_request(
    data: ServiceRequestCreate,
    current_user: User = Depends(get_current_user),
    service: ServiceCatalogService = Depends(get_catalog_service),
):
    return service.create_request(current_user, data)


@requests_router.get("/{request_id}", response_model=ServiceRequestDetail)
async def get_request(
    request_id: int,
    current_user: User = Depends(get_current_user),
    service: ServiceCatalogService = Depends(get_catalog_service),
):
    return service.get_request(request_id, current_user)


@requests_router.post("/{request_id}/respond", response_model=ServiceRequestDetail)
async def respond_to_request(
    request_id: int,
    data: AdminResponseCreate,
    current_user: User = Depends(get_current_user),
    service: ServiceCatalogService = Depends(get_catalog_service),
):
    return service.respond(request_id, current_user, data)


@requests_router.post("/{request_id}/feedback", response_model=ServiceRequestDetail)
async def submit_feedback(
    request_id: int,
    data: ClientFeedbackCreate,
    current_user: User = Depends(get_current_user),
    service: ServiceCatalogService = Depends(get_catalog_service),
):
    return service.submit_feedback(request_id, current_user, data)


@requests_router.post("/{request_id}/reject", response_model=ServiceRequestResponse)
async def reject_request(
    request_id: int,
    data: ServiceRequestReject,
    current_user: User = Depends(get_current_user),
    service: ServiceCatalogService = Depends(get_catalog_service),
):
    return service.reject(request_id, current_user, data.reason)


@requests_router.post("/{request_id}/cancel", response_model=ServiceRequestResponse)
async def cancel_request(
    request_id: int,
    current_user: User = Depends(get_current_user),
    service: ServiceCatalogService = Depends(get_catalog_service),
):
    return service.cancel(request_id, current_user)


@requests_router.post("/{request_id}/convert", response_model=ServiceRequestResponse)
async def convert_request(
    request_id: int,
    current_user: User = Depends(get_current_user),
    service: ServiceCatalogService = Depends(get_catalog_service),
):
    """Turn an approved request into a ticket"""
    return await service.convert_to_ticket(request_id, current_user)
