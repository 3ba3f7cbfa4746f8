"""
Service catalog service

Agency staff publish services to every client (organization_id NULL) or to a
single organization. Clients request a service; the request then moves through
a response thread:

    pending -> responded -> approved -> converted (into a ticket)
    pending | responded -> rejected (agency) or cancelled (requester)

Services that do not require approval are approved on request.
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...audit import log_action
from ...models import User
from ...models_service import Service, ServiceRequest, ServiceRequestResponse
from ...permissions import ensure_permission, is_privileged
from ...scoping import accessible_organization_ids, ensure_org_access
from ...services.notification_service import create_in_app_notification
from ..tickets.schemas import TicketCreate
from ..tickets.service import TicketService
from .repository import ServiceCatalogRepository
from .schemas import (
    AdminResponseCreate,
    ClientFeedbackCreate,
    ServiceCreate,
    ServiceRequestCreate,
    ServiceUpdate,
)

logger = logging.getLogger(__name__)

OPEN_REQUEST_STATUSES = ("pending", "responded")

# Request priorities mapped onto ticket priorities on conversion
TICKET_PRIORITY = {"urgent": "critical", "high": "high", "medium": "medium", "low": "low"}


class ServiceCatalogService:
    def __init__(self, db: Session):
        self.db = db
        self.repo = ServiceCatalogRepository()

    # ========================================================================
    # CATALOG
    # ========================================================================

    def _catalog_org_ids(self, user: User) -> Optional[set[int]]:
        if is_privileged(user):
            return accessible_organization_ids(self.db, user)
        return {user.organization_id} if user.organization_id else set()

    def list_services(
        self, user: User, category: Optional[str] = None, is_active: Optional[bool] = None
    ) -> list[Service]:
        ensure_permission(self.db, user, "services.view")
        if not is_privileged(user):
            is_active = True
        return self.repo.list_services(self.db, self._catalog_org_ids(user), category, is_active)

    def get_service(self, service_id: int, user: User) -> Service:
        ensure_permission(self.db, user, "services.view")
        service = self.repo.get_service(self.db, service_id)
        if not service:
            raise HTTPException(status_code=404, detail="Service not found")
        org_ids = self._catalog_org_ids(user)
        out_of_scope = (
            service.organization_id is not None and org_ids is not None and service.organization_id not in org_ids
        )
        if out_of_scope or (not is_privileged(user) and not service.is_active):
            raise HTTPException(status_code=404, detail="Service not found")
        return service

    def create_service(self, user: User, data: ServiceCreate) -> Service:
        ensure_permission(self.db, user, "services.create")
        if data.organization_id is not None:
            ensure_org_access(self.db, user, data.organization_id)

        service = Service(**data.model_dump(), created_by=user.id)
        self.db.add(service)
        self.db.commit()
        self.db.refresh(service)
        log_action(
            self.db, user, "service.create", "service", service.id, organization_id=service.organization_id
        )
        logger.info(f"✅ Service '{service.name}' added to the catalog by user {user.id}")
        return service

    def update_service(self, service_id: int, user: User, data: ServiceUpdate) -> Service:
        ensure_permission(self.db, user, "services.update")
        service = self.get_service(service_id, user)
        updates = data.model_dump(exclude_unset=True)

        if "organization_id" in updates:
            if user.role != "super_admin":
                raise HTTPException(status_code=403, detail="Only super admins can move services between organizations")
            if updates["organization_id"] is not None:
                ensure_org_access(self.db, user, updates["organization_id"])

        for field, value in updates.items():
            if value is None and field not in ("description", "category", "base_rate", "rate_type",
                                               "estimated_hours", "organization_id"):
                continue
            setattr(service, field, value)
        self.db.commit()
        self.db.refresh(service)
        return service

    def delete_service(self, service_id: int, user: User) -> dict:
        ensure_permission(self.db, user, "services.update")
        service = self.get_service(service_id, user)
        if self.repo.count_requests(self.db, service.id):
            raise HTTPException(
                status_code=409, detail="Service has requests; deactivate it instead of deleting"
            )
        organization_id = service.organization_id
        self.db.delete(service)
        self.db.commit()
        log_action(self.db, user, "service.delete", "service", service_id, organization_id=organization_id)
        return {"message": "Service deleted"}

    # ========================================================================
    # REQUESTS
    # ========================================================================

    def list_requests(
        self, user: User, status: Optional[str] = None, organization_id: Optional[int] = None
    ) -> list[ServiceRequest]:
        ensure_permission(self.db, user, "services.view")
        if organization_id:
            ensure_org_access(self.db, user, organization_id)
        requested_by = None if is_privileged(user) else user.id
        org_ids = accessible_organization_ids(self.db, user)
        return self.repo.list_requests(self.db, org_ids, requested_by, status, organization_id)

    def get_request(self, request_id: int, user: User) -> ServiceRequest:
        request = self.repo.get_request(self.db, request_id)
        if not request:
            raise HTTPException(status_code=404, detail="Service request not found")
        ensure_org_access(self.db, user, request.organization_id)
        if not is_privileged(user) and request.requested_by != user.id:
            raise HTTPException(status_code=404, detail="Service request not found")
        return request

    def create_request(self, user: User, data: ServiceRequestCreate) -> ServiceRequest:
        ensure_permission(self.db, user, "services.view")
        if is_privileged(user):
            organization_id = data.organization_id or user.organization_id
        else:
            organization_id = user.organization_id
            if data.organization_id and data.organization_id != organization_id:
                raise HTTPException(status_code=403, detail="Clients can only request services for their organization")
        if not organization_id:
            raise HTTPException(status_code=400, detail="An organization is required to request a service")
        ensure_org_access(self.db, user, organization_id)

        service = self.repo.get_service(self.db, data.service_id)
        if not service or (service.organization_id is not None and service.organization_id != organization_id):
            raise HTTPException(status_code=404, detail="Service not found")
        if not service.is_active:
            raise HTTPException(status_code=400, detail="Service is not available")

        request = ServiceRequest(
            organization_id=organization_id,
            service_id=service.id,
            requested_by=user.id,
            details=data.details,
            requested_start_date=data.requested_start_date,
            priority=data.priority,
            status="pending",
        )
        if not service.requires_approval:
            request.status = "approved"
            request.approved_at = datetime.utcnow()
        self.db.add(request)
        self.db.commit()
        self.db.refresh(request)

        log_action(
            self.db,
            user,
            "service_request.create",
            "service_request",
            request.id,
            details={"service": service.name, "status": request.status},
            organization_id=organization_id,
        )
        logger.info(f"✅ Service request {request.id} for '{service.name}' created ({request.status})")
        return request

    def _add_response(
        self,
        request: ServiceRequest,
        user: User,
        response_type: str,
        text: str,
        metadata: Optional[dict] = None,
        is_approval: bool = False,
    ) -> ServiceRequestResponse:
        entry = ServiceRequestResponse(
            service_request_id=request.id,
            responder_id=user.id,
            response_type=response_type,
            response_text=text,
            response_metadata=metadata or {},
            is_approval=is_approval,
        )
        self.db.add(entry)
        request.latest_response_at = datetime.utcnow()
        request.latest_response_by = user.id
        request.response_count = (request.response_count or 0) + 1
        return entry

    def _notify(self, user_id: Optional[int], request: ServiceRequest, title: str, message: str) -> None:
        if not user_id:
            return
        create_in_app_notification(
            self.db,
            user_id,
            "service_request_update",
            title,
            message=message,
            link=f"/service-requests/{request.id}",
            organization_id=request.organization_id,
            data={"service_request_id": request.id, "status": request.status},
            commit=False,
        )

    def respond(self, request_id: int, user: User, data: AdminResponseCreate) -> ServiceRequest:
        ensure_permission(self.db, user, "services.approve")
        request = self.get_request(request_id, user)
        if request.status not in OPEN_REQUEST_STATUSES:
            raise HTTPException(status_code=400, detail=f"Cannot respond to a {request.status} request")

        self._add_response(request, user, "admin_response", data.response_text, data.response_metadata)
        request.status = "responded"
        self._notify(
            request.requested_by,
            request,
            f"Update on your {request.service.name} request",
            data.response_text[:200],
        )
        self.db.commit()
        self.db.refresh(request)
        logger.info(f"💬 Service request {request.id} answered by user {user.id}")
        return request

    def submit_feedback(self, request_id: int, user: User, data: ClientFeedbackCreate) -> ServiceRequest:
        request = self.get_request(request_id, user)
        if request.requested_by != user.id:
            raise HTTPException(status_code=403, detail="Only the requester can reply to this request")
        if request.status != "responded":
            raise HTTPException(
                status_code=400, detail=f"Cannot give feedback on a {request.status} request; wait for a response"
            )

        agency_responder = request.latest_response_by
        self._add_response(request, user, "client_feedback", data.response_text, is_approval=data.is_approval)
        if data.is_approval:
            request.status = "approved"
            request.approved_by = user.id
            request.approved_at = datetime.utcnow()
        self._notify(
            agency_responder,
            request,
            f"{request.service.name} request {'approved' if data.is_approval else 'has client feedback'}",
            data.response_text[:200],
        )
        self.db.commit()
        self.db.refresh(request)

        log_action(
            self.db,
            user,
            "service_request.approve" if data.is_approval else "service_request.feedback",
            "service_request",
            request.id,
            organization_id=request.organization_id,
        )
        return request

    def reject(self, request_id: int, user: User, reason: str) -> ServiceRequest:
        ensure_permission(self.db, user, "services.approve")
        request = self.get_request(request_id, user)
        if request.status not in OPEN_REQUEST_STATUSES:
            raise HTTPException(status_code=400, detail=f"Cannot reject a {request.status} request")

        request.status = "rejected"
        request.rejection_reason = reason
        self._notify(request.requested_by, request, f"{request.service.name} request declined", reason[:200])
        self.db.commit()
        self.db.refresh(request)
        log_action(
            self.db, user, "service_request.reject", "service_request", request.id,
            organization_id=request.organization_id,
        )
        return request

    def cancel(self, request_id: int, user: User) -> ServiceRequest:
        request = self.get_request(request_id, user)
        if request.requested_by != user.id:
            raise HTTPException(status_code=403, detail="Only the requester can cancel this request")
        if request.status not in OPEN_REQUEST_STATUSES:
            raise HTTPException(status_code=400, detail=f"Cannot cancel a {request.status} request")
        request.status = "cancelled"
        self.db.commit()
        self.db.refresh(request)
        return request

    async def convert_to_ticket(self, request_id: int, user: User) -> ServiceRequest:
        """Open a ticket for approved work and link it to the request"""
        ensure_permission(self.db, user, "services.approve")
        request = self.get_request(request_id, user)
        if request.status != "approved":
            raise HTTPException(status_code=400, detail="Only approved requests can be converted")

        service = request.service
        notes = (request.details or {}).get("notes")
        description = "\n\n".join(
            part for part in (service.description, f"Client notes: {notes}" if notes else None) if part
        )
        ticket = await TicketService(self.db).create_ticket(
            user,
            TicketCreate(
                title=f"Service request: {service.name}"[:255],
                description=description or None,
                category="feature-request",
                priority=TICKET_PRIORITY.get(request.priority or "medium"),
                organization_id=request.organization_id,
            ),
        )

        request.status = "converted"
        request.converted_ticket_id = ticket.id
        self._notify(
            request.requested_by,
            request,
            f"{service.name} request scheduled",
            f"Work is tracked in ticket {ticket.ticket_number}",
        )
        self.db.commit()
        self.db.refresh(request)
        logger.info(f"✅ Service request {request.id} converted to ticket {ticket.ticket_number}")
        return request
