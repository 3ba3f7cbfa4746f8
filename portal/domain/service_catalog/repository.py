"""Service catalog repository"""

from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ...models_service import Service, ServiceRequest


class ServiceCatalogRepository:
    @staticmethod
    def get_service(db: Session, service_id: int) -> Optional[Service]:
        return db.query(Service).filter(Service.id == service_id).first()

    @staticmethod
    def list_services(
        db: Session,
        org_ids: Optional[set[int]],
        category: Optional[str] = None,
        is_active: Optional[bool] = None,
    ) -> list[Service]:
        """Global services plus those offered to org_ids (None means every organization)"""
        query = db.query(Service)
        if org_ids is not None:
            query = query.filter(or_(Service.organization_id.is_(None), Service.organization_id.in_(org_ids)))
        if category:
            query = query.filter(Service.category == category)
        if is_active is not None:
            query = query.filter(Service.is_active.is_(is_active))
        return query.order_by(Service.display_order, Service.created_at.desc(), Service.id.desc()).all()

    @staticmethod
    def count_requests(db: Session, service_id: int) -> int:
        return db.query(ServiceRequest).filter(ServiceRequest.service_id == service_id).count()

    @staticmethod
    def get_request(db: Session, request_id: int) -> Optional[ServiceRequest]:
        return db.query(ServiceRequest).filter(ServiceRequest.id == request_id).first()

    @staticmethod
    def list_requests(
        db: Session,
        org_ids: Optional[set[int]],
        requested_by: Optional[int] = None,
        status: Optional[str] = None,
        organization_id: Optional[int] = None,
    ) -> list[ServiceRequest]:
        query = db.query(ServiceRequest)
        if org_ids is not None:
            query = query.filter(ServiceRequest.organization_id.in_(org_ids))
        if requested_by is not None:
            query = query.filter(ServiceRequest.requested_by == requested_by)
        if status:
            query = query.filter(ServiceRequest.status == status)
        if organization_id:
            query = query.filter(ServiceRequest.organization_id == organization_id)
        return query.order_by(ServiceRequest.created_at.desc(), ServiceRequest.id.desc()).all()
