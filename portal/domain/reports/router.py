"""Reports router - CSV exports and dashboard summary"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from .service import ReportService

router = APIRouter(prefix="/reports", tags=["Reports"])


def get_report_service(db: Session = Depends(get_db)) -> ReportService:
    return ReportService(db)


@router.get("/summary")
async def get_summary(
    organization_id: Optional[int] = Query(None),
    current_user: User = Depends(get_current_user),
    service: ReportService = Depends(get_report_service),
):
    return service.get_summary(current_user, organization_id)


@router.get("/tickets.csv")
async def export_tickets(
    organization_id: Optional[int] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    current_user: User = Depends(get_current_user),
    service: ReportService = Depends(get_report_service),
):
    return service.export_tickets(current_user, organization_id, start_date, end_date)


@router.get("/invoices.csv")
async def export_invoices(
    organization_id: Optional[int] = Query(None),
    status: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
    service: ReportService = Depends(get_report_service),
):
    return service.export_invoices(current_user, organization_id, status)


@router.get("/time-entries.csv")
async def export_time_entries(
    organization_id: Optional[int] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    current_user: User = Depends(get_current_user),
    service: ReportService = Depends(get_report_service),
):
    return service.export_time_entries(current_user, organization_id, start_date, end_date)
