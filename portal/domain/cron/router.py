"""Cron router - HTTP triggers for the scheduled jobs"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import require_cron_secret
from ...database import get_db
from ...services.sla_monitor import run_sla_monitor
from ..integrations.calendar.sync import run_calendar_sync
from ..invoices.service import run_overdue_sweep

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cron", tags=["Cron"], dependencies=[Depends(require_cron_secret)])


@router.post("/sla-monitor")
async def trigger_sla_monitor(db: Session = Depends(get_db)):
    logger.info("⏰ Cron: SLA monitor")
    return await run_sla_monitor(db)


@router.post("/overdue-invoices")
async def trigger_overdue_invoices(db: Session = Depends(get_db)):
    logger.info("⏰ Cron: overdue invoice sweep")
    return await run_overdue_sweep(db)


@router.post("/calendar-sync")
async def trigger_calendar_sync(db: Session = Depends(get_db)):
    logger.info("⏰ Cron: calendar sync")
    return await run_calendar_sync(db)
