"""AI router - ticket analysis for agency users"""

from fastapi import APIRouter, Depends

from ...auth import require_roles
from ...models import User
from ...permissions import PRIVILEGED_ROLES
from ...rate_limiter import create_rate_limiter
from .schemas import TicketAnalysisRequest, TicketAnalysisResponse
from .ticket_analyzer import analyze_ticket

router = APIRouter(prefix="/ai", tags=["AI"])

rate_limit_analyze = create_rate_limiter(30, 60, "ai_analyze", scope="user")


@router.post("/analyze-ticket", response_model=TicketAnalysisResponse)
async def analyze_ticket_endpoint(
    data: TicketAnalysisRequest,
    current_user: User = Depends(require_roles(*PRIVILEGED_ROLES)),
    _: None = Depends(rate_limit_analyze),
):
    """Suggest category, priority and effort for a ticket draft"""
    return await analyze_ticket(data.title, data.description)
