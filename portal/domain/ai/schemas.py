"""AI analysis schemas"""

from typing import Optional

from pydantic import BaseModel, Field


class TicketAnalysisRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=20000)


class TicketAnalysisResponse(BaseModel):
    category: str
    priority: str
    estimated_hours: float
    complexity: float
    needs_escalation: bool
    escalation_reason: Optional[str] = None
    summary: str
    source: str
