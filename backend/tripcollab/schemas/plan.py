from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from tripcollab.models.plan import PlanStatus
from tripcollab.schemas.plan_document import PlanDocument


class PlanCreate(BaseModel):
    destination: str = Field(..., min_length=1)
    dates: Optional[str] = None
    description: Optional[str] = None
    plan_data: Optional[PlanDocument] = None


class PlanResponse(BaseModel):
    id: int
    owner_id: str
    owner_name: Optional[str]
    destination: str
    dates: Optional[str]
    description: Optional[str]
    status: PlanStatus
    plan_data: Optional[dict[str, Any]]
    concluded_at: Optional[datetime]
    created_at: datetime

    class Config:
        from_attributes = True


class CategoryReadiness(BaseModel):
    proposals: int
    approved: int
    satisfied: bool


class ReadinessResponse(BaseModel):
    accepted_members: int
    required_votes: int
    ready: bool
    date: CategoryReadiness
    accommodation: CategoryReadiness
    itinerary: CategoryReadiness


class BudgetEstimate(BaseModel):
    total: float
    per_person: float
    members: int


class PlanPreviewResponse(BaseModel):
    document: PlanDocument
    budget: BudgetEstimate
    ready: bool


class ConfirmRequest(BaseModel):
    # Omit to persist the server-side consolidation of the current votes
    document: Optional[PlanDocument] = None
