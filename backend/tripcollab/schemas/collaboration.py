from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from tripcollab.models.invitation import InvitationStatus
from tripcollab.models.member import MemberRole


class InvitationCreate(BaseModel):
    email: str = Field(..., min_length=3)


class InvitationResponse(BaseModel):
    id: int
    plan_id: int
    invited_email: str
    invited_user_id: Optional[str]
    status: InvitationStatus
    created_at: datetime

    class Config:
        from_attributes = True


class MemberResponse(BaseModel):
    id: int
    plan_id: int
    user_id: str
    user_name: Optional[str]
    role: MemberRole
    created_at: datetime

    class Config:
        from_attributes = True


class MessageCreate(BaseModel):
    text: str = Field(..., min_length=1)


class MessageResponse(BaseModel):
    id: int
    plan_id: int
    user_id: str
    user_name: Optional[str]
    text: str
    created_at: datetime
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


class ExpenseCreate(BaseModel):
    description: str = Field(..., min_length=1)
    amount: float = Field(..., ge=0)


class ExpenseResponse(BaseModel):
    id: int
    plan_id: int
    user_id: str
    user_name: Optional[str]
    description: str
    amount: float
    created_at: datetime

    class Config:
        from_attributes = True


class MemberSpend(BaseModel):
    user_id: str
    user_name: Optional[str]
    total: float


class ExpenseSummary(BaseModel):
    total: float
    members: list[MemberSpend]


class FeedbackCreate(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = None


class FeedbackResponse(BaseModel):
    id: int
    plan_id: int
    user_id: str
    user_name: Optional[str]
    rating: int
    comment: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class ConclusionResponse(BaseModel):
    plan_id: int
    total_days: int
    total_expense: float
    expected_budget: float
    activities_count: int
    visited_places: list[str]
    ai_summary: Optional[str]
    feedback_open: bool = False

    class Config:
        from_attributes = True
