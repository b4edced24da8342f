from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from tripcollab.api.deps import CurrentUser, get_current_user
from tripcollab.database import get_db
from tripcollab.schemas.collaboration import ConclusionResponse, FeedbackCreate, FeedbackResponse
from tripcollab.services.conclusion import ConclusionService
from tripcollab.services.membership import MembershipService
from tripcollab.services.plans import PlanService

router = APIRouter()


@router.get("/{plan_id}/conclusion", response_model=ConclusionResponse)
async def get_conclusion(plan_id: int, user: CurrentUser = Depends(get_current_user), db: Session = Depends(get_db)):
    MembershipService(db).require_member(plan_id, user.id)
    service = ConclusionService(db)
    response = ConclusionResponse.model_validate(service.get_conclusion(plan_id))
    response.feedback_open = service.feedback_open(PlanService(db).get_plan(plan_id))
    return response


@router.get("/{plan_id}/feedback", response_model=list[FeedbackResponse])
async def list_feedback(plan_id: int, user: CurrentUser = Depends(get_current_user), db: Session = Depends(get_db)):
    MembershipService(db).require_member(plan_id, user.id)
    return ConclusionService(db).list_feedback(plan_id)


@router.post("/{plan_id}/feedback", response_model=FeedbackResponse)
async def submit_feedback(
    plan_id: int,
    payload: FeedbackCreate,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    MembershipService(db).require_member(plan_id, user.id)
    return ConclusionService(db).submit_feedback(plan_id, user.id, user.display_name, payload.rating, payload.comment)
