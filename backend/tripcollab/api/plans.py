from dataclasses import asdict

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session

from tripcollab.api.deps import CurrentUser, get_current_user
from tripcollab.database import get_db
from tripcollab.schemas.collaboration import ConclusionResponse
from tripcollab.schemas.plan import (
    ConfirmRequest,
    PlanCreate,
    PlanPreviewResponse,
    PlanResponse,
    ReadinessResponse,
)
from tripcollab.scheduler import generate_summary_for_plan
from tripcollab.services.ai_plans import draft_plan_document
from tripcollab.services.ai_service import AIService
from tripcollab.services.conclusion import ConclusionService
from tripcollab.services.membership import MembershipService
from tripcollab.services.plans import PlanService

router = APIRouter()


@router.post("", response_model=PlanResponse, status_code=201)
async def create_plan(
    payload: PlanCreate,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return PlanService(db).create_plan(
        owner_id=user.id,
        owner_name=user.display_name,
        destination=payload.destination,
        dates=payload.dates,
        description=payload.description,
        plan_data=payload.plan_data,
    )


@router.get("/{plan_id}", response_model=PlanResponse)
async def get_plan(plan_id: int, user: CurrentUser = Depends(get_current_user), db: Session = Depends(get_db)):
    MembershipService(db).require_member(plan_id, user.id)
    return PlanService(db).get_plan(plan_id)


@router.post("/{plan_id}/collaboration")
async def start_collaboration(
    plan_id: int,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Open collaboration (owner) or re-run the idempotent seed (any member)."""
    MembershipService(db).require_member(plan_id, user.id)
    service = PlanService(db)
    seed_provider = draft_plan_document if AIService.is_configured() else None
    seeded = await service.start_collaboration(plan_id, user.id, seed_provider=seed_provider)
    plan = service.get_plan(plan_id)
    return {
        "plan": PlanResponse.model_validate(plan),
        "seeded": {category.value: count for category, count in seeded.items()},
    }


@router.get("/{plan_id}/readiness", response_model=ReadinessResponse)
async def get_readiness(plan_id: int, user: CurrentUser = Depends(get_current_user), db: Session = Depends(get_db)):
    MembershipService(db).require_member(plan_id, user.id)
    readiness = PlanService(db).readiness(plan_id)
    return ReadinessResponse(
        accepted_members=readiness.accepted_members,
        required_votes=readiness.required_votes,
        ready=readiness.ready,
        date=asdict(readiness.date),
        accommodation=asdict(readiness.accommodation),
        itinerary=asdict(readiness.itinerary),
    )


@router.get("/{plan_id}/preview", response_model=PlanPreviewResponse)
async def preview_plan(plan_id: int, user: CurrentUser = Depends(get_current_user), db: Session = Depends(get_db)):
    MembershipService(db).require_member(plan_id, user.id)
    document, budget, ready = PlanService(db).preview(plan_id)
    return PlanPreviewResponse(document=document, budget=budget, ready=ready)


@router.post("/{plan_id}/confirm", response_model=PlanResponse)
async def confirm_plan(
    plan_id: int,
    payload: ConfirmRequest,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return PlanService(db).confirm_and_proceed(plan_id, user.id, document=payload.document)


@router.post("/{plan_id}/conclude", response_model=ConclusionResponse)
async def conclude_plan(
    plan_id: int,
    background_tasks: BackgroundTasks,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    service = PlanService(db)
    conclusion = service.conclude(plan_id, user.id)
    if AIService.is_configured():
        background_tasks.add_task(generate_summary_for_plan, plan_id)

    response = ConclusionResponse.model_validate(conclusion)
    response.feedback_open = ConclusionService(db).feedback_open(service.get_plan(plan_id))
    return response
