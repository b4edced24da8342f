from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from tripcollab.api.deps import CurrentUser, get_current_user
from tripcollab.database import get_db
from tripcollab.models.proposal import Proposal, ProposalCategory
from tripcollab.schemas.proposal import ProposalCreate, ProposalResponse, VoteRequest, VoteResponse, VoteResult
from tripcollab.services.membership import MembershipService
from tripcollab.services.plans import PlanService
from tripcollab.services.proposals import ProposalService, proposal_details
from tripcollab.services.votes import VoteLedger

router = APIRouter()


def _proposal_response(proposal: Proposal, votes: list, user_id: str) -> ProposalResponse:
    counts = VoteLedger.tally(votes)
    return ProposalResponse(
        id=proposal.id,
        plan_id=proposal.plan_id,
        user_id=proposal.user_id,
        user_name=proposal.user_name,
        category=proposal.category,
        title=proposal.title,
        details=proposal_details(proposal),
        created_at=proposal.created_at,
        upvotes=counts.upvotes,
        downvotes=counts.downvotes,
        score=counts.score,
        my_vote=VoteLedger.user_stance(votes, user_id),
    )


@router.get("/plans/{plan_id}/proposals", response_model=list[ProposalResponse])
async def list_proposals(
    plan_id: int,
    category: Optional[ProposalCategory] = Query(None),
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    MembershipService(db).require_member(plan_id, user.id)
    proposals = ProposalService(db).list_proposals(plan_id, category)
    votes = VoteLedger(db).votes_for_plan(plan_id)
    return [_proposal_response(p, votes.get(p.id, []), user.id) for p in proposals]


@router.post("/plans/{plan_id}/proposals", response_model=ProposalResponse, status_code=201)
async def add_proposal(
    plan_id: int,
    payload: ProposalCreate,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    plan_service = PlanService(db)
    plan_service.require_owner(plan_service.get_plan(plan_id), user.id)
    proposal = ProposalService(db).add_proposal(
        plan_id,
        author_id=user.id,
        author_name=user.display_name,
        category=payload.category,
        title=payload.title,
        details=payload.details,
    )
    return _proposal_response(proposal, [], user.id)


@router.post("/proposals/{proposal_id}/votes", response_model=VoteResult)
async def cast_vote(
    proposal_id: int,
    payload: VoteRequest,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Toggle vote: repeat to remove, send the opposite type to flip."""
    proposal = ProposalService(db).get_proposal(proposal_id)
    MembershipService(db).require_member(proposal.plan_id, user.id)

    ledger = VoteLedger(db)
    stance = ledger.vote(proposal_id, user.id, payload.type)
    counts = ledger.tally(ledger.get_votes(proposal_id))
    return VoteResult(proposal_id=proposal_id, my_vote=stance, **counts.as_dict())


@router.get("/proposals/{proposal_id}/votes", response_model=list[VoteResponse])
async def list_votes(
    proposal_id: int,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    proposal = ProposalService(db).get_proposal(proposal_id)
    MembershipService(db).require_member(proposal.plan_id, user.id)
    return VoteLedger(db).get_votes(proposal_id)
