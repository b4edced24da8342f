import logging
from collections import defaultdict
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tripcollab.errors import ConflictError, NotFoundError
from tripcollab.models.plan import Plan, PlanStatus
from tripcollab.models.proposal import Proposal
from tripcollab.models.vote import Vote, VoteType
from tripcollab.services.lifecycle import require_status
from tripcollab.services.tally import tally, user_stance
from tripcollab.utils.clock import utcnow

logger = logging.getLogger(__name__)

# One retry covers the only race: two first-time votes inserting together
MAX_TOGGLE_ATTEMPTS = 2


class VoteLedger:

    tally = staticmethod(tally)
    user_stance = staticmethod(user_stance)

    def __init__(self, db: Session):
        self.db = db

    def _apply_toggle(self, proposal_id: int, user_id: str, vote_type: VoteType) -> Optional[VoteType]:
        existing = self.db.query(Vote).filter(
            Vote.proposal_id == proposal_id,
            Vote.user_id == user_id,
        ).with_for_update().first()

        if existing is None:
            self.db.add(Vote(proposal_id=proposal_id, user_id=user_id, type=vote_type, created_at=utcnow()))
            result = vote_type
        elif existing.type == vote_type:
            self.db.delete(existing)
            result = None
        else:
            existing.type = vote_type
            result = vote_type

        self.db.commit()
        return result

    def vote(self, proposal_id: int, user_id: str, vote_type: VoteType) -> Optional[VoteType]:
        """Cast a toggle vote.

        Same type as the current vote removes it; the opposite type flips it;
        no current vote inserts one. Exactly one of those writes happens per
        call. The row lock plus the (proposal_id, user_id) unique constraint
        mean a racing duplicate insert fails and is re-decided against the
        committed row.

        Returns:
            The user's stance after the call, or None if the vote was removed.
        """
        vote_type = VoteType(vote_type)
        proposal = self.db.query(Proposal).filter(Proposal.id == proposal_id).first()
        if not proposal:
            raise NotFoundError(f"Proposal {proposal_id} not found")
        plan = self.db.query(Plan).filter(Plan.id == proposal.plan_id).one()
        require_status(plan, PlanStatus.COLLABORATION, action="vote")

        for attempt in range(1, MAX_TOGGLE_ATTEMPTS + 1):
            try:
                stance = self._apply_toggle(proposal_id, user_id, vote_type)
            except IntegrityError:
                self.db.rollback()
                if attempt == MAX_TOGGLE_ATTEMPTS:
                    raise ConflictError(f"Vote on proposal {proposal_id} could not be applied, please retry")
                logger.info(f"Vote race on proposal {proposal_id} for {user_id}, retrying")
                continue
            logger.debug(f"Vote on proposal {proposal_id} by {user_id}: now {stance.value if stance else 'none'}")
            return stance

    def get_votes(self, proposal_id: int) -> list[Vote]:
        return self.db.query(Vote).filter(Vote.proposal_id == proposal_id).order_by(Vote.id.asc()).all()

    def votes_for_plan(self, plan_id: int) -> dict[int, list[Vote]]:
        rows = self.db.query(Vote).join(Proposal, Proposal.id == Vote.proposal_id).filter(
            Proposal.plan_id == plan_id
        ).order_by(Vote.id.asc()).all()
        grouped = defaultdict(list)
        for vote in rows:
            grouped[vote.proposal_id].append(vote)
        return dict(grouped)

