import logging
from collections.abc import Awaitable, Callable
from typing import Optional, Union

from sqlalchemy.orm import Session

from tripcollab.errors import NotFoundError, PermissionDeniedError
from tripcollab.models.member import MemberRole, PlanMember
from tripcollab.models.plan import Plan, PlanStatus
from tripcollab.models.proposal import ProposalCategory
from tripcollab.models.conclusion import TripConclusion
from tripcollab.schemas.plan import BudgetEstimate
from tripcollab.schemas.plan_document import PlanDocument
from tripcollab.services.conclusion import ConclusionService
from tripcollab.services.consolidation import consolidate, estimate_budget
from tripcollab.services.lifecycle import require_status, transition
from tripcollab.services.proposals import ProposalService
from tripcollab.services.seeding import load_plan_document
from tripcollab.services.tally import Readiness, evaluate_readiness
from tripcollab.services.votes import VoteLedger
from tripcollab.utils.clock import utcnow

logger = logging.getLogger(__name__)

SeedProvider = Callable[[Plan], Awaitable[Optional[dict]]]


class PlanService:
    """Plan creation and the phase transitions the owner drives."""

    def __init__(self, db: Session):
        self.db = db
        self.proposals = ProposalService(db)
        self.votes = VoteLedger(db)

    def create_plan(
        self,
        owner_id: str,
        owner_name: Optional[str],
        destination: str,
        dates: Optional[str] = None,
        description: Optional[str] = None,
        plan_data: Union[PlanDocument, dict, None] = None,
    ) -> Plan:
        if isinstance(plan_data, PlanDocument):
            plan_data = plan_data.model_dump()

        plan = Plan(
            owner_id=owner_id,
            owner_name=owner_name,
            destination=destination.strip(),
            dates=dates,
            description=description,
            plan_data=plan_data,
            status=PlanStatus.PLANNING,
        )
        plan.members.append(PlanMember(user_id=owner_id, user_name=owner_name, role=MemberRole.OWNER))
        self.db.add(plan)
        self.db.commit()
        self.db.refresh(plan)

        logger.info(f"Plan {plan.id} created by {owner_id} for {plan.destination}")
        return plan

    def get_plan(self, plan_id: int) -> Plan:
        plan = self.db.query(Plan).filter(Plan.id == plan_id).first()
        if not plan:
            raise NotFoundError(f"Plan {plan_id} not found")
        return plan

    @staticmethod
    def require_owner(plan: Plan, user_id: str) -> None:
        if plan.owner_id != user_id:
            raise PermissionDeniedError(f"Only the owner of plan {plan.id} can do that")

    def member_count(self, plan_id: int) -> int:
        return self.db.query(PlanMember).filter(PlanMember.plan_id == plan_id).count()

    def _seed_document(self, plan: Plan) -> dict:
        document = dict(plan.plan_data or {})
        if not document.get("dates") and plan.dates:
            document["dates"] = plan.dates
        return document

    async def start_collaboration(
        self,
        plan_id: int,
        user_id: str,
        seed_provider: Optional[SeedProvider] = None,
    ) -> dict[ProposalCategory, int]:
        """Open the plan for proposals and seed them from its draft document.

        Called again while already collaborating it only re-runs the seed,
        which is a no-op once proposals exist.

        Returns:
            Number of proposals seeded per category.
        """
        plan = self.get_plan(plan_id)
        if plan.status == PlanStatus.PLANNING:
            self.require_owner(plan, user_id)
            transition(plan, PlanStatus.COLLABORATION)
            self.db.commit()
        else:
            require_status(plan, PlanStatus.COLLABORATION, action="start collaboration")

        if not plan.plan_data and seed_provider is not None:
            try:
                drafted = await seed_provider(plan)
            except Exception as e:
                logger.warning(f"Draft generation failed for plan {plan.id}: {e}")
                drafted = None
            if drafted:
                plan.plan_data = load_plan_document(drafted).model_dump()
                self.db.commit()

        document = self._seed_document(plan)
        if not document:
            logger.info(f"Plan {plan.id} has no draft document, nothing to seed")
            return {}
        return self.proposals.seed_from_plan(plan.id, plan.owner_id, document)

    def readiness(self, plan_id: int) -> Readiness:
        self.get_plan(plan_id)
        grouped = self.proposals.proposals_by_category(plan_id)
        return evaluate_readiness(
            self.member_count(plan_id),
            grouped[ProposalCategory.DATE],
            grouped[ProposalCategory.ACCOMMODATION],
            grouped[ProposalCategory.ITINERARY],
            self.votes.votes_for_plan(plan_id),
        )

    def base_document(self, plan: Plan) -> PlanDocument:
        if not plan.plan_data:
            return PlanDocument(title=plan.destination, dates=plan.dates or "")
        return load_plan_document(plan.plan_data)

    def preview(self, plan_id: int) -> tuple[PlanDocument, BudgetEstimate, bool]:
        """Consolidated document, budget estimate and readiness, without saving."""
        plan = self.get_plan(plan_id)
        proposals = self.proposals.list_proposals(plan_id)
        votes = self.votes.votes_for_plan(plan_id)

        document = consolidate(self.base_document(plan), proposals, votes)
        budget = estimate_budget(proposals, self.member_count(plan_id))
        return document, budget, self.readiness(plan_id).ready

    def confirm_and_proceed(
        self,
        plan_id: int,
        user_id: str,
        document: Union[PlanDocument, dict, None] = None,
    ) -> Plan:
        """Persist the consolidated document and move the plan to ongoing.

        Readiness is not re-checked here; the client gates the
        confirm action on it.
        """
        plan = self.get_plan(plan_id)
        self.require_owner(plan, user_id)
        require_status(plan, PlanStatus.COLLABORATION, action="confirm the plan")

        if document is None:
            document = consolidate(
                self.base_document(plan),
                self.proposals.list_proposals(plan_id),
                self.votes.votes_for_plan(plan_id),
            )
        else:
            document = load_plan_document(document)

        plan.plan_data = document.model_dump()
        if document.dates:
            plan.dates = document.dates
        transition(plan, PlanStatus.ONGOING)
        self.db.commit()
        self.db.refresh(plan)
        return plan

    def conclude(self, plan_id: int, user_id: str) -> TripConclusion:
        """Close the trip, record its totals and open the feedback window."""
        plan = self.get_plan(plan_id)
        self.require_owner(plan, user_id)
        transition(plan, PlanStatus.CONCLUDED)
        plan.concluded_at = utcnow()

        conclusion = ConclusionService(self.db).record(plan)
        self.db.commit()
        self.db.refresh(conclusion)
        logger.info(f"Plan {plan.id} concluded: {conclusion.total_days} day(s), ${conclusion.total_expense:.2f} spent")
        return conclusion
