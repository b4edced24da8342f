import json
import logging
from datetime import date
from typing import Any, Optional, Union

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tripcollab.config import get_settings
from tripcollab.errors import NotFoundError, ValidationError
from tripcollab.models.plan import Plan, PlanStatus
from tripcollab.models.proposal import Proposal, ProposalCategory, ProposalSeed
from tripcollab.schemas.plan_document import PlanDocument
from tripcollab.schemas.proposal import ProposalDetails, parse_details
from tripcollab.services.lifecycle import require_status
from tripcollab.services.seeding import (
    AI_AUTHOR_NAME,
    accommodation_seed_rows,
    date_seed_rows,
    itinerary_seed_rows,
)
from tripcollab.utils.clock import utcnow

logger = logging.getLogger(__name__)

# Fields legacy rows may lack; filled in so reads never fail
LEGACY_DETAIL_DEFAULTS = {
    ProposalCategory.ACCOMMODATION: {"location": "Unknown", "pricePerNight": 0, "nights": 1},
    ProposalCategory.ITINERARY: {"day": 1, "time": "TBD", "description": "", "location": "TBD", "cost": 0},
}


def normalize_details(category, details: Any, legacy_day_title: Optional[str] = None) -> dict:
    """Coalesce a stored details payload into a plain dict.

    Handles details saved as JSON strings and itinerary day titles stored on
    the row instead of inside details.
    """
    if isinstance(details, str):
        try:
            details = json.loads(details)
        except ValueError:
            logger.warning("Discarding undecodable proposal details")
            details = {}
    result = dict(details) if isinstance(details, dict) else {}

    if ProposalCategory(category) == ProposalCategory.ITINERARY:
        result["day_title"] = (
            result.get("day_title")
            or legacy_day_title
            or f"Day {result.get('day') or 1}"
        )
    return result


def proposal_details(proposal: Union[Proposal, dict]) -> dict:
    if isinstance(proposal, dict):
        return normalize_details(proposal["category"], proposal.get("details"), proposal.get("day_title"))
    return normalize_details(proposal.category, proposal.details, proposal.day_title)


def read_details(proposal: Union[Proposal, dict]) -> Optional[ProposalDetails]:
    """Typed details for a stored proposal, or None if the row is unusable."""
    category = ProposalCategory(proposal["category"] if isinstance(proposal, dict) else proposal.category)
    raw = proposal_details(proposal)
    try:
        return parse_details(category, raw)
    except ValidationError:
        patched = {**LEGACY_DETAIL_DEFAULTS.get(category, {}), **{k: v for k, v in raw.items() if v is not None}}
        try:
            return parse_details(category, patched)
        except ValidationError as e:
            ident = proposal.get("id") if isinstance(proposal, dict) else proposal.id
            logger.warning(f"Skipping proposal {ident} with unreadable details: {e}")
            return None


class ProposalService:

    def __init__(self, db: Session):
        self.db = db
        self.settings = get_settings()

    def _get_plan(self, plan_id: int) -> Plan:
        plan = self.db.query(Plan).filter(Plan.id == plan_id).first()
        if not plan:
            raise NotFoundError(f"Plan {plan_id} not found")
        return plan

    def get_proposal(self, proposal_id: int) -> Proposal:
        proposal = self.db.query(Proposal).filter(Proposal.id == proposal_id).first()
        if not proposal:
            raise NotFoundError(f"Proposal {proposal_id} not found")
        return proposal

    def _build(self, plan_id: int, author_id: str, author_name: str,
               category: ProposalCategory, title: str, details: Optional[dict]) -> Proposal:
        title = (title or "").strip()
        if not title:
            raise ValidationError("Proposal title is required")
        typed = parse_details(category, details)
        return Proposal(
            plan_id=plan_id,
            user_id=author_id,
            user_name=author_name,
            category=category,
            title=title,
            details=typed.model_dump(mode="json"),
            created_at=utcnow(),
        )

    def add_proposal(
        self,
        plan_id: int,
        author_id: str,
        author_name: str,
        category: ProposalCategory,
        title: str,
        details: Optional[dict] = None,
    ) -> Proposal:
        plan = self._get_plan(plan_id)
        require_status(plan, PlanStatus.COLLABORATION, action="add proposals")
        category = ProposalCategory(category)

        proposal = self._build(plan_id, author_id, author_name, category, title, details)
        self.db.add(proposal)
        self.db.commit()
        self.db.refresh(proposal)

        logger.info(f"Proposal {proposal.id} ({category.value}) added to plan {plan_id} by {author_id}")
        return proposal

    def list_proposals(self, plan_id: int, category: Optional[ProposalCategory] = None) -> list[Proposal]:
        query = self.db.query(Proposal).filter(Proposal.plan_id == plan_id)
        if category is not None:
            query = query.filter(Proposal.category == ProposalCategory(category))
        return query.order_by(Proposal.created_at.asc(), Proposal.id.asc()).all()

    def proposals_by_category(self, plan_id: int) -> dict[ProposalCategory, list[Proposal]]:
        grouped = {category: [] for category in ProposalCategory}
        for proposal in self.list_proposals(plan_id):
            grouped[proposal.category].append(proposal)
        return grouped

    def category_counts(self, plan_id: int) -> dict[ProposalCategory, int]:
        rows = self.db.query(Proposal.category, func.count(Proposal.id)).filter(
            Proposal.plan_id == plan_id
        ).group_by(Proposal.category).all()
        counts = {category: 0 for category in ProposalCategory}
        for category, count in rows:
            counts[category] = count
        return counts

    def _claim_seed(self, plan_id: int, category: ProposalCategory) -> bool:
        self.db.add(ProposalSeed(plan_id=plan_id, category=category))
        try:
            self.db.flush()
        except IntegrityError:
            self.db.rollback()
            logger.info(f"Seed marker for plan {plan_id}/{category.value} already claimed")
            return False
        return True

    def seed_from_plan(
        self,
        plan_id: int,
        owner_id: str,
        plan_document: Union[PlanDocument, dict, None],
        today: Optional[date] = None,
    ) -> dict[ProposalCategory, int]:
        """Seed initial proposals from a draft plan document.

        A no-op once every category has proposals. Otherwise each empty
        category is seeded at most once per plan: the per-category seed
        marker makes a concurrent second attempt skip instead of duplicating.

        Returns:
            Number of proposals inserted per category.
        """
        self._get_plan(plan_id)
        if plan_document is None:
            return {}
        document = plan_document.model_dump() if isinstance(plan_document, PlanDocument) else dict(plan_document)
        today = today or utcnow().date()

        counts = self.category_counts(plan_id)
        if all(counts.values()):
            logger.debug(f"Plan {plan_id} already has proposals in every category, skipping seed")
            return {}

        builders = (
            (ProposalCategory.DATE, lambda: date_seed_rows(
                document, today,
                self.settings.default_trip_offset_days,
                self.settings.default_trip_length_days,
            )),
            (ProposalCategory.ACCOMMODATION, lambda: accommodation_seed_rows(document)),
            (ProposalCategory.ITINERARY, lambda: itinerary_seed_rows(document)),
        )

        seeded = {}
        for category, build_rows in builders:
            if counts[category]:
                continue
            rows = build_rows()
            if not rows:
                continue

            proposals = []
            for title, details in rows:
                try:
                    proposals.append(self._build(plan_id, owner_id, AI_AUTHOR_NAME, category, title, details))
                except ValidationError as e:
                    logger.warning(f"Skipping seed row '{title}' for plan {plan_id}: {e}")
            if not proposals:
                continue

            if not self._claim_seed(plan_id, category):
                continue
            self.db.add_all(proposals)
            try:
                self.db.commit()
            except IntegrityError:
                self.db.rollback()
                logger.info(f"Concurrent seed of plan {plan_id}/{category.value} won, skipping")
                continue
            seeded[category] = len(proposals)
            logger.info(f"Seeded {len(proposals)} {category.value} proposal(s) for plan {plan_id}")

        return seeded
