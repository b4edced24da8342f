"""Trip conclusion: final totals, AI summary and the feedback window."""
import logging
from collections.abc import Awaitable, Callable
from datetime import timedelta
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from tripcollab.config import get_settings
from tripcollab.errors import NotFoundError, PlanPhaseError
from tripcollab.models.conclusion import TripConclusion, TripFeedback
from tripcollab.models.expense import Expense
from tripcollab.models.plan import Plan, PlanStatus
from tripcollab.schemas.plan_document import PlanDocument
from tripcollab.services.consolidation import document_budget
from tripcollab.services.lifecycle import require_status
from tripcollab.services.seeding import load_plan_document, parse_date_range
from tripcollab.utils.clock import utcnow

logger = logging.getLogger(__name__)

# The scheduler stops retrying a summary after this many failed attempts
MAX_SUMMARY_ATTEMPTS = 3

Summarizer = Callable[[Plan, TripConclusion, list[TripFeedback]], Awaitable[str]]


def trip_length(plan: Plan, document: PlanDocument) -> int:
    today = (plan.concluded_at or utcnow()).date()
    parsed = parse_date_range(document.dates or plan.dates, today)
    if parsed is not None:
        start, end = parsed
        return (end - start).days + 1
    return len(document.dailyItinerary)


def visited_places(document: PlanDocument) -> list[str]:
    places = []
    for day in document.dailyItinerary:
        for item in day.items:
            location = str(getattr(item, "location", None) or "").strip()
            if location and location != "TBD" and location not in places:
                places.append(location)
    return places


class ConclusionService:

    def __init__(self, db: Session):
        self.db = db
        self.settings = get_settings()

    def _get_plan(self, plan_id: int) -> Plan:
        plan = self.db.query(Plan).filter(Plan.id == plan_id).first()
        if not plan:
            raise NotFoundError(f"Plan {plan_id} not found")
        return plan

    def record(self, plan: Plan) -> TripConclusion:
        """Build (or refresh) the conclusion row for ``plan``. Caller commits."""
        document = load_plan_document(plan.plan_data)
        total_expense = self.db.query(func.coalesce(func.sum(Expense.amount), 0.0)).filter(
            Expense.plan_id == plan.id
        ).scalar()

        conclusion = self.db.query(TripConclusion).filter(TripConclusion.plan_id == plan.id).first()
        if conclusion is None:
            conclusion = TripConclusion(plan_id=plan.id, summary_attempts=0)
            self.db.add(conclusion)

        conclusion.total_days = trip_length(plan, document)
        conclusion.total_expense = round(float(total_expense or 0), 2)
        conclusion.expected_budget = document_budget(document)
        conclusion.activities_count = sum(len(day.items) for day in document.dailyItinerary)
        conclusion.visited_places = visited_places(document)
        return conclusion

    def get_conclusion(self, plan_id: int) -> TripConclusion:
        conclusion = self.db.query(TripConclusion).filter(TripConclusion.plan_id == plan_id).first()
        if not conclusion:
            raise NotFoundError(f"Plan {plan_id} has not been concluded")
        return conclusion

    def feedback_open(self, plan: Plan) -> bool:
        if plan.status != PlanStatus.CONCLUDED or plan.concluded_at is None:
            return False
        closes_at = plan.concluded_at + timedelta(days=self.settings.feedback_window_days)
        return utcnow() <= closes_at

    def submit_feedback(
        self,
        plan_id: int,
        user_id: str,
        user_name: Optional[str],
        rating: int,
        comment: Optional[str] = None,
    ) -> TripFeedback:
        """One feedback entry per member; resubmitting replaces it."""
        plan = self._get_plan(plan_id)
        require_status(plan, PlanStatus.CONCLUDED, action="leave feedback")
        if not self.feedback_open(plan):
            raise PlanPhaseError(f"The feedback window for plan {plan_id} has closed")

        feedback = self.db.query(TripFeedback).filter(
            TripFeedback.plan_id == plan_id,
            TripFeedback.user_id == user_id,
        ).first()
        if feedback is None:
            feedback = TripFeedback(plan_id=plan_id, user_id=user_id)
            self.db.add(feedback)
        feedback.user_name = user_name
        feedback.rating = rating
        feedback.comment = comment
        self.db.commit()
        self.db.refresh(feedback)

        logger.info(f"Feedback {rating}/5 for plan {plan_id} from {user_id}")
        return feedback

    def list_feedback(self, plan_id: int) -> list[TripFeedback]:
        return self.db.query(TripFeedback).filter(
            TripFeedback.plan_id == plan_id
        ).order_by(TripFeedback.created_at.asc(), TripFeedback.id.asc()).all()

    def pending_summaries(self) -> list[TripConclusion]:
        return self.db.query(TripConclusion).filter(
            TripConclusion.ai_summary.is_(None),
            TripConclusion.summary_attempts < MAX_SUMMARY_ATTEMPTS,
        ).all()

    async def generate_summary(self, plan_id: int, summarizer: Summarizer) -> Optional[str]:
        """Ask the AI collaborator for a trip summary and store it.

        Failures are counted and logged so the scheduler can retry later.
        """
        plan = self._get_plan(plan_id)
        conclusion = self.get_conclusion(plan_id)
        if conclusion.ai_summary:
            return conclusion.ai_summary

        conclusion.summary_attempts = (conclusion.summary_attempts or 0) + 1
        try:
            summary = await summarizer(plan, conclusion, self.list_feedback(plan_id))
        except Exception as e:
            logger.warning(f"Summary generation failed for plan {plan_id} (attempt {conclusion.summary_attempts}): {e}")
            self.db.commit()
            return None

        conclusion.ai_summary = summary.strip() or None
        self.db.commit()
        logger.info(f"Stored AI summary for plan {plan_id}")
        return conclusion.ai_summary
