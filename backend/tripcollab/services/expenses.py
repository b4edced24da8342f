import logging
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from tripcollab.errors import NotFoundError, ValidationError
from tripcollab.models.expense import Expense
from tripcollab.models.plan import Plan, PlanStatus
from tripcollab.schemas.collaboration import ExpenseSummary, MemberSpend
from tripcollab.services.lifecycle import require_status
from tripcollab.utils.clock import utcnow

logger = logging.getLogger(__name__)


class ExpenseService:

    def __init__(self, db: Session):
        self.db = db

    def add_expense(
        self,
        plan_id: int,
        user_id: str,
        user_name: Optional[str],
        description: str,
        amount: float,
    ) -> Expense:
        plan = self.db.query(Plan).filter(Plan.id == plan_id).first()
        if not plan:
            raise NotFoundError(f"Plan {plan_id} not found")
        require_status(plan, PlanStatus.ONGOING, action="log expenses")

        description = (description or "").strip()
        if not description:
            raise ValidationError("Expense description is required")
        if amount is None or amount < 0:
            raise ValidationError("Expense amount must be zero or more")

        expense = Expense(
            plan_id=plan_id,
            user_id=user_id,
            user_name=user_name,
            description=description,
            amount=round(float(amount), 2),
            created_at=utcnow(),
        )
        self.db.add(expense)
        self.db.commit()
        self.db.refresh(expense)

        logger.info(f"Expense {expense.id} of ${expense.amount:.2f} logged on plan {plan_id} by {user_id}")
        return expense

    def list_expenses(self, plan_id: int) -> list[Expense]:
        return self.db.query(Expense).filter(
            Expense.plan_id == plan_id
        ).order_by(Expense.created_at.asc(), Expense.id.asc()).all()

    def summary(self, plan_id: int) -> ExpenseSummary:
        """Total spend and the per-member breakdown, biggest spender first."""
        rows = self.db.query(
            Expense.user_id,
            func.max(Expense.user_name),
            func.sum(Expense.amount),
        ).filter(
            Expense.plan_id == plan_id
        ).group_by(Expense.user_id).all()

        members = [
            MemberSpend(user_id=user_id, user_name=user_name, total=round(total or 0.0, 2))
            for user_id, user_name, total in rows
        ]
        members.sort(key=lambda m: (-m.total, m.user_id))
        return ExpenseSummary(total=round(sum(m.total for m in members), 2), members=members)
