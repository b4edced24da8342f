from sqlalchemy import Column, Integer, String, DateTime, Float, ForeignKey, CheckConstraint
from tripcollab.database import Base
from tripcollab.utils.clock import utcnow


class Expense(Base):
    __tablename__ = "expenses"

    id = Column(Integer, primary_key=True, index=True)
    plan_id = Column(Integer, ForeignKey("plans.id", ondelete="CASCADE"), nullable=False, index=True)

    user_id = Column(String(64), nullable=False)
    user_name = Column(String(128), nullable=True)
    description = Column(String(512), nullable=False)
    amount = Column(Float, nullable=False)

    created_at = Column(DateTime, default=utcnow)

    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_expense_amount_non_negative"),
    )
