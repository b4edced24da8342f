from sqlalchemy import Column, Integer, String, DateTime, Float, Text, JSON, ForeignKey, UniqueConstraint
from tripcollab.database import Base
from tripcollab.utils.clock import utcnow


class TripConclusion(Base):
    __tablename__ = "trip_conclusions"

    id = Column(Integer, primary_key=True, index=True)
    plan_id = Column(Integer, ForeignKey("plans.id", ondelete="CASCADE"), nullable=False, unique=True)

    total_days = Column(Integer, default=0)
    total_expense = Column(Float, default=0.0)
    expected_budget = Column(Float, default=0.0)
    activities_count = Column(Integer, default=0)
    visited_places = Column(JSON, default=list)

    # Filled asynchronously by the AI collaborator; retried by the scheduler
    ai_summary = Column(Text, nullable=True)
    summary_attempts = Column(Integer, default=0)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class TripFeedback(Base):
    __tablename__ = "trip_feedback"

    id = Column(Integer, primary_key=True, index=True)
    plan_id = Column(Integer, ForeignKey("plans.id", ondelete="CASCADE"), nullable=False, index=True)

    user_id = Column(String(64), nullable=False)
    user_name = Column(String(128), nullable=True)
    rating = Column(Integer, nullable=False)
    comment = Column(Text, nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("plan_id", "user_id", name="uix_feedback_plan_user"),
    )
