from sqlalchemy import Column, Integer, String, DateTime, Text, ForeignKey
from tripcollab.database import Base
from tripcollab.utils.clock import utcnow


class Doubt(Base):
    """A discussion message attached to a plan."""

    __tablename__ = "doubts"

    id = Column(Integer, primary_key=True, index=True)
    plan_id = Column(Integer, ForeignKey("plans.id", ondelete="CASCADE"), nullable=False, index=True)

    user_id = Column(String(64), nullable=False)
    user_name = Column(String(128), nullable=True)
    text = Column(Text, nullable=False)

    created_at = Column(DateTime, default=utcnow, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
