from sqlalchemy import Column, Integer, String, DateTime, Text, JSON, ForeignKey, UniqueConstraint, Enum as SQLEnum
from sqlalchemy.orm import relationship
from tripcollab.database import Base
from tripcollab.utils.clock import utcnow
import enum


class ProposalCategory(str, enum.Enum):
    DATE = "date"
    ACCOMMODATION = "accommodation"
    ITINERARY = "itinerary"


class Proposal(Base):
    """A competing option. Never updated in place; corrections are new rows."""

    __tablename__ = "proposals"

    id = Column(Integer, primary_key=True, index=True)
    plan_id = Column(Integer, ForeignKey("plans.id", ondelete="CASCADE"), nullable=False, index=True)

    user_id = Column(String(64), nullable=False)
    user_name = Column(String(128), nullable=False)

    category = Column(SQLEnum(ProposalCategory), nullable=False, index=True)
    title = Column(Text, nullable=False)
    details = Column(JSON, nullable=True)

    # Older rows kept the itinerary day title here instead of inside details
    day_title = Column(String(256), nullable=True)

    created_at = Column(DateTime, default=utcnow, index=True)

    votes = relationship(
        "Vote",
        back_populates="proposal",
        cascade="all, delete-orphan",
        order_by="Vote.id",
    )


class ProposalSeed(Base):
    """Marker claimed once per (plan, category) before seeding it."""

    __tablename__ = "proposal_seeds"

    id = Column(Integer, primary_key=True, index=True)
    plan_id = Column(Integer, ForeignKey("plans.id", ondelete="CASCADE"), nullable=False)
    category = Column(SQLEnum(ProposalCategory), nullable=False)
    created_at = Column(DateTime, default=utcnow)

    __table_args__ = (
        UniqueConstraint("plan_id", "category", name="uix_plan_seed_category"),
    )
