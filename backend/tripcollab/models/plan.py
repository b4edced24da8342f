from sqlalchemy import Column, Integer, String, DateTime, Text, JSON, Enum as SQLEnum
from sqlalchemy.orm import relationship
from tripcollab.database import Base
from tripcollab.utils.clock import utcnow
import enum


class PlanStatus(str, enum.Enum):
    PLANNING = "planning"
    COLLABORATION = "collaboration"
    ONGOING = "ongoing"
    CONCLUDED = "concluded"


# Linear lifecycle, no backward edges
PLAN_STATUS_ORDER = [
    PlanStatus.PLANNING,
    PlanStatus.COLLABORATION,
    PlanStatus.ONGOING,
    PlanStatus.CONCLUDED,
]


class Plan(Base):
    __tablename__ = "plans"

    id = Column(Integer, primary_key=True, index=True)

    owner_id = Column(String(64), nullable=False, index=True)
    owner_name = Column(String(128), nullable=True)

    destination = Column(String(256), nullable=False)
    # Free text until the group settles on a date proposal
    dates = Column(String(256), nullable=True)
    description = Column(Text, nullable=True)

    status = Column(SQLEnum(PlanStatus), default=PlanStatus.PLANNING, nullable=False)

    # Consolidated trip document (dates, bookings, dailyItinerary, ...)
    plan_data = Column(JSON, nullable=True)

    concluded_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    members = relationship(
        "PlanMember",
        back_populates="plan",
        cascade="all, delete-orphan",
        order_by="PlanMember.id",
    )
    invitations = relationship("Invitation", cascade="all, delete-orphan")
    proposals = relationship("Proposal", cascade="all, delete-orphan")
    messages = relationship("Doubt", cascade="all, delete-orphan")
    expenses = relationship("Expense", cascade="all, delete-orphan")

    def has_reached(self, status: PlanStatus) -> bool:
        return PLAN_STATUS_ORDER.index(self.status) >= PLAN_STATUS_ORDER.index(status)
