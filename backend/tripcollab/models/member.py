from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint, Enum as SQLEnum
from sqlalchemy.orm import relationship
from tripcollab.database import Base
from tripcollab.utils.clock import utcnow
import enum


class MemberRole(str, enum.Enum):
    OWNER = "owner"
    PARTICIPANT = "participant"


class PlanMember(Base):
    """An accepted participant. Rows only exist once an invitation is accepted."""

    __tablename__ = "plan_members"

    id = Column(Integer, primary_key=True, index=True)
    plan_id = Column(Integer, ForeignKey("plans.id", ondelete="CASCADE"), nullable=False, index=True)

    user_id = Column(String(64), nullable=False, index=True)
    user_name = Column(String(128), nullable=True)
    role = Column(SQLEnum(MemberRole), default=MemberRole.PARTICIPANT, nullable=False)

    created_at = Column(DateTime, default=utcnow)

    plan = relationship("Plan", back_populates="members")

    __table_args__ = (
        UniqueConstraint("plan_id", "user_id", name="uix_plan_member"),
    )
