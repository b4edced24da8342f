from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint, Enum as SQLEnum
from sqlalchemy.orm import relationship
from tripcollab.database import Base
from tripcollab.utils.clock import utcnow
import enum


class VoteType(str, enum.Enum):
    UP = "up"
    DOWN = "down"


class Vote(Base):
    __tablename__ = "likes"

    id = Column(Integer, primary_key=True, index=True)
    proposal_id = Column(Integer, ForeignKey("proposals.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(64), nullable=False)
    type = Column(SQLEnum(VoteType), nullable=False)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    proposal = relationship("Proposal", back_populates="votes")

    __table_args__ = (
        UniqueConstraint("proposal_id", "user_id", name="uix_vote_proposal_user"),
    )
