from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint, Enum as SQLEnum
from tripcollab.database import Base
from tripcollab.utils.clock import utcnow
import enum


class InvitationStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"


class Invitation(Base):
    __tablename__ = "invitations"

    id = Column(Integer, primary_key=True, index=True)
    plan_id = Column(Integer, ForeignKey("plans.id", ondelete="CASCADE"), nullable=False, index=True)

    # Always stored lower-cased and trimmed
    invited_email = Column(String(320), nullable=False)
    invited_user_id = Column(String(64), nullable=True)

    status = Column(SQLEnum(InvitationStatus), default=InvitationStatus.PENDING, nullable=False)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("plan_id", "invited_email", name="uix_plan_invited_email"),
    )

    @property
    def is_resolved(self) -> bool:
        return self.status != InvitationStatus.PENDING
