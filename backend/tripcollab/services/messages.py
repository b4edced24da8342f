import logging
from typing import Optional

from sqlalchemy.orm import Session

from tripcollab.errors import NotFoundError, PermissionDeniedError, ValidationError
from tripcollab.models.message import Doubt
from tripcollab.models.plan import Plan
from tripcollab.utils.clock import utcnow

logger = logging.getLogger(__name__)


class MessageService:
    """Plan discussion thread. Authors edit their own messages; the owner can delete any."""

    def __init__(self, db: Session):
        self.db = db

    def get_message(self, message_id: int) -> Doubt:
        message = self.db.query(Doubt).filter(Doubt.id == message_id).first()
        if not message:
            raise NotFoundError(f"Message {message_id} not found")
        return message

    def list_messages(self, plan_id: int) -> list[Doubt]:
        return self.db.query(Doubt).filter(
            Doubt.plan_id == plan_id
        ).order_by(Doubt.created_at.asc(), Doubt.id.asc()).all()

    @staticmethod
    def _clean(text: Optional[str]) -> str:
        text = (text or "").strip()
        if not text:
            raise ValidationError("Message text is required")
        return text

    def post(self, plan_id: int, user_id: str, user_name: Optional[str], text: str) -> Doubt:
        now = utcnow()
        message = Doubt(
            plan_id=plan_id,
            user_id=user_id,
            user_name=user_name,
            text=self._clean(text),
            created_at=now,
            updated_at=now,
        )
        self.db.add(message)
        self.db.commit()
        self.db.refresh(message)
        logger.debug(f"Message {message.id} posted to plan {plan_id} by {user_id}")
        return message

    def edit(self, message_id: int, user_id: str, text: str) -> Doubt:
        message = self.get_message(message_id)
        if message.user_id != user_id:
            raise PermissionDeniedError("Only the author can edit a message")
        message.text = self._clean(text)
        message.updated_at = utcnow()
        self.db.commit()
        self.db.refresh(message)
        return message

    def delete(self, message_id: int, user_id: str) -> None:
        message = self.get_message(message_id)
        plan = self.db.query(Plan).filter(Plan.id == message.plan_id).one()
        if user_id not in (message.user_id, plan.owner_id):
            raise PermissionDeniedError("Only the author or the plan owner can delete a message")
        self.db.delete(message)
        self.db.commit()
        logger.info(f"Message {message_id} deleted from plan {plan.id} by {user_id}")
