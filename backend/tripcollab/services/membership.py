import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tripcollab.errors import ConflictError, NotFoundError, PermissionDeniedError, ValidationError
from tripcollab.models.invitation import Invitation, InvitationStatus
from tripcollab.models.member import MemberRole, PlanMember
from tripcollab.models.plan import Plan, PlanStatus
from tripcollab.services.lifecycle import require_status
from tripcollab.utils.clock import utcnow

logger = logging.getLogger(__name__)

# Membership can change until the trip is over
OPEN_STATUSES = (PlanStatus.PLANNING, PlanStatus.COLLABORATION, PlanStatus.ONGOING)


def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


class MembershipService:
    """Invitations and the accepted-member roster of a plan."""

    def __init__(self, db: Session):
        self.db = db

    def _get_plan(self, plan_id: int) -> Plan:
        plan = self.db.query(Plan).filter(Plan.id == plan_id).first()
        if not plan:
            raise NotFoundError(f"Plan {plan_id} not found")
        return plan

    def get_invitation(self, invitation_id: int) -> Invitation:
        invitation = self.db.query(Invitation).filter(Invitation.id == invitation_id).first()
        if not invitation:
            raise NotFoundError(f"Invitation {invitation_id} not found")
        return invitation

    def invite(self, plan_id: int, email: str, inviter_id: str, inviter_email: Optional[str] = None) -> Invitation:
        """Invite an e-mail address to a plan.

        A pending invite for the same address is a conflict. A resolved one
        (accepted or declined) is replaced by a fresh pending invite.
        """
        plan = self._get_plan(plan_id)
        if plan.owner_id != inviter_id:
            raise PermissionDeniedError("Only the plan owner can send invitations")
        require_status(plan, *OPEN_STATUSES, action="invite members")

        email = normalize_email(email)
        if "@" not in email:
            raise ValidationError(f"'{email}' is not a valid e-mail address")
        if inviter_email and normalize_email(inviter_email) == email:
            raise ValidationError("You cannot invite yourself")

        existing = self.db.query(Invitation).filter(
            Invitation.plan_id == plan_id,
            Invitation.invited_email == email,
        ).first()
        if existing is not None:
            if not existing.is_resolved:
                raise ConflictError(f"{email} is already invited")
            logger.info(f"Re-inviting {email} to plan {plan_id} (was {existing.status.value})")
            self.db.delete(existing)
            self.db.flush()

        invitation = Invitation(
            plan_id=plan_id,
            invited_email=email,
            status=InvitationStatus.PENDING,
            created_at=utcnow(),
        )
        self.db.add(invitation)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ConflictError(f"{email} is already invited")
        self.db.refresh(invitation)

        logger.info(f"Invitation {invitation.id}: {email} invited to plan {plan_id}")
        return invitation

    def _require_invitee(self, invitation: Invitation, user_email: Optional[str]) -> None:
        if normalize_email(user_email) != invitation.invited_email:
            raise PermissionDeniedError("This invitation is addressed to someone else")

    def _require_pending(self, invitation: Invitation) -> None:
        if invitation.is_resolved:
            raise ConflictError(f"Invitation {invitation.id} is already {invitation.status.value}")

    def accept(self, invitation_id: int, user_id: str, user_name: Optional[str], user_email: Optional[str]) -> PlanMember:
        """Accept an invitation, adding the user as a participant.

        Accepting twice is harmless: the existing membership is returned.
        """
        invitation = self.get_invitation(invitation_id)
        self._require_invitee(invitation, user_email)
        plan = self._get_plan(invitation.plan_id)

        member = self.find_member(plan.id, user_id)
        if invitation.status == InvitationStatus.ACCEPTED and member is not None:
            return member
        self._require_pending(invitation)
        require_status(plan, *OPEN_STATUSES, action="join")

        invitation.status = InvitationStatus.ACCEPTED
        invitation.invited_user_id = user_id
        if member is None:
            self.db.add(PlanMember(
                plan_id=plan.id,
                user_id=user_id,
                user_name=user_name,
                role=MemberRole.PARTICIPANT,
                created_at=utcnow(),
            ))
        try:
            self.db.commit()
        except IntegrityError:
            # A concurrent accept inserted the member first
            self.db.rollback()
            invitation = self.get_invitation(invitation_id)
            invitation.status = InvitationStatus.ACCEPTED
            invitation.invited_user_id = user_id
            self.db.commit()
            logger.info(f"Invitation {invitation_id} accepted concurrently, keeping existing member")

        logger.info(f"{user_id} joined plan {plan.id} via invitation {invitation_id}")
        return self.find_member(plan.id, user_id)

    def decline(self, invitation_id: int, user_id: str, user_email: Optional[str]) -> Invitation:
        invitation = self.get_invitation(invitation_id)
        self._require_invitee(invitation, user_email)
        self._require_pending(invitation)

        invitation.status = InvitationStatus.DECLINED
        invitation.invited_user_id = user_id
        self.db.commit()
        self.db.refresh(invitation)
        logger.info(f"Invitation {invitation_id} declined by {user_id}")
        return invitation

    def cancel(self, invitation_id: int, user_id: str) -> None:
        invitation = self.get_invitation(invitation_id)
        plan = self._get_plan(invitation.plan_id)
        if plan.owner_id != user_id:
            raise PermissionDeniedError("Only the plan owner can cancel invitations")
        self._require_pending(invitation)

        self.db.delete(invitation)
        self.db.commit()
        logger.info(f"Invitation {invitation_id} to {invitation.invited_email} cancelled")

    def list_invitations(self, plan_id: int) -> list[Invitation]:
        self._get_plan(plan_id)
        return self.db.query(Invitation).filter(
            Invitation.plan_id == plan_id
        ).order_by(Invitation.created_at.desc(), Invitation.id.desc()).all()

    def pending_for_email(self, email: str) -> list[Invitation]:
        return self.db.query(Invitation).filter(
            Invitation.invited_email == normalize_email(email),
            Invitation.status == InvitationStatus.PENDING,
        ).order_by(Invitation.created_at.desc(), Invitation.id.desc()).all()

    def pending_count(self, plan_id: int) -> int:
        return self.db.query(Invitation).filter(
            Invitation.plan_id == plan_id,
            Invitation.status == InvitationStatus.PENDING,
        ).count()

    def find_member(self, plan_id: int, user_id: str) -> Optional[PlanMember]:
        return self.db.query(PlanMember).filter(
            PlanMember.plan_id == plan_id,
            PlanMember.user_id == user_id,
        ).first()

    def require_member(self, plan_id: int, user_id: str) -> PlanMember:
        self._get_plan(plan_id)
        member = self.find_member(plan_id, user_id)
        if member is None:
            raise PermissionDeniedError(f"You are not a member of plan {plan_id}")
        return member

    def list_members(self, plan_id: int) -> list[PlanMember]:
        self._get_plan(plan_id)
        return self.db.query(PlanMember).filter(
            PlanMember.plan_id == plan_id
        ).order_by(PlanMember.created_at.asc(), PlanMember.id.asc()).all()

    def member_count(self, plan_id: int) -> int:
        return self.db.query(PlanMember).filter(PlanMember.plan_id == plan_id).count()

    def remove_member(self, plan_id: int, member_user_id: str, user_id: str) -> None:
        plan = self._get_plan(plan_id)
        if plan.owner_id != user_id:
            raise PermissionDeniedError("Only the plan owner can remove members")
        if member_user_id == plan.owner_id:
            raise ValidationError("The plan owner cannot be removed")

        member = self.find_member(plan_id, member_user_id)
        if member is None:
            raise NotFoundError(f"{member_user_id} is not a member of plan {plan_id}")
        self.db.delete(member)
        self.db.commit()
        logger.info(f"{member_user_id} removed from plan {plan_id}")
