"""Tests for invitations and the member roster."""
import pytest

from tripcollab.errors import ConflictError, NotFoundError, PermissionDeniedError, PlanPhaseError, ValidationError
from tripcollab.models import Invitation, InvitationStatus, MemberRole, PlanMember, PlanStatus
from tripcollab.services.membership import MembershipService


def _members(db_session, plan_id):
    return db_session.query(PlanMember).filter(PlanMember.plan_id == plan_id).all()


class TestInvite:
    def test_normalises_email(self, db_session, make_plan):
        plan = make_plan()
        invitation = MembershipService(db_session).invite(plan.id, "  Bob@Example.COM ", "alice")
        assert invitation.invited_email == "bob@example.com"
        assert invitation.status == InvitationStatus.PENDING
        assert invitation.invited_user_id is None

    def test_duplicate_pending_invite_conflicts(self, db_session, make_plan):
        plan = make_plan()
        service = MembershipService(db_session)
        service.invite(plan.id, "a@x.com", "alice")

        with pytest.raises(ConflictError, match="already invited"):
            service.invite(plan.id, "A@X.com", "alice")

        pending = db_session.query(Invitation).filter(
            Invitation.plan_id == plan.id,
            Invitation.invited_email == "a@x.com",
            Invitation.status == InvitationStatus.PENDING,
        ).count()
        assert pending == 1

    def test_resolved_invite_is_replaced(self, db_session, make_plan):
        plan = make_plan()
        service = MembershipService(db_session)
        first = service.invite(plan.id, "bob@x.com", "alice")
        service.decline(first.id, "bob", "bob@x.com")

        again = service.invite(plan.id, "bob@x.com", "alice")
        assert again.status == InvitationStatus.PENDING
        assert db_session.query(Invitation).filter(Invitation.plan_id == plan.id).count() == 1

    def test_only_owner_invites(self, db_session, make_plan):
        plan = make_plan(members=["bob"])
        with pytest.raises(PermissionDeniedError):
            MembershipService(db_session).invite(plan.id, "carol@x.com", "bob")

    def test_owner_cannot_invite_self(self, db_session, make_plan):
        plan = make_plan()
        with pytest.raises(ValidationError):
            MembershipService(db_session).invite(plan.id, "Alice@x.com", "alice", inviter_email="alice@x.com")

    def test_rejects_malformed_email(self, db_session, make_plan):
        plan = make_plan()
        with pytest.raises(ValidationError):
            MembershipService(db_session).invite(plan.id, "not-an-email", "alice")

    def test_closed_after_conclusion(self, db_session, make_plan):
        plan = make_plan(status=PlanStatus.CONCLUDED)
        with pytest.raises(PlanPhaseError):
            MembershipService(db_session).invite(plan.id, "bob@x.com", "alice")


class TestAccept:
    def test_accept_adds_one_participant(self, db_session, make_plan):
        plan = make_plan()
        service = MembershipService(db_session)
        invitation = service.invite(plan.id, "bob@x.com", "alice")

        member = service.accept(invitation.id, "bob", "Bob", "BOB@x.com")
        assert member.user_id == "bob"
        assert member.role == MemberRole.PARTICIPANT

        db_session.refresh(invitation)
        assert invitation.status == InvitationStatus.ACCEPTED
        assert invitation.invited_user_id == "bob"
        assert len(_members(db_session, plan.id)) == 2

    def test_double_accept_is_idempotent(self, db_session, make_plan):
        plan = make_plan()
        service = MembershipService(db_session)
        invitation = service.invite(plan.id, "bob@x.com", "alice")

        first = service.accept(invitation.id, "bob", "Bob", "bob@x.com")
        second = service.accept(invitation.id, "bob", "Bob", "bob@x.com")
        assert first.id == second.id
        assert len([m for m in _members(db_session, plan.id) if m.user_id == "bob"]) == 1

    def test_accept_by_someone_else(self, db_session, make_plan):
        plan = make_plan()
        service = MembershipService(db_session)
        invitation = service.invite(plan.id, "bob@x.com", "alice")
        with pytest.raises(PermissionDeniedError):
            service.accept(invitation.id, "eve", "Eve", "eve@x.com")

    def test_cannot_accept_declined_invite(self, db_session, make_plan):
        plan = make_plan()
        service = MembershipService(db_session)
        invitation = service.invite(plan.id, "bob@x.com", "alice")
        service.decline(invitation.id, "bob", "bob@x.com")
        with pytest.raises(ConflictError):
            service.accept(invitation.id, "bob", "Bob", "bob@x.com")
        assert len(_members(db_session, plan.id)) == 1

    def test_unknown_invitation(self, db_session):
        with pytest.raises(NotFoundError):
            MembershipService(db_session).accept(404, "bob", "Bob", "bob@x.com")


class TestInvitationQueries:
    def test_list_newest_first_and_pending_count(self, db_session, make_plan):
        plan = make_plan()
        service = MembershipService(db_session)
        first = service.invite(plan.id, "bob@x.com", "alice")
        second = service.invite(plan.id, "carol@x.com", "alice")
        service.accept(first.id, "bob", "Bob", "bob@x.com")

        assert [i.id for i in service.list_invitations(plan.id)] == [second.id, first.id]
        assert service.pending_count(plan.id) == 1
        assert [i.id for i in service.pending_for_email("Carol@x.com")] == [second.id]

    def test_cancel(self, db_session, make_plan):
        plan = make_plan()
        service = MembershipService(db_session)
        invitation = service.invite(plan.id, "bob@x.com", "alice")

        with pytest.raises(PermissionDeniedError):
            service.cancel(invitation.id, "bob")
        service.cancel(invitation.id, "alice")
        assert service.pending_count(plan.id) == 0


class TestMembers:
    def test_owner_is_listed_first(self, db_session, make_plan):
        plan = make_plan(members=["bob", "carol"])
        service = MembershipService(db_session)
        members = service.list_members(plan.id)
        assert members[0].user_id == "alice"
        assert members[0].role == MemberRole.OWNER
        assert service.member_count(plan.id) == 3

    def test_require_member(self, db_session, make_plan):
        plan = make_plan(members=["bob"])
        service = MembershipService(db_session)
        assert service.require_member(plan.id, "bob").user_id == "bob"
        with pytest.raises(PermissionDeniedError):
            service.require_member(plan.id, "mallory")

    def test_remove_member(self, db_session, make_plan):
        plan = make_plan(members=["bob"])
        service = MembershipService(db_session)

        with pytest.raises(PermissionDeniedError):
            service.remove_member(plan.id, "alice", "bob")
        with pytest.raises(ValidationError):
            service.remove_member(plan.id, "alice", "alice")
        service.remove_member(plan.id, "bob", "alice")
        assert service.member_count(plan.id) == 1
        with pytest.raises(NotFoundError):
            service.remove_member(plan.id, "bob", "alice")
