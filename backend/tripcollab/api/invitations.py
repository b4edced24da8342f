from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from tripcollab.api.deps import CurrentUser, get_current_user
from tripcollab.database import get_db
from tripcollab.schemas.collaboration import InvitationCreate, InvitationResponse, MemberResponse
from tripcollab.services.membership import MembershipService

router = APIRouter()


@router.get("/plans/{plan_id}/invitations", response_model=list[InvitationResponse])
async def list_invitations(plan_id: int, user: CurrentUser = Depends(get_current_user), db: Session = Depends(get_db)):
    service = MembershipService(db)
    service.require_member(plan_id, user.id)
    return service.list_invitations(plan_id)


@router.get("/plans/{plan_id}/invitations/pending-count")
async def pending_invitation_count(plan_id: int, user: CurrentUser = Depends(get_current_user), db: Session = Depends(get_db)):
    service = MembershipService(db)
    service.require_member(plan_id, user.id)
    return {"plan_id": plan_id, "pending": service.pending_count(plan_id)}


@router.post("/plans/{plan_id}/invitations", response_model=InvitationResponse, status_code=201)
async def invite(
    plan_id: int,
    payload: InvitationCreate,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return MembershipService(db).invite(plan_id, payload.email, inviter_id=user.id, inviter_email=user.email)


@router.get("/invitations/mine", response_model=list[InvitationResponse])
async def my_invitations(user: CurrentUser = Depends(get_current_user), db: Session = Depends(get_db)):
    if not user.email:
        return []
    return MembershipService(db).pending_for_email(user.email)


@router.post("/invitations/{invitation_id}/accept", response_model=MemberResponse)
async def accept_invitation(invitation_id: int, user: CurrentUser = Depends(get_current_user), db: Session = Depends(get_db)):
    return MembershipService(db).accept(invitation_id, user.id, user.display_name, user.email)


@router.post("/invitations/{invitation_id}/decline", response_model=InvitationResponse)
async def decline_invitation(invitation_id: int, user: CurrentUser = Depends(get_current_user), db: Session = Depends(get_db)):
    return MembershipService(db).decline(invitation_id, user.id, user.email)


@router.delete("/invitations/{invitation_id}", status_code=204)
async def cancel_invitation(invitation_id: int, user: CurrentUser = Depends(get_current_user), db: Session = Depends(get_db)):
    MembershipService(db).cancel(invitation_id, user.id)
    return Response(status_code=204)


@router.get("/plans/{plan_id}/members", response_model=list[MemberResponse])
async def list_members(plan_id: int, user: CurrentUser = Depends(get_current_user), db: Session = Depends(get_db)):
    service = MembershipService(db)
    service.require_member(plan_id, user.id)
    return service.list_members(plan_id)


@router.delete("/plans/{plan_id}/members/{member_user_id}", status_code=204)
async def remove_member(
    plan_id: int,
    member_user_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    MembershipService(db).remove_member(plan_id, member_user_id, user.id)
    return Response(status_code=204)
