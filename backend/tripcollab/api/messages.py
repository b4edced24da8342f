from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from tripcollab.api.deps import CurrentUser, get_current_user
from tripcollab.database import get_db
from tripcollab.schemas.collaboration import MessageCreate, MessageResponse
from tripcollab.services.membership import MembershipService
from tripcollab.services.messages import MessageService

router = APIRouter()


@router.get("/plans/{plan_id}/messages", response_model=list[MessageResponse])
async def list_messages(plan_id: int, user: CurrentUser = Depends(get_current_user), db: Session = Depends(get_db)):
    MembershipService(db).require_member(plan_id, user.id)
    return MessageService(db).list_messages(plan_id)


@router.post("/plans/{plan_id}/messages", response_model=MessageResponse, status_code=201)
async def post_message(
    plan_id: int,
    payload: MessageCreate,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    MembershipService(db).require_member(plan_id, user.id)
    return MessageService(db).post(plan_id, user.id, user.display_name, payload.text)


@router.put("/messages/{message_id}", response_model=MessageResponse)
async def edit_message(
    message_id: int,
    payload: MessageCreate,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return MessageService(db).edit(message_id, user.id, payload.text)


@router.delete("/messages/{message_id}", status_code=204)
async def delete_message(message_id: int, user: CurrentUser = Depends(get_current_user), db: Session = Depends(get_db)):
    MessageService(db).delete(message_id, user.id)
    return Response(status_code=204)
