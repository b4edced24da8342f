import asyncio
import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from sqlalchemy.orm import Session

from tripcollab.database import get_db
from tripcollab.realtime.changes import ChangeEvent, change_feed
from tripcollab.services.membership import MembershipService
from tripcollab.services.proposals import ProposalService

logger = logging.getLogger(__name__)

router = APIRouter()

# Close codes in the application range (4000-4999)
CLOSE_UNAUTHORIZED = 4401
CLOSE_FORBIDDEN = 4403


class PlanStream:
    """Forwards one plan's change events to a websocket.

    Vote rows carry no plan id, so they are scoped through the set of
    proposal ids the stream has seen for this plan.
    """

    def __init__(self, plan_id: int, proposal_ids: set):
        self.plan_id = plan_id
        self.proposal_ids = set(proposal_ids)
        self.queue: asyncio.Queue = asyncio.Queue()

    def accepts(self, change: ChangeEvent) -> bool:
        row = change.row
        if change.table == "proposals":
            if change.event_type == "INSERT":
                self.proposal_ids.add(row.get("id"))
            return True
        if change.table == "likes":
            return row.get("proposal_id") in self.proposal_ids
        return True

    def push(self, change: ChangeEvent) -> None:
        if self.accepts(change):
            self.queue.put_nowait(change)


async def _send_changes(websocket: WebSocket, stream: PlanStream):
    while True:
        change = await stream.queue.get()
        await websocket.send_json(change.as_dict())


async def _receive_pings(websocket: WebSocket):
    while True:
        data = await websocket.receive_json()
        if isinstance(data, dict) and data.get("type") == "ping":
            await websocket.send_json({"type": "pong"})


@router.websocket("/ws/plans/{plan_id}")
async def plan_changes(websocket: WebSocket, plan_id: int, db: Session = Depends(get_db)):
    user_id = websocket.headers.get("x-user-id") or websocket.query_params.get("user_id")
    if not user_id:
        await websocket.close(code=CLOSE_UNAUTHORIZED)
        return
    if MembershipService(db).find_member(plan_id, user_id) is None:
        await websocket.close(code=CLOSE_FORBIDDEN)
        return

    await websocket.accept()
    stream = PlanStream(plan_id, {p.id for p in ProposalService(db).list_proposals(plan_id)})
    loop = asyncio.get_running_loop()
    subscription = change_feed.subscribe(
        lambda change: loop.call_soon_threadsafe(stream.push, change),
        plan_id=plan_id,
    )
    logger.info(f"[ws] {user_id} subscribed to plan {plan_id}")

    tasks = [
        asyncio.create_task(_send_changes(websocket, stream)),
        asyncio.create_task(_receive_pings(websocket)),
    ]
    try:
        await websocket.send_json({"type": "subscribed", "plan_id": plan_id})
        done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            task.result()
    except WebSocketDisconnect:
        logger.info(f"[ws] {user_id} disconnected from plan {plan_id}")
    except Exception as e:
        logger.error(f"[ws] Error streaming plan {plan_id} to {user_id}: {e}")
    finally:
        change_feed.unsubscribe(subscription)
        for task in tasks:
            task.cancel()
