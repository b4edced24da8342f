"""Tests for the plan change websocket."""
import pytest
from starlette.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from tripcollab.api.realtime import CLOSE_FORBIDDEN, CLOSE_UNAUTHORIZED, PlanStream
from tripcollab.database import get_db
from tripcollab.main import app
from tripcollab.models import ProposalCategory
from tripcollab.realtime.changes import INSERT, ChangeEvent
from tripcollab.services.proposals import ProposalService


@pytest.fixture
def ws_client(override_get_db):
    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestPlanStream:
    def test_votes_are_scoped_by_known_proposals(self):
        stream = PlanStream(1, {10})
        assert stream.accepts(ChangeEvent("likes", INSERT, new={"proposal_id": 10, "user_id": "bob"}))
        assert not stream.accepts(ChangeEvent("likes", INSERT, new={"proposal_id": 99, "user_id": "bob"}))

    def test_new_proposals_extend_the_scope(self):
        stream = PlanStream(1, set())
        stream.accepts(ChangeEvent("proposals", INSERT, new={"id": 11, "plan_id": 1}))
        assert stream.accepts(ChangeEvent("likes", INSERT, new={"proposal_id": 11}))


class TestPlanSocket:
    def test_requires_identity(self, ws_client, db_session, make_plan):
        plan = make_plan()
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with ws_client.websocket_connect(f"/ws/plans/{plan.id}"):
                pass
        assert exc_info.value.code == CLOSE_UNAUTHORIZED

    def test_members_only(self, ws_client, db_session, make_plan):
        plan = make_plan()
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with ws_client.websocket_connect(f"/ws/plans/{plan.id}?user_id=mallory"):
                pass
        assert exc_info.value.code == CLOSE_FORBIDDEN

    def test_streams_committed_changes(self, ws_client, db_session, make_plan):
        plan = make_plan(members=["bob"])
        with ws_client.websocket_connect(f"/ws/plans/{plan.id}", headers={"X-User-Id": "bob"}) as websocket:
            assert websocket.receive_json() == {"type": "subscribed", "plan_id": plan.id}

            websocket.send_json({"type": "ping"})
            assert websocket.receive_json() == {"type": "pong"}

            proposal = ProposalService(db_session).add_proposal(
                plan.id, "alice", "Alice", ProposalCategory.ITINERARY, "Sintra", {"day": 2, "time": "08:30"}
            )
            change = websocket.receive_json()
            assert change["table"] == "proposals"
            assert change["eventType"] == "INSERT"
            assert change["new"]["id"] == proposal.id
            assert change["old"] is None
