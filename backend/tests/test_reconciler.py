"""Tests for the client-side plan reconciler."""
import asyncio
from unittest.mock import AsyncMock

import pytest

from tripcollab.realtime.changes import DELETE, INSERT, UPDATE, ChangeEvent, ChangeFeed
from tripcollab.realtime.reconciler import PlanReconciler, content_hash, is_placeholder

PLAN_ID = 1


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


def _proposal(pid, title, category="itinerary", minute=0, plan_id=PLAN_ID, user_id="alice"):
    return {
        "id": pid,
        "plan_id": plan_id,
        "user_id": user_id,
        "category": category,
        "title": title,
        "details": {"day": 1, "time": "10:00"},
        "created_at": f"2026-10-01T09:{minute:02d}:00",
    }


def _vote(proposal_id, user_id, vote_type="up"):
    return {"proposal_id": proposal_id, "user_id": user_id, "type": vote_type}


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fetch_votes():
    return AsyncMock(return_value=[])


@pytest.fixture
def reconciler(fetch_votes, clock):
    rec = PlanReconciler(PLAN_ID, fetch_votes, window_seconds=5.0, clock=clock)
    rec.load(
        [_proposal(2, "Fado night", minute=5), _proposal(1, "Tram 28", minute=1),
         _proposal(3, "Casa Alfama", category="accommodation", minute=2)],
        {1: [_vote(1, "bob")]},
        [{"id": 1, "plan_id": PLAN_ID, "user_id": "bob", "text": "Hi", "created_at": "2026-10-01T09:00:00"}],
    )
    return rec


@pytest.fixture
def events(reconciler):
    received = []
    reconciler.add_listener(lambda kind, payload: received.append((kind, payload)))
    return received


class TestLoad:
    def test_groups_and_orders_by_creation(self, reconciler):
        assert [p["title"] for p in reconciler.proposals("itinerary")] == ["Tram 28", "Fado night"]
        assert [p["title"] for p in reconciler.proposals("accommodation")] == ["Casa Alfama"]
        assert reconciler.proposals("date") == []
        assert reconciler.tally(1).upvotes == 1
        assert len(reconciler.messages()) == 1

    def test_notifies_listeners(self, fetch_votes):
        rec = PlanReconciler(PLAN_ID, fetch_votes)
        seen = []
        remove = rec.add_listener(lambda kind, payload: seen.append(kind))
        rec.load([])
        remove()
        rec.load([])
        assert seen == ["loaded"]


class TestProposalEvents:
    async def test_insert(self, reconciler, events):
        await reconciler.handle(ChangeEvent("proposals", INSERT, new=_proposal(4, "Sintra", minute=9)))
        assert [p["id"] for p in reconciler.proposals("itinerary")] == [1, 2, 4]
        assert events[-1][0] == "proposal_added"
        assert events[-1][1]["correlation_id"] is None

    async def test_other_plans_are_ignored(self, reconciler, events):
        await reconciler.handle(ChangeEvent("proposals", INSERT, new=_proposal(9, "Elsewhere", plan_id=2)))
        assert not reconciler.has_proposal(9)
        assert events == []

    async def test_update_replaces_in_place(self, reconciler, events):
        updated = {**_proposal(2, "Fado at Clube", minute=5)}
        await reconciler.handle(ChangeEvent("proposals", UPDATE, new=updated))
        assert [p["title"] for p in reconciler.proposals("itinerary")] == ["Tram 28", "Fado at Clube"]
        assert events[-1][0] == "proposal_updated"

    async def test_delete_removes_proposal_and_votes(self, reconciler, events):
        await reconciler.handle(ChangeEvent("proposals", DELETE, old={"id": 1}))
        assert not reconciler.has_proposal(1)
        assert reconciler.votes(1) == []
        assert events == [("proposal_removed", {"id": 1})]

    async def test_delete_of_unknown_row_is_silent(self, reconciler, events):
        await reconciler.handle(ChangeEvent("proposals", DELETE, old={"id": 99}))
        assert events == []

    async def test_accepts_client_shaped_events(self, reconciler):
        await reconciler.handle({"table": "proposals", "eventType": "INSERT", "new": _proposal(5, "Belem"), "old": None})
        assert reconciler.has_proposal(5)


class TestVoteEvents:
    async def test_refetches_votes(self, reconciler, events, fetch_votes):
        fetch_votes.return_value = [_vote(2, "bob"), _vote(2, "carol"), _vote(2, "dan", "down")]

        await reconciler.handle(ChangeEvent("likes", INSERT, new=_vote(2, "dan", "down")))

        fetch_votes.assert_awaited_once_with(2)
        assert events[-1] == ("votes_changed", {
            "proposal_id": 2,
            "tally": {"upvotes": 2, "downvotes": 1, "score": 1},
        })

    async def test_vote_removal_also_refetches(self, reconciler, fetch_votes):
        await reconciler.handle(ChangeEvent("likes", DELETE, old=_vote(1, "bob")))
        fetch_votes.assert_awaited_once_with(1)
        assert reconciler.tally(1).upvotes == 0

    async def test_votes_for_unknown_proposals_are_ignored(self, reconciler, fetch_votes):
        await reconciler.handle(ChangeEvent("likes", INSERT, new=_vote(77, "bob")))
        fetch_votes.assert_not_awaited()

    async def test_fetch_failure_keeps_previous_tally(self, reconciler, events, fetch_votes):
        fetch_votes.side_effect = RuntimeError("offline")

        await reconciler.handle(ChangeEvent("likes", INSERT, new=_vote(1, "carol")))

        assert reconciler.tally(1).upvotes == 1
        assert events[-1][0] == "error"

    async def test_slow_refetch_does_not_overwrite_newer_votes(self, reconciler, fetch_votes):
        calls = []
        release = asyncio.Event()

        async def fetch(proposal_id):
            calls.append(proposal_id)
            if len(calls) == 1:
                await release.wait()
                return [_vote(1, "bob"), _vote(1, "carol")]
            return []

        fetch_votes.side_effect = fetch

        first = asyncio.ensure_future(reconciler.handle(ChangeEvent("likes", INSERT, new=_vote(1, "carol"))))
        await asyncio.sleep(0)
        await reconciler.handle(ChangeEvent("likes", DELETE, old=_vote(1, "bob")))
        assert reconciler.votes(1) == []

        release.set()
        await first
        assert calls == [1, 1]
        assert reconciler.votes(1) == []
        assert reconciler.tally(1).upvotes == 0


class TestMessageEvents:
    async def test_insert_update_delete(self, reconciler, events):
        row = {"id": 2, "plan_id": PLAN_ID, "user_id": "alice", "text": "Dinner?", "created_at": "2026-10-01T10:00:00"}
        await reconciler.handle(ChangeEvent("doubts", INSERT, new=row))
        await reconciler.handle(ChangeEvent("doubts", UPDATE, new={**row, "text": "Dinner at 8?"}))
        assert [m["text"] for m in reconciler.messages()] == ["Hi", "Dinner at 8?"]

        await reconciler.handle(ChangeEvent("doubts", DELETE, old={"id": 1}))
        assert [m["id"] for m in reconciler.messages()] == [2]
        assert [kind for kind, _ in events] == ["message_added", "message_updated", "message_removed"]

    async def test_messages_stay_in_creation_order(self, reconciler):
        early = {"id": 3, "plan_id": PLAN_ID, "user_id": "carol", "text": "Flights?", "created_at": "2026-10-01T08:30:00"}
        await reconciler.handle(ChangeEvent("doubts", INSERT, new=early))
        assert [m["id"] for m in reconciler.messages()] == [3, 1]


class TestOptimisticWrites:
    async def test_server_insert_confirms_placeholder(self, reconciler, events, clock):
        correlation_id = reconciler.begin_optimistic(
            "proposals", {"category": "itinerary", "title": "Sintra", "details": {"day": 2, "time": "08:30"}}, "bob"
        )
        placeholder = reconciler.proposals("itinerary")[-1]
        assert is_placeholder(placeholder["id"])
        assert placeholder["pending"] is True

        clock.now += 2
        server_row = {**_proposal(10, "Sintra", minute=30, user_id="bob"), "details": {"day": 2, "time": "08:30",
                                                                                      "day_title": "Day 2"}}
        await reconciler.handle(ChangeEvent("proposals", INSERT, new=server_row))

        ids = [p["id"] for p in reconciler.proposals("itinerary")]
        assert ids == [1, 2, 10]
        assert reconciler.pending == {}
        assert events[-1][1]["correlation_id"] == correlation_id

    async def test_other_authors_do_not_confirm(self, reconciler):
        reconciler.begin_optimistic("proposals", {"category": "itinerary", "title": "Sintra"}, "bob")
        await reconciler.handle(ChangeEvent("proposals", INSERT, new=_proposal(10, "Sintra", user_id="carol")))

        assert len(reconciler.pending) == 1
        assert len(reconciler.proposals("itinerary")) == 4

    async def test_late_echo_replaces_expired_placeholder(self, reconciler, events, clock):
        correlation_id = reconciler.begin_optimistic("proposals", {"category": "itinerary", "title": "Sintra"}, "bob")
        clock.now += 6
        await reconciler.handle(ChangeEvent("proposals", INSERT, new=_proposal(10, "Sintra", minute=30, user_id="bob")))

        assert reconciler.pending == {}
        assert [p["id"] for p in reconciler.proposals("itinerary")] == [1, 2, 10]
        assert ("rollback", {"correlation_id": correlation_id, "error": "timed out waiting for confirmation"}) in events
        assert events[-1][0] == "proposal_added"
        assert events[-1][1]["correlation_id"] is None

    async def test_window_timer_rolls_back_without_further_changes(self, fetch_votes):
        rec = PlanReconciler(PLAN_ID, fetch_votes, window_seconds=0.01)
        seen = []
        rec.add_listener(lambda kind, payload: seen.append(kind))

        rec.begin_optimistic("doubts", {"text": "Surfing?"}, "bob")
        assert len(rec.messages()) == 1
        await asyncio.sleep(0.05)

        assert rec.pending == {}
        assert rec.messages() == []
        assert seen == ["optimistic", "rollback"]

    async def test_confirmation_cancels_window_timer(self, fetch_votes):
        rec = PlanReconciler(PLAN_ID, fetch_votes, window_seconds=0.01)
        seen = []
        rec.add_listener(lambda kind, payload: seen.append(kind))

        rec.begin_optimistic("doubts", {"text": "Surfing?"}, "bob")
        row = {"id": 5, "plan_id": PLAN_ID, "user_id": "bob", "text": "Surfing?", "created_at": "2026-10-01T11:00:00"}
        await rec.handle(ChangeEvent("doubts", INSERT, new=row))
        await asyncio.sleep(0.05)

        assert [m["id"] for m in rec.messages()] == [5]
        assert "rollback" not in seen

    def test_expire_rolls_back(self, reconciler, events, clock):
        correlation_id = reconciler.begin_optimistic("doubts", {"text": "Anyone up for surfing?"}, "bob")
        assert len(reconciler.messages()) == 2

        clock.now += 4
        assert reconciler.expire() == []
        clock.now += 2
        assert reconciler.expire() == [correlation_id]
        assert len(reconciler.messages()) == 1
        assert events[-1] == ("rollback", {"correlation_id": correlation_id, "error": "timed out waiting for confirmation"})

    def test_fail_rolls_back(self, reconciler, events):
        correlation_id = reconciler.begin_optimistic(
            "proposals", {"category": "accommodation", "title": "Baixa Rooms"}, "bob", correlation_id="abc"
        )
        assert correlation_id == "abc"
        assert reconciler.fail("abc", RuntimeError("403")) is True
        assert [p["id"] for p in reconciler.proposals("accommodation")] == [3]
        assert events[-1][0] == "rollback"
        assert reconciler.fail("abc", "again") is False

    async def test_message_confirmation(self, reconciler):
        reconciler.begin_optimistic("doubts", {"text": " Surfing? "}, "bob")
        row = {"id": 5, "plan_id": PLAN_ID, "user_id": "bob", "text": "Surfing?", "created_at": "2026-10-01T11:00:00"}
        await reconciler.handle(ChangeEvent("doubts", INSERT, new=row))
        assert [m["id"] for m in reconciler.messages()] == [1, 5]

    def test_votes_are_not_optimistic(self, reconciler):
        with pytest.raises(ValueError):
            reconciler.begin_optimistic("likes", {"proposal_id": 1, "type": "up"}, "bob")

    def test_content_hash_ignores_server_filled_fields(self):
        typed = {"category": "itinerary", "title": "Sintra", "details": {"day": 2}}
        stored = {"category": "itinerary", "title": "Sintra ", "details": {"day": 2, "cost": 0}}
        assert content_hash("proposals", typed) == content_hash("proposals", stored)


class TestAttach:
    async def test_feed_events_reach_the_reconciler(self, reconciler):
        feed = ChangeFeed()
        subscription_id = reconciler.attach(feed)

        feed.publish(ChangeEvent("proposals", INSERT, new=_proposal(6, "LX Factory", minute=40)))
        feed.publish(ChangeEvent("proposals", INSERT, new=_proposal(7, "Porto", plan_id=2)))
        for _ in range(5):
            await asyncio.sleep(0)

        assert reconciler.has_proposal(6)
        assert not reconciler.has_proposal(7)
        feed.unsubscribe(subscription_id)
