"""Client-side state owner for one plan's collaboration view.

``PlanReconciler`` keeps its own authoritative copy of the plan's proposals,
votes and messages, applies change-feed events to it and tells listeners
what changed. Views read from it instead of holding their own arrays.

Optimistic writes get a placeholder row immediately. The matching server
INSERT (same author, same content, inside the confirmation window) replaces
the placeholder; a reported failure or an expired window rolls it back.
"""
import asyncio
import hashlib
import logging
import time
import uuid
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from tripcollab.config import get_settings
from tripcollab.models.proposal import ProposalCategory
from tripcollab.realtime.changes import DELETE, INSERT, UPDATE, ChangeEvent, ChangeFeed
from tripcollab.services.tally import VoteTally, creation_key, tally

logger = logging.getLogger(__name__)

PLACEHOLDER_PREFIX = "temp-"
TIMEOUT_ERROR = "timed out waiting for confirmation"

PROPOSALS = "proposals"
VOTES = "likes"
MESSAGES = "doubts"

FetchVotes = Callable[[Any], Awaitable[list]]
Listener = Callable[[str, dict], None]


def content_hash(table: str, row: Mapping) -> str:
    """Fingerprint of the user-authored part of a row.

    Server-side normalisation fills in detail defaults, so only fields the
    author typed are hashed.
    """
    if table == PROPOSALS:
        category = row.get("category")
        category = category.value if isinstance(category, ProposalCategory) else category
        parts = (str(category), (row.get("title") or "").strip())
    else:
        parts = ((row.get("text") or "").strip(),)
    return hashlib.sha256("\x1f".join(parts).encode()).hexdigest()


def is_placeholder(ident: Any) -> bool:
    return isinstance(ident, str) and ident.startswith(PLACEHOLDER_PREFIX)


@dataclass
class PendingOperation:
    correlation_id: str
    table: str
    author_id: str
    content_hash: str
    placeholder_id: str
    started_at: float
    row: dict = field(default_factory=dict)
    timer: Optional[asyncio.TimerHandle] = None


def _as_event(change: Union[ChangeEvent, Mapping]) -> ChangeEvent:
    if isinstance(change, ChangeEvent):
        return change
    return ChangeEvent(
        table=change["table"],
        event_type=change["eventType"],
        new=change.get("new"),
        old=change.get("old"),
    )


class PlanReconciler:

    def __init__(
        self,
        plan_id: int,
        fetch_votes: FetchVotes,
        window_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.plan_id = plan_id
        self.fetch_votes = fetch_votes
        self.window_seconds = window_seconds if window_seconds is not None else get_settings().optimistic_window_seconds
        self.clock = clock

        self._proposals: dict[ProposalCategory, list[dict]] = {c: [] for c in ProposalCategory}
        self._votes: dict[Any, list[dict]] = {}
        self._messages: list[dict] = []
        self._pending: dict[str, PendingOperation] = {}
        self._listeners: list[Listener] = []
        self._tasks: set[asyncio.Task] = set()
        # Latest refetch issued per proposal; older results are discarded
        self._vote_fetches: dict[Any, int] = {}

    # Read API

    def proposals(self, category: Union[ProposalCategory, str]) -> list[dict]:
        return list(self._proposals[ProposalCategory(category)])

    def all_proposals(self) -> list[dict]:
        return [p for category in ProposalCategory for p in self._proposals[category]]

    def votes(self, proposal_id: Any) -> list[dict]:
        return list(self._votes.get(proposal_id, ()))

    def votes_by_proposal(self) -> dict[Any, list[dict]]:
        return {pid: list(rows) for pid, rows in self._votes.items()}

    def tally(self, proposal_id: Any) -> VoteTally:
        return tally(self._votes.get(proposal_id, ()))

    def messages(self) -> list[dict]:
        return list(self._messages)

    @property
    def pending(self) -> dict[str, PendingOperation]:
        return dict(self._pending)

    def has_proposal(self, proposal_id: Any) -> bool:
        return any(p.get("id") == proposal_id for p in self.all_proposals())

    # Listeners

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _notify(self, kind: str, payload: dict) -> None:
        for listener in list(self._listeners):
            try:
                listener(kind, payload)
            except Exception as e:
                logger.error(f"Reconciler listener failed on '{kind}': {e}")

    # Initial state

    def load(
        self,
        proposals: Iterable[Mapping],
        votes_by_proposal: Optional[Mapping] = None,
        messages: Iterable[Mapping] = (),
    ) -> None:
        self._proposals = {c: [] for c in ProposalCategory}
        for proposal in proposals:
            row = dict(proposal)
            self._proposals[ProposalCategory(row["category"])].append(row)
        for category in ProposalCategory:
            self._proposals[category].sort(key=creation_key)

        self._votes = {pid: [dict(v) for v in rows] for pid, rows in (votes_by_proposal or {}).items()}
        self._messages = sorted((dict(m) for m in messages), key=creation_key)
        self._notify("loaded", {"plan_id": self.plan_id})

    # Change feed

    def attach(self, feed: ChangeFeed, loop: Optional[asyncio.AbstractEventLoop] = None) -> int:
        """Subscribe to ``feed`` for this plan. Returns the subscription id."""
        loop = loop or asyncio.get_running_loop()

        def on_change(change: ChangeEvent):
            loop.call_soon_threadsafe(self._spawn, change)

        return feed.subscribe(on_change, tables=(PROPOSALS, VOTES, MESSAGES), plan_id=self.plan_id)

    def _spawn(self, change: ChangeEvent) -> None:
        task = asyncio.ensure_future(self.handle(change))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def handle(self, change: Union[ChangeEvent, Mapping]) -> None:
        change = _as_event(change)
        self.expire()
        if change.table == PROPOSALS:
            self._apply_proposal(change)
        elif change.table == VOTES:
            await self._apply_vote(change)
        elif change.table == MESSAGES:
            self._apply_message(change)

    def _belongs(self, row: Optional[Mapping]) -> bool:
        return bool(row) and row.get("plan_id") == self.plan_id

    def _remove_proposal(self, proposal_id: Any) -> bool:
        removed = False
        for category in ProposalCategory:
            before = len(self._proposals[category])
            self._proposals[category] = [p for p in self._proposals[category] if p.get("id") != proposal_id]
            removed = removed or len(self._proposals[category]) != before
        return removed

    def _upsert_proposal(self, row: dict) -> None:
        self._remove_proposal(row.get("id"))
        category = ProposalCategory(row["category"])
        self._proposals[category].append(row)
        self._proposals[category].sort(key=creation_key)

    def _apply_proposal(self, change: ChangeEvent) -> None:
        if change.event_type == DELETE:
            old = change.old or {}
            if self._remove_proposal(old.get("id")):
                self._votes.pop(old.get("id"), None)
                self._notify("proposal_removed", {"id": old.get("id")})
            return

        row = dict(change.new or {})
        if not self._belongs(row):
            return
        if change.event_type == INSERT:
            confirmed = self._match_pending(PROPOSALS, row)
            if confirmed is not None:
                self._remove_proposal(confirmed.placeholder_id)
            self._upsert_proposal(row)
            self._notify("proposal_added", {"proposal": row, "correlation_id": confirmed and confirmed.correlation_id})
        elif change.event_type == UPDATE:
            self._upsert_proposal(row)
            self._notify("proposal_updated", {"proposal": row})

    async def _apply_vote(self, change: ChangeEvent) -> None:
        row = change.new or change.old or {}
        proposal_id = row.get("proposal_id")
        if proposal_id is None or is_placeholder(proposal_id) or not self.has_proposal(proposal_id):
            return
        sequence = self._vote_fetches.get(proposal_id, 0) + 1
        self._vote_fetches[proposal_id] = sequence
        try:
            votes = await self.fetch_votes(proposal_id)
        except Exception as e:
            if self._vote_fetches.get(proposal_id) != sequence:
                return
            logger.warning(f"Could not refresh votes for proposal {proposal_id}: {e}")
            self._notify("error", {"proposal_id": proposal_id, "error": str(e)})
            return
        if self._vote_fetches.get(proposal_id) != sequence:
            logger.debug(f"Discarding superseded vote refresh for proposal {proposal_id}")
            return
        self._votes[proposal_id] = [dict(v) for v in votes]
        self._notify("votes_changed", {"proposal_id": proposal_id, "tally": self.tally(proposal_id).as_dict()})

    def _apply_message(self, change: ChangeEvent) -> None:
        if change.event_type == DELETE:
            ident = (change.old or {}).get("id")
            before = len(self._messages)
            self._messages = [m for m in self._messages if m.get("id") != ident]
            if len(self._messages) != before:
                self._notify("message_removed", {"id": ident})
            return

        row = dict(change.new or {})
        if not self._belongs(row):
            return
        confirmed = self._match_pending(MESSAGES, row) if change.event_type == INSERT else None
        drop = {row.get("id"), confirmed.placeholder_id if confirmed else None}
        self._messages = [m for m in self._messages if m.get("id") not in drop]
        self._messages.append(row)
        self._messages.sort(key=creation_key)
        kind = "message_added" if change.event_type == INSERT else "message_updated"
        self._notify(kind, {"message": row, "correlation_id": confirmed and confirmed.correlation_id})

    # Optimistic operations

    def begin_optimistic(
        self,
        table: str,
        row: Mapping,
        author_id: str,
        correlation_id: Optional[str] = None,
    ) -> str:
        """Show ``row`` immediately under a placeholder id.

        Returns:
            The correlation id used to confirm or fail the operation.
        """
        if table not in (PROPOSALS, MESSAGES):
            raise ValueError(f"Optimistic writes are not supported for '{table}'")
        correlation_id = correlation_id or uuid.uuid4().hex
        placeholder_id = f"{PLACEHOLDER_PREFIX}{correlation_id}"

        placeholder = {
            **dict(row),
            "id": placeholder_id,
            "plan_id": self.plan_id,
            "user_id": author_id,
            "pending": True,
        }
        pending = PendingOperation(
            correlation_id=correlation_id,
            table=table,
            author_id=author_id,
            content_hash=content_hash(table, placeholder),
            placeholder_id=placeholder_id,
            started_at=self.clock(),
            row=placeholder,
        )
        self._pending[correlation_id] = pending
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop: expire() runs on the next handled change instead
            loop = None
        if loop is not None:
            pending.timer = loop.call_later(self.window_seconds, self.fail, correlation_id, TIMEOUT_ERROR)

        if table == PROPOSALS:
            category = ProposalCategory(placeholder["category"])
            self._proposals[category].append(placeholder)
        else:
            self._messages.append(placeholder)
        self._notify("optimistic", {"correlation_id": correlation_id, "row": placeholder})
        return correlation_id

    def _match_pending(self, table: str, row: Mapping) -> Optional[PendingOperation]:
        digest = content_hash(table, row)
        now = self.clock()
        for pending in sorted(self._pending.values(), key=lambda p: p.started_at):
            if pending.table != table or pending.author_id != row.get("user_id"):
                continue
            if pending.content_hash != digest:
                continue
            if now - pending.started_at > self.window_seconds:
                continue
            del self._pending[pending.correlation_id]
            if pending.timer is not None:
                pending.timer.cancel()
            logger.debug(f"Optimistic {table} write {pending.correlation_id} confirmed as {row.get('id')}")
            return pending
        return None

    def _rollback(self, pending: PendingOperation) -> None:
        if pending.table == PROPOSALS:
            self._remove_proposal(pending.placeholder_id)
        else:
            self._messages = [m for m in self._messages if m.get("id") != pending.placeholder_id]

    def fail(self, correlation_id: str, error: Union[str, Exception]) -> bool:
        """Roll back a pending write whose request failed."""
        pending = self._pending.pop(correlation_id, None)
        if pending is None:
            return False
        if pending.timer is not None:
            pending.timer.cancel()
        self._rollback(pending)
        logger.info(f"Optimistic {pending.table} write {correlation_id} rolled back: {error}")
        self._notify("rollback", {"correlation_id": correlation_id, "error": str(error)})
        return True

    def expire(self) -> list[str]:
        """Roll back pending writes whose confirmation window has passed."""
        now = self.clock()
        expired = [
            p.correlation_id for p in self._pending.values()
            if now - p.started_at > self.window_seconds
        ]
        for correlation_id in expired:
            self.fail(correlation_id, TIMEOUT_ERROR)
        return expired
