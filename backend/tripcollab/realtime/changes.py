"""Store-side change feed.

Session events collect row snapshots while a transaction flushes and publish
them only once it commits, so subscribers never see rolled-back writes.
Events use the ``{table, eventType, new, old}`` shape clients consume.
"""
import enum
import itertools
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Optional

from sqlalchemy import event, inspect
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

WATCHED_TABLES = frozenset({
    "plans",
    "plan_members",
    "invitations",
    "proposals",
    "likes",
    "doubts",
    "expenses",
})

INSERT = "INSERT"
UPDATE = "UPDATE"
DELETE = "DELETE"

_PENDING_KEY = "tripcollab_pending_changes"


@dataclass(frozen=True)
class ChangeEvent:
    table: str
    event_type: str
    new: Optional[dict] = None
    old: Optional[dict] = None

    @property
    def row(self) -> dict:
        return self.new or self.old or {}

    @property
    def plan_id(self) -> Optional[int]:
        if self.table == "plans":
            return self.row.get("id")
        return self.row.get("plan_id")

    def as_dict(self) -> dict:
        return {"table": self.table, "eventType": self.event_type, "new": self.new, "old": self.old}


@dataclass
class Subscription:
    id: int
    callback: Callable[[ChangeEvent], None]
    tables: Optional[frozenset] = None
    plan_id: Optional[int] = None

    def matches(self, change: ChangeEvent) -> bool:
        if self.tables is not None and change.table not in self.tables:
            return False
        # Rows without a plan column (likes) pass; consumers scope them by proposal
        if self.plan_id is not None and change.plan_id is not None:
            return change.plan_id == self.plan_id
        return True


class ChangeFeed:

    def __init__(self):
        self._subscriptions: dict[int, Subscription] = {}
        self._ids = itertools.count(1)

    def subscribe(
        self,
        callback: Callable[[ChangeEvent], None],
        tables: Optional[Iterable[str]] = None,
        plan_id: Optional[int] = None,
    ) -> int:
        subscription = Subscription(
            id=next(self._ids),
            callback=callback,
            tables=frozenset(tables) if tables is not None else None,
            plan_id=plan_id,
        )
        self._subscriptions[subscription.id] = subscription
        logger.debug(f"Change subscription {subscription.id} opened (plan={plan_id})")
        return subscription.id

    def unsubscribe(self, subscription_id: int) -> None:
        if self._subscriptions.pop(subscription_id, None) is not None:
            logger.debug(f"Change subscription {subscription_id} closed")

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def publish(self, change: ChangeEvent) -> None:
        for subscription in list(self._subscriptions.values()):
            if not subscription.matches(change):
                continue
            try:
                subscription.callback(change)
            except Exception as e:
                logger.error(f"Change subscriber {subscription.id} failed on {change.table} {change.event_type}: {e}")


def _plain(value: Any) -> Any:
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def snapshot(obj: Any, previous: bool = False) -> dict:
    """Column values of a mapped object; ``previous`` gives pre-flush values.

    Reads loaded state only, never emitting SQL from inside a flush.
    """
    state = inspect(obj)
    row = {}
    for attr in state.mapper.column_attrs:
        value = state.dict.get(attr.key)
        if previous:
            history = state.attrs[attr.key].history
            if history.deleted:
                value = history.deleted[0]
        row[attr.key] = _plain(value)
    return row


def _table(obj: Any) -> Optional[str]:
    table = getattr(obj, "__tablename__", None)
    return table if table in WATCHED_TABLES else None


def collect_changes(session: Session) -> list[ChangeEvent]:
    changes = []
    for obj in session.new:
        table = _table(obj)
        if table:
            changes.append(ChangeEvent(table, INSERT, new=snapshot(obj)))
    for obj in session.dirty:
        table = _table(obj)
        if table and session.is_modified(obj, include_collections=False):
            changes.append(ChangeEvent(table, UPDATE, new=snapshot(obj), old=snapshot(obj, previous=True)))
    for obj in session.deleted:
        table = _table(obj)
        if table:
            changes.append(ChangeEvent(table, DELETE, old=snapshot(obj, previous=True)))
    return changes


def attach_change_feed(session_factory, feed: ChangeFeed) -> None:
    """Publish committed changes made through ``session_factory`` sessions to ``feed``."""

    def after_flush(session, flush_context):
        session.info.setdefault(_PENDING_KEY, []).extend(collect_changes(session))

    def after_commit(session):
        pending = session.info.pop(_PENDING_KEY, [])
        for change in pending:
            feed.publish(change)
        if pending:
            logger.debug(f"Published {len(pending)} change(s)")

    def after_rollback(session):
        session.info.pop(_PENDING_KEY, None)

    event.listen(session_factory, "after_flush", after_flush)
    event.listen(session_factory, "after_commit", after_commit)
    event.listen(session_factory, "after_rollback", after_rollback)


change_feed = ChangeFeed()
