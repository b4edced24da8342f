"""Vote tallying, winner selection and the readiness gate.

Everything here is pure: no session, no clock. Proposals and votes may be ORM
rows or plain dicts (as delivered by the change feed), so fields are read
through ``get_field``.
"""
import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Optional

from tripcollab.models.vote import VoteType


@dataclass(frozen=True)
class VoteTally:
    upvotes: int = 0
    downvotes: int = 0

    @property
    def score(self) -> int:
        return self.upvotes - self.downvotes

    def as_dict(self) -> dict:
        return {"upvotes": self.upvotes, "downvotes": self.downvotes, "score": self.score}


@dataclass(frozen=True)
class CategoryReadiness:
    proposals: int
    approved: int
    satisfied: bool


@dataclass(frozen=True)
class Readiness:
    accepted_members: int
    required_votes: int
    date: CategoryReadiness
    accommodation: CategoryReadiness
    itinerary: CategoryReadiness

    @property
    def ready(self) -> bool:
        if self.accepted_members == 0:
            return False
        return self.date.satisfied and self.accommodation.satisfied and self.itinerary.satisfied


def get_field(obj: Any, name: str, default=None):
    if isinstance(obj, Mapping):
        return obj.get(name, default)
    return getattr(obj, name, default)


def _vote_type(vote: Any) -> VoteType:
    return VoteType(get_field(vote, "type"))


def tally(votes: Iterable[Any]) -> VoteTally:
    up = down = 0
    for vote in votes:
        if _vote_type(vote) == VoteType.UP:
            up += 1
        else:
            down += 1
    return VoteTally(upvotes=up, downvotes=down)


def user_stance(votes: Iterable[Any], user_id: str) -> Optional[VoteType]:
    for vote in votes:
        if get_field(vote, "user_id") == user_id:
            return _vote_type(vote)
    return None


def creation_key(proposal: Any) -> tuple:
    """Sort key giving server creation order, with id as the final tie-break."""
    created = get_field(proposal, "created_at")
    if created is None:
        # Unsaved rows sort after persisted ones
        created_key = "~"
    elif isinstance(created, str):
        created_key = created
    else:
        created_key = created.isoformat()
    ident = get_field(proposal, "id")
    # Integer ids sort numerically; placeholder ids ("temp-...") sort last
    return (created_key, 0 if isinstance(ident, int) else 1, ident if isinstance(ident, int) else 0, str(ident))


def votes_for(proposal: Any, votes_by_proposal: Mapping) -> list:
    return list(votes_by_proposal.get(get_field(proposal, "id"), ()) or ())


def select_winner(proposals: Iterable[Any], votes_by_proposal: Mapping) -> Optional[Any]:
    """Highest score wins; ties go to the earliest-created proposal."""
    winner = None
    best = None
    for proposal in sorted(proposals, key=creation_key):
        score = tally(votes_for(proposal, votes_by_proposal)).score
        # Strict comparison keeps the earlier proposal on a tie
        if best is None or score > best:
            winner, best = proposal, score
    return winner


def required_votes(accepted_member_count: int) -> int:
    return math.ceil(accepted_member_count / 2)


def _approved_count(proposals: list, votes_by_proposal: Mapping, quorum: int) -> int:
    return sum(
        1 for p in proposals
        if tally(votes_for(p, votes_by_proposal)).upvotes >= quorum
    )


def evaluate_readiness(
    accepted_member_count: int,
    dates: Iterable[Any],
    accommodations: Iterable[Any],
    itinerary: Iterable[Any],
    votes_by_proposal: Mapping,
) -> Readiness:
    """Per-category quorum report.

    Itinerary and accommodation need every listed option to reach quorum;
    dates need only one option to reach it.
    """
    quorum = required_votes(accepted_member_count)
    dates, accommodations, itinerary = list(dates), list(accommodations), list(itinerary)

    date_ok = _approved_count(dates, votes_by_proposal, quorum)
    acc_ok = _approved_count(accommodations, votes_by_proposal, quorum)
    it_ok = _approved_count(itinerary, votes_by_proposal, quorum)

    return Readiness(
        accepted_members=accepted_member_count,
        required_votes=quorum,
        date=CategoryReadiness(len(dates), date_ok, date_ok >= 1),
        accommodation=CategoryReadiness(len(accommodations), acc_ok, acc_ok == len(accommodations)),
        itinerary=CategoryReadiness(len(itinerary), it_ok, it_ok == len(itinerary)),
    )


def all_required_votes_received(
    accepted_member_count: int,
    dates: Iterable[Any],
    accommodations: Iterable[Any],
    itinerary: Iterable[Any],
    votes_by_proposal: Mapping,
) -> bool:
    return evaluate_readiness(
        accepted_member_count, dates, accommodations, itinerary, votes_by_proposal
    ).ready
