"""Derive the authoritative trip document from the group's votes.

``consolidate`` is pure: no session, no clock, no randomness. The API calls
it for live previews and only persists its output on explicit confirmation.
"""
from collections.abc import Iterable, Mapping
from typing import Any, Union

from tripcollab.models.proposal import ProposalCategory
from tripcollab.schemas.plan import BudgetEstimate
from tripcollab.schemas.plan_document import Booking, DailyItineraryItem, ItineraryDay, PlanDocument
from tripcollab.schemas.proposal import AccommodationDetails, DateDetails, ItineraryDetails
from tripcollab.services.proposals import read_details
from tripcollab.services.seeding import load_plan_document
from tripcollab.services.tally import creation_key, get_field, select_winner, tally, votes_for


def _category(proposal: Any) -> ProposalCategory:
    return ProposalCategory(get_field(proposal, "category"))


def _money(value: float) -> str:
    value = float(value)
    return str(int(value)) if value.is_integer() else f"{value:.2f}"


def _split(proposals: Iterable[Any]) -> dict[ProposalCategory, list]:
    grouped = {category: [] for category in ProposalCategory}
    for proposal in sorted(proposals, key=creation_key):
        grouped[_category(proposal)].append(proposal)
    return grouped


def _positive(proposals: list, votes_by_proposal: Mapping) -> list:
    return [p for p in proposals if tally(votes_for(p, votes_by_proposal)).score > 0]


def format_date_range(details: DateDetails) -> str:
    return f"{details.startDate.isoformat()} - {details.endDate.isoformat()}"


def accommodation_booking(proposal: Any, details: AccommodationDetails) -> Booking:
    return Booking(
        type="Hotel",
        title=get_field(proposal, "title"),
        details=(
            f"{details.location} - ${_money(details.pricePerNight)}/night "
            f"for {details.nights} nights"
        ),
        price=f"${_money(details.pricePerNight)}",
        priceNum=details.pricePerNight,
        id=get_field(proposal, "id"),
        nights=details.nights,
        bookingSite="Various",
        bookingUrl="#",
        alternatives=[],
    )


def itinerary_item(proposal: Any, details: ItineraryDetails) -> DailyItineraryItem:
    return DailyItineraryItem(
        time=details.time,
        activity=get_field(proposal, "title"),
        description=details.description,
        icon="MapPin",
        cost=details.cost,
        location=details.location,
        day_title=details.day_title,
    )


def group_itinerary(proposals: list) -> list[ItineraryDay]:
    """Group itinerary proposals by day, keeping creation order within a day."""
    by_day: dict[int, list[tuple[Any, ItineraryDetails]]] = {}
    for proposal in sorted(proposals, key=creation_key):
        details = read_details(proposal)
        if details is None:
            continue
        by_day.setdefault(details.day, []).append((proposal, details))

    days = []
    for day in sorted(by_day):
        entries = by_day[day]
        first_details = entries[0][1]
        days.append(ItineraryDay(
            day=day,
            title=first_details.day_title or f"Day {day}",
            items=[itinerary_item(p, d) for p, d in entries],
        ))
    return days


def consolidate(
    plan_document: Union[PlanDocument, dict, None],
    proposals: Iterable[Any],
    votes_by_proposal: Mapping,
) -> PlanDocument:
    """Build the consolidated plan document.

    - dates: the winning date proposal, else the original dates
    - bookings: every accommodation with a positive score, followed by the
      original non-lodging bookings
    - dailyItinerary: positive-score activities grouped by day, else the
      original itinerary
    """
    original = load_plan_document(plan_document)
    grouped = _split(proposals)

    dates = original.dates
    winner = select_winner(grouped[ProposalCategory.DATE], votes_by_proposal)
    if winner is not None:
        details = read_details(winner)
        if details is not None:
            dates = format_date_range(details)

    hotel_bookings = []
    for proposal in _positive(grouped[ProposalCategory.ACCOMMODATION], votes_by_proposal):
        details = read_details(proposal)
        if details is not None:
            hotel_bookings.append(accommodation_booking(proposal, details))
    kept_bookings = [b for b in original.bookings if not b.is_lodging]

    itinerary = group_itinerary(_positive(grouped[ProposalCategory.ITINERARY], votes_by_proposal))

    data = original.model_dump()
    data["dates"] = dates
    data["bookings"] = [b.model_dump() for b in hotel_bookings + kept_bookings]
    data["dailyItinerary"] = (
        [d.model_dump() for d in itinerary] if itinerary
        else [d.model_dump() for d in original.dailyItinerary]
    )
    return PlanDocument.model_validate(data)


def estimate_budget(proposals: Iterable[Any], member_count: int) -> BudgetEstimate:
    """Total of every listed activity cost plus nightly price x nights."""
    total = 0.0
    for proposal in proposals:
        category = _category(proposal)
        if category == ProposalCategory.DATE:
            continue
        details = read_details(proposal)
        if details is None:
            continue
        if category == ProposalCategory.ACCOMMODATION:
            total += details.pricePerNight * details.nights
        elif category == ProposalCategory.ITINERARY:
            total += details.cost

    members = max(member_count, 1)
    return BudgetEstimate(total=round(total, 2), per_person=round(total / members, 2), members=member_count)


def document_budget(document: Union[PlanDocument, dict, None]) -> float:
    """Expected spend recorded in a confirmed document: lodging plus activity costs."""
    document = load_plan_document(document)
    total = 0.0
    for booking in document.bookings:
        if booking.is_lodging and booking.priceNum:
            total += booking.priceNum * int(getattr(booking, "nights", None) or 1)
    for day in document.dailyItinerary:
        total += sum(item.cost or 0 for item in day.items)
    return round(total, 2)
