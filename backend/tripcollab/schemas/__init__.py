from tripcollab.schemas.plan_document import PlanDocument, Booking, ItineraryDay, DailyItineraryItem
from tripcollab.schemas.proposal import (
    DateDetails,
    AccommodationDetails,
    ItineraryDetails,
    ProposalDetails,
    parse_details,
)

__all__ = [
    "PlanDocument",
    "Booking",
    "ItineraryDay",
    "DailyItineraryItem",
    "DateDetails",
    "AccommodationDetails",
    "ItineraryDetails",
    "ProposalDetails",
    "parse_details",
]
