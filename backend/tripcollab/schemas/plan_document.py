"""The consolidated trip document stored on ``Plan.plan_data``.

Only the fields the collaboration engine reads or rewrites are declared;
everything else (hero image, stats, recommendations, ...) is carried through
untouched via ``extra = "allow"``.
"""
from typing import Optional

from pydantic import BaseModel


class DailyItineraryItem(BaseModel):
    time: str = "TBD"
    activity: str = "Activity"
    description: str = ""
    icon: str = "MapPin"
    cost: Optional[float] = None

    class Config:
        extra = "allow"


class ItineraryDay(BaseModel):
    day: int
    title: str = ""
    items: list[DailyItineraryItem] = []

    class Config:
        extra = "allow"


class Booking(BaseModel):
    type: str
    title: str
    details: str = ""
    price: Optional[str] = None
    priceNum: Optional[float] = None

    class Config:
        extra = "allow"

    @property
    def is_lodging(self) -> bool:
        return self.type.lower() == "hotel"


class PlanDocument(BaseModel):
    title: str = ""
    dates: str = ""
    bookings: list[Booking] = []
    dailyItinerary: list[ItineraryDay] = []

    class Config:
        extra = "allow"
