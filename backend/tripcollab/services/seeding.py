"""Extraction helpers used when seeding proposals from a draft plan document.

Draft documents come from the AI collaborator or from older saved plans, so
every field is free text. These helpers pull structured values out of that
text and fall back to safe defaults instead of failing.
"""
import logging
import re
from datetime import date, datetime, timedelta
from typing import Any, Optional, Union

from pydantic import ValidationError as SchemaError

from tripcollab.schemas.plan_document import Booking, DailyItineraryItem, ItineraryDay, PlanDocument

logger = logging.getLogger(__name__)

AI_AUTHOR_NAME = "AI Assistant"

RANGE_SEPARATORS = (" - ", " – ", " — ", " to ")

DATED_FORMATS = (
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%b %d, %Y",
    "%B %d, %Y",
    "%b %d %Y",
    "%B %d %Y",
    "%d %b %Y",
    "%d %B %Y",
    "%m/%d/%Y",
)

# Parsed by appending the reference year, so Feb 29 works in leap years
YEARLESS_FORMATS = (
    "%b %d",
    "%B %d",
    "%d %b",
    "%d %B",
)

# A parsed year this far behind the reference year is a parsing artifact
MAX_YEAR_LAG = 5

PRICE_PATTERN = re.compile(r"\$?\s*([\d,]+(?:\.\d+)?)")
NIGHTS_PATTERNS = (
    re.compile(r"(\d+)\s*nights?", re.IGNORECASE),
    re.compile(r"for (\d+)", re.IGNORECASE),
)
COST_PATTERNS = (
    re.compile(r"(?:Cost|Price|Est\.|Total)[:\s]*\$?\s*([\d,]+(?:\.\d+)?)", re.IGNORECASE),
    re.compile(r"\$([\d,]+(?:\.\d+)?)"),
)


def _to_number(text: str) -> Optional[float]:
    try:
        return float(text.replace(",", ""))
    except ValueError:
        return None


def _parse_single_date(text: str, reference_year: int) -> tuple[Optional[date], bool]:
    """Parse one side of a range. Returns (date, year_was_guessed)."""
    cleaned = " ".join(text.replace(".", "").split())
    if not cleaned:
        return None, False

    for fmt in DATED_FORMATS:
        try:
            parsed = datetime.strptime(cleaned, fmt).date()
        except ValueError:
            continue
        if parsed.year < reference_year - MAX_YEAR_LAG:
            try:
                return parsed.replace(year=reference_year), True
            except ValueError:
                return None, False
        return parsed, False

    for fmt in YEARLESS_FORMATS:
        try:
            parsed = datetime.strptime(f"{cleaned} {reference_year}", f"{fmt} %Y").date()
        except ValueError:
            continue
        return parsed, True

    return None, False


def parse_date_range(text: Optional[str], today: date) -> Optional[tuple[date, date]]:
    """Parse a free-text "START - END" range.

    Year-less or implausible years are moved to the current year; an end date
    that would then precede its start rolls into the following year.
    Returns None when the text is not a recognisable range.
    """
    if not text:
        return None
    stripped = text.strip()

    for separator in RANGE_SEPARATORS:
        if separator not in stripped:
            continue
        start_text, _, end_text = stripped.partition(separator)
        start, start_guessed = _parse_single_date(start_text, today.year)
        end, end_guessed = _parse_single_date(end_text, today.year)
        if start is None or end is None:
            continue
        if end < start and (start_guessed or end_guessed):
            try:
                end = end.replace(year=end.year + 1)
            except ValueError:
                end = end + timedelta(days=365)
        if end < start:
            logger.debug(f"Date range '{text}' ends before it starts")
            return None
        return start, end

    return None


def default_date_window(today: date, offset_days: int = 30, length_days: int = 5) -> tuple[date, date]:
    start = today + timedelta(days=offset_days)
    return start, start + timedelta(days=length_days)


def extract_nightly_price(booking: dict[str, Any]) -> float:
    price_num = booking.get("priceNum")
    if isinstance(price_num, (int, float)) and price_num > 0:
        return float(price_num)

    for text in (booking.get("price") or "", booking.get("details") or ""):
        match = PRICE_PATTERN.search(str(text))
        if match:
            value = _to_number(match.group(1))
            if value is not None:
                return value
    return 0.0


def extract_nights(details: Optional[str]) -> int:
    for pattern in NIGHTS_PATTERNS:
        match = pattern.search(details or "")
        if match:
            nights = int(match.group(1))
            if nights >= 1:
                return nights
    return 1


def extract_location(details: Optional[str]) -> str:
    location = (details or "").split(" - ")[0].strip()
    return location or "Unknown"


def extract_activity_cost(item: dict[str, Any]) -> float:
    cost = item.get("cost")
    if isinstance(cost, (int, float)) and cost > 0:
        return float(cost)

    description = item.get("description") or ""
    for pattern in COST_PATTERNS:
        match = pattern.search(description)
        if match:
            value = _to_number(match.group(1))
            if value is not None:
                return value
    return 0.0


def date_seed_rows(
    document: dict[str, Any],
    today: date,
    offset_days: int = 30,
    length_days: int = 5,
) -> list[tuple[str, dict]]:
    dates_text = (document.get("dates") or "").strip()
    if not dates_text:
        return []

    parsed = parse_date_range(dates_text, today)
    if parsed is None:
        logger.info(f"Dates '{dates_text}' not a parseable range, using default window")
        parsed = default_date_window(today, offset_days, length_days)

    start, end = parsed
    return [(
        f"{start.isoformat()} - {end.isoformat()}",
        {"startDate": start.isoformat(), "endDate": end.isoformat()},
    )]


def accommodation_seed_rows(document: dict[str, Any]) -> list[tuple[str, dict]]:
    rows = []
    for booking in document.get("bookings") or []:
        if not isinstance(booking, dict) or (booking.get("type") or "").lower() != "hotel":
            continue
        details_text = booking.get("details") or ""
        rows.append((
            booking.get("title") or "Accommodation",
            {
                "location": extract_location(details_text),
                "pricePerNight": extract_nightly_price(booking),
                "nights": extract_nights(details_text),
            },
        ))
    return rows


def itinerary_seed_rows(document: dict[str, Any]) -> list[tuple[str, dict]]:
    rows = []
    for index, day_plan in enumerate(document.get("dailyItinerary") or [], start=1):
        if not isinstance(day_plan, dict):
            continue
        day = day_plan.get("day")
        if not isinstance(day, int) or day < 1:
            day = index
        day_title = day_plan.get("title") or f"Day {day}"

        for item in day_plan.get("items") or []:
            if not isinstance(item, dict):
                continue
            rows.append((
                item.get("activity") or "Activity",
                {
                    "day": day,
                    "time": item.get("time") or "TBD",
                    "description": item.get("description") or "",
                    "location": item.get("location") or "TBD",
                    "cost": extract_activity_cost(item),
                    "day_title": day_title,
                },
            ))
    return rows


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _text(value: Any, default: str = "") -> str:
    if value is None:
        return default
    text = str(value).strip()
    return text or default


def _amount(value: Any) -> Optional[float]:
    """Numeric amount from a number or money text like "$1,250.50"."""
    if _is_number(value):
        return float(value)
    match = PRICE_PATTERN.search(str(value or ""))
    if match:
        return _to_number(match.group(1))
    return None


def _clean_item(item: dict[str, Any]) -> dict[str, Any]:
    cleaned = dict(item)
    for key, default in (("time", "TBD"), ("activity", "Activity"), ("description", ""), ("icon", "MapPin")):
        cleaned[key] = _text(item.get(key), default)
    cost = _amount(item.get("cost")) if item.get("cost") is not None else None
    if cost is None and COST_PATTERNS[0].search(cleaned["description"]):
        cost = extract_activity_cost(item)
    cleaned["cost"] = cost
    return cleaned


def _clean_day(index: int, day_plan: dict[str, Any]) -> Optional[ItineraryDay]:
    day = day_plan.get("day")
    if not _is_number(day) or int(day) < 1:
        day = index
    cleaned = dict(day_plan)
    cleaned["day"] = int(day)
    cleaned["title"] = _text(day_plan.get("title"), f"Day {int(day)}")

    items = []
    for item in day_plan.get("items") or []:
        if not isinstance(item, dict):
            continue
        try:
            items.append(DailyItineraryItem.model_validate(_clean_item(item)))
        except SchemaError as e:
            logger.warning(f"Dropping unreadable itinerary item on day {day}: {e}")
    cleaned["items"] = items
    try:
        return ItineraryDay.model_validate(cleaned)
    except SchemaError as e:
        logger.warning(f"Dropping unreadable itinerary day {day}: {e}")
        return None


def _clean_booking(booking: dict[str, Any]) -> Optional[Booking]:
    cleaned = dict(booking)
    cleaned["type"] = _text(booking.get("type"), "Other")
    cleaned["title"] = _text(booking.get("title"), cleaned["type"])
    cleaned["details"] = _text(booking.get("details"))
    price = booking.get("price")
    cleaned["price"] = None if price is None else _text(price)
    price_num = _amount(booking.get("priceNum")) if booking.get("priceNum") is not None else None
    if price_num is None and cleaned["type"].lower() == "hotel":
        price_num = extract_nightly_price(booking) or None
    cleaned["priceNum"] = price_num
    try:
        return Booking.model_validate(cleaned)
    except SchemaError as e:
        logger.warning(f"Dropping unreadable booking '{cleaned['title']}': {e}")
        return None


def load_plan_document(raw: Union[PlanDocument, dict, None]) -> PlanDocument:
    """Read a stored or AI-drafted plan document without failing.

    Money text becomes numbers, missing day numbers come from list position
    and missing titles get defaults. Entries that still do not fit the schema
    are dropped one by one; unknown fields are carried through.
    """
    if isinstance(raw, PlanDocument):
        return raw
    if not isinstance(raw, dict):
        return PlanDocument()

    data = {
        key: value for key, value in raw.items()
        if key not in ("title", "dates", "bookings", "dailyItinerary")
    }
    data["title"] = _text(raw.get("title"))
    data["dates"] = _text(raw.get("dates"))

    bookings = raw.get("bookings") if isinstance(raw.get("bookings"), list) else []
    data["bookings"] = [
        b for b in (_clean_booking(booking) for booking in bookings if isinstance(booking, dict))
        if b is not None
    ]

    days = raw.get("dailyItinerary") if isinstance(raw.get("dailyItinerary"), list) else []
    data["dailyItinerary"] = [
        d for d in (
            _clean_day(index, day_plan)
            for index, day_plan in enumerate(days, start=1)
            if isinstance(day_plan, dict)
        )
        if d is not None
    ]
    return PlanDocument.model_validate(data)
