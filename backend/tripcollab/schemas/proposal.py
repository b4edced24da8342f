"""Proposal payloads.

``details`` is a tagged union discriminated by the proposal's ``category``:
each category owns one model below and every consumer goes through
``parse_details`` instead of probing dict keys.
"""
from datetime import date, datetime
from typing import Any, Optional, Union

from pydantic import BaseModel, Field, model_validator, ValidationError as PydanticValidationError

from tripcollab.errors import ValidationError
from tripcollab.models.proposal import ProposalCategory
from tripcollab.models.vote import VoteType


class DateDetails(BaseModel):
    startDate: date
    endDate: date

    @model_validator(mode="after")
    def check_order(self):
        if self.endDate < self.startDate:
            raise ValueError("endDate must not be before startDate")
        return self


class AccommodationDetails(BaseModel):
    location: str = Field(..., min_length=1)
    pricePerNight: float = Field(..., ge=0)
    nights: int = Field(..., ge=1)


class ItineraryDetails(BaseModel):
    day: int = Field(..., ge=1)
    time: str = Field(..., min_length=1)
    description: str = ""
    location: str = "TBD"
    cost: float = Field(default=0, ge=0)
    day_title: Optional[str] = None

    @model_validator(mode="after")
    def resolve_day_title(self):
        if not (self.day_title or "").strip():
            self.day_title = f"Day {self.day}"
        return self


ProposalDetails = Union[DateDetails, AccommodationDetails, ItineraryDetails]

DETAILS_MODELS: dict[ProposalCategory, type[BaseModel]] = {
    ProposalCategory.DATE: DateDetails,
    ProposalCategory.ACCOMMODATION: AccommodationDetails,
    ProposalCategory.ITINERARY: ItineraryDetails,
}


def _describe(exc: PydanticValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "details"
        parts.append(f"{loc}: {err.get('msg')}")
    return "; ".join(parts)


def parse_details(category: ProposalCategory, raw: Optional[dict[str, Any]]) -> ProposalDetails:
    """Validate a raw details payload for ``category``.

    Raises:
        ValidationError: when a required field is missing or out of range.
    """
    model = DETAILS_MODELS.get(ProposalCategory(category))
    if model is None:
        raise ValidationError(f"Unknown proposal category: {category}")
    try:
        return model.model_validate(raw or {})
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid {ProposalCategory(category).value} details: {_describe(e)}")


class ProposalCreate(BaseModel):
    category: ProposalCategory
    title: str = Field(..., min_length=1)
    details: dict[str, Any] = {}


class VoteRequest(BaseModel):
    type: VoteType


class VoteResponse(BaseModel):
    proposal_id: int
    user_id: str
    type: VoteType

    class Config:
        from_attributes = True


class TallyResponse(BaseModel):
    upvotes: int
    downvotes: int
    score: int


class VoteResult(TallyResponse):
    proposal_id: int
    my_vote: Optional[VoteType] = None


class ProposalResponse(BaseModel):
    id: int
    plan_id: int
    user_id: str
    user_name: Optional[str]
    category: ProposalCategory
    title: str
    details: dict[str, Any]
    created_at: datetime
    upvotes: int = 0
    downvotes: int = 0
    score: int = 0
    my_vote: Optional[VoteType] = None
