"""Tests for plan consolidation and budget estimates."""
from datetime import datetime, timedelta

from tripcollab.schemas.plan_document import PlanDocument
from tripcollab.services.consolidation import consolidate, document_budget, estimate_budget

T0 = datetime(2026, 10, 1, 9, 0, 0)

ORIGINAL = {
    "title": "Lisbon long weekend",
    "dates": "Flexible",
    "heroImage": "lisbon.jpg",
    "bookings": [
        {"type": "Hotel", "title": "Draft hotel", "details": "Somewhere", "priceNum": 999},
        {"type": "Flight", "title": "TAP 123", "details": "LHR-LIS", "priceNum": 210},
    ],
    "dailyItinerary": [
        {"day": 1, "title": "Draft day", "items": [{"time": "09:00", "activity": "Draft activity"}]},
    ],
}


def _proposal(pid, category, title, details, minutes=0):
    return {
        "id": pid,
        "plan_id": 1,
        "category": category,
        "title": title,
        "details": details,
        "created_at": T0 + timedelta(minutes=minutes),
    }


def _up(proposal_id, count):
    return [{"proposal_id": proposal_id, "user_id": f"u{i}", "type": "up"} for i in range(count)]


def _down(proposal_id, count):
    return [{"proposal_id": proposal_id, "user_id": f"d{i}", "type": "down"} for i in range(count)]


PROPOSALS = [
    _proposal(1, "date", "Early Dec", {"startDate": "2026-12-03", "endDate": "2026-12-06"}, 0),
    _proposal(2, "date", "Mid Dec", {"startDate": "2026-12-10", "endDate": "2026-12-13"}, 1),
    _proposal(3, "accommodation", "Casa Alfama", {"location": "Alfama", "pricePerNight": 85, "nights": 3}, 2),
    _proposal(4, "accommodation", "Baixa Rooms", {"location": "Baixa", "pricePerNight": 110.5, "nights": 3}, 3),
    _proposal(5, "accommodation", "Airport Inn", {"location": "Airport", "pricePerNight": 60, "nights": 3}, 4),
    _proposal(6, "itinerary", "Sintra", {"day": 2, "time": "08:30", "location": "Sintra", "cost": 15}, 5),
    _proposal(7, "itinerary", "Tram 28", {"day": 1, "time": "09:00", "location": "Graca", "cost": 3,
                                           "day_title": "Old town"}, 6),
    _proposal(8, "itinerary", "Fado night", {"day": 1, "time": "21:00", "location": "Alfama", "cost": 40}, 7),
    _proposal(9, "itinerary", "Aquarium", {"day": 3, "time": "11:00", "cost": 25}, 8),
]

VOTES = {
    1: _up(1, 1),
    2: _up(2, 3),
    3: _up(3, 2),
    4: _up(4, 1),
    5: _up(5, 1) + _down(5, 1),
    6: _up(6, 2),
    7: _up(7, 1),
    8: _up(8, 2),
    9: _down(9, 1),
}


class TestConsolidate:
    def test_dates_come_from_the_winning_proposal(self):
        result = consolidate(ORIGINAL, PROPOSALS, VOTES)
        assert result.dates == "2026-12-10 - 2026-12-13"

    def test_date_tie_prefers_earlier_proposal(self):
        votes = {**VOTES, 1: _up(1, 3)}
        assert consolidate(ORIGINAL, PROPOSALS, votes).dates == "2026-12-03 - 2026-12-06"

    def test_original_dates_kept_without_date_proposals(self):
        proposals = [p for p in PROPOSALS if p["category"] != "date"]
        assert consolidate(ORIGINAL, proposals, VOTES).dates == "Flexible"

    def test_every_positive_accommodation_replaces_draft_lodging(self):
        result = consolidate(ORIGINAL, PROPOSALS, VOTES)
        hotels = [b for b in result.bookings if b.type == "Hotel"]
        assert [b.title for b in hotels] == ["Casa Alfama", "Baixa Rooms"]
        assert hotels[0].details == "Alfama - $85/night for 3 nights"
        assert hotels[0].price == "$85"
        assert hotels[1].price == "$110.50"
        assert hotels[0].priceNum == 85

    def test_non_lodging_bookings_are_kept_after_hotels(self):
        result = consolidate(ORIGINAL, PROPOSALS, VOTES)
        assert [b.title for b in result.bookings] == ["Casa Alfama", "Baixa Rooms", "TAP 123"]

    def test_itinerary_groups_positive_activities_by_day(self):
        result = consolidate(ORIGINAL, PROPOSALS, VOTES)
        days = result.dailyItinerary
        assert [d.day for d in days] == [1, 2]
        assert days[0].title == "Old town"
        assert [i.activity for i in days[0].items] == ["Tram 28", "Fado night"]
        assert days[1].title == "Day 2"
        assert days[1].items[0].cost == 15

    def test_original_itinerary_kept_when_nothing_is_approved(self):
        votes = {k: v for k, v in VOTES.items() if k not in (6, 7, 8)}
        result = consolidate(ORIGINAL, PROPOSALS, votes)
        assert result.dailyItinerary[0].title == "Draft day"

    def test_unknown_document_fields_survive(self):
        result = consolidate(ORIGINAL, PROPOSALS, VOTES)
        assert result.model_dump()["heroImage"] == "lisbon.jpg"
        assert result.title == "Lisbon long weekend"

    def test_same_inputs_same_output(self):
        first = consolidate(ORIGINAL, PROPOSALS, VOTES)
        second = consolidate(ORIGINAL, list(reversed(PROPOSALS)), VOTES)
        assert first.model_dump() == second.model_dump()
        assert consolidate(ORIGINAL, PROPOSALS, VOTES).model_dump() == first.model_dump()

    def test_input_document_is_not_modified(self):
        document = PlanDocument.model_validate(ORIGINAL)
        before = document.model_dump()
        consolidate(document, PROPOSALS, VOTES)
        assert document.model_dump() == before

    def test_empty_inputs(self):
        result = consolidate(None, [], {})
        assert result.dates == ""
        assert result.bookings == []
        assert result.dailyItinerary == []


class TestBudget:
    def test_estimate_covers_all_listed_proposals(self):
        budget = estimate_budget(PROPOSALS, member_count=4)
        # (85 + 110.5 + 60) * 3 nights + 15 + 3 + 40 + 25
        assert budget.total == 849.5
        assert budget.per_person == 212.38
        assert budget.members == 4

    def test_estimate_without_members(self):
        budget = estimate_budget(PROPOSALS[:3], member_count=0)
        assert budget.total == 255
        assert budget.per_person == 255

    def test_document_budget(self):
        document = consolidate(ORIGINAL, PROPOSALS, VOTES)
        # Hotels: 85*3 + 110.5*3; activities: 3 + 40 + 15
        assert document_budget(document) == 644.5
