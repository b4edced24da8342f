"""AI-authored drafts and summaries for group trips.

Both features are best-effort: callers treat any failure as "no result" and
carry on without the AI collaborator.
"""

import json
import logging
from typing import Optional

from tripcollab.models.conclusion import TripConclusion, TripFeedback
from tripcollab.models.plan import Plan
from tripcollab.services.ai_service import AIService

logger = logging.getLogger(__name__)


def _parse_json_response(response: str) -> dict:
    """Extract JSON from an AI response, handling markdown code fences."""
    text = response.strip()
    if text.startswith("```"):
        text = text.split("```")[1]
        if text.startswith("json"):
            text = text[4:]
    text = text.strip()
    return json.loads(text)


PLAN_DRAFT_SYSTEM = """You are a group travel planner. Given a destination, travel dates and notes,
draft a trip plan the group can vote on.

Rules:
- dates must be a range like "Mar 10, 2026 - Mar 15, 2026"
- include 1-3 lodging options as bookings with type "Hotel"
- every hotel details string reads "<area> - $<price>/night for <n> nights"
- dailyItinerary has one entry per day; each item has time, activity,
  description, location and an estimated cost in USD
- Do NOT use emoji

Return ONLY valid JSON:
{"title": "...", "dates": "...", "bookings": [{"type": "Hotel", "title": "...", "details": "...", "price": "$120", "priceNum": 120}],
 "dailyItinerary": [{"day": 1, "title": "...", "items": [{"time": "09:00", "activity": "...", "description": "...", "location": "...", "cost": 20}]}]}"""


TRIP_SUMMARY_SYSTEM = """You are a warm, concise travel writer. Given the facts of a finished
group trip, write a short summary the group will enjoy reading.

Rules:
- 3-5 sentences, plain text, no markdown, no emoji
- Mention the destination, how long the trip lasted and a few highlights
- Mention spend against the expected budget only if both are known"""


def _describe_plan(plan: Plan) -> str:
    parts = [f"Destination: {plan.destination}"]
    parts.append(f"Dates: {plan.dates or 'flexible'}")
    if plan.description:
        parts.append(f"Notes: {plan.description}")
    parts.append(f"Group size: {len(plan.members)}")
    return "\n".join(parts)


def _describe_conclusion(plan: Plan, conclusion: TripConclusion, feedback: list[TripFeedback]) -> str:
    parts = [
        f"Destination: {plan.destination}",
        f"Days: {conclusion.total_days}",
        f"Activities: {conclusion.activities_count}",
    ]
    if conclusion.visited_places:
        parts.append(f"Places visited: {', '.join(conclusion.visited_places)}")
    if conclusion.expected_budget:
        parts.append(f"Expected budget: ${conclusion.expected_budget:.2f}")
    if conclusion.total_expense:
        parts.append(f"Actual spend: ${conclusion.total_expense:.2f}")
    if feedback:
        average = sum(f.rating for f in feedback) / len(feedback)
        parts.append(f"Average rating: {average:.1f}/5 from {len(feedback)} traveller(s)")
        comments = [f.comment.strip() for f in feedback if f.comment and f.comment.strip()]
        if comments:
            parts.append("Comments: " + " | ".join(comments[:5]))
    return "\n".join(parts)


async def draft_plan_document(plan: Plan) -> Optional[dict]:
    """Ask the AI collaborator for a draft plan document.

    Returns:
        The parsed document, or None if the response was not usable JSON.
    """
    prompt = f"Draft a group trip plan for:\n\n{_describe_plan(plan)}"
    response = await AIService.complete(
        prompt=prompt,
        system_prompt=PLAN_DRAFT_SYSTEM,
        max_tokens=2000,
        endpoint="plan_draft",
    )

    try:
        result = _parse_json_response(response)
    except (json.JSONDecodeError, IndexError) as e:
        logger.warning(f"Failed to parse plan draft for plan {plan.id}: {e}")
        return None
    if not isinstance(result, dict):
        logger.warning(f"Plan draft for plan {plan.id} was not a JSON object")
        return None
    return result


async def summarize_trip(plan: Plan, conclusion: TripConclusion, feedback: list[TripFeedback]) -> str:
    prompt = f"Summarize this group trip:\n\n{_describe_conclusion(plan, conclusion, feedback)}"
    response = await AIService.complete(
        prompt=prompt,
        system_prompt=TRIP_SUMMARY_SYSTEM,
        max_tokens=400,
        endpoint="trip_summary",
    )
    return response.strip()
