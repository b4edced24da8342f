"""Plan status machine: planning -> collaboration -> ongoing -> concluded."""
import logging

from tripcollab.errors import PlanPhaseError
from tripcollab.models.plan import Plan, PlanStatus, PLAN_STATUS_ORDER

logger = logging.getLogger(__name__)


def next_status(status: PlanStatus):
    index = PLAN_STATUS_ORDER.index(PlanStatus(status))
    if index + 1 >= len(PLAN_STATUS_ORDER):
        return None
    return PLAN_STATUS_ORDER[index + 1]


def can_transition(current: PlanStatus, target: PlanStatus) -> bool:
    return next_status(current) == PlanStatus(target)


def require_status(plan: Plan, *allowed: PlanStatus, action: str = "do that") -> None:
    """Feature-boundary guard: refuse actions outside their phase."""
    if plan.status not in allowed:
        expected = " or ".join(s.value for s in allowed)
        raise PlanPhaseError(
            f"Cannot {action} while plan {plan.id} is '{plan.status.value}' (needs {expected})"
        )


def transition(plan: Plan, target: PlanStatus) -> None:
    """Move ``plan`` one step forward. Caller commits."""
    target = PlanStatus(target)
    if not can_transition(plan.status, target):
        raise PlanPhaseError(
            f"Plan {plan.id} cannot move from '{plan.status.value}' to '{target.value}'"
        )
    logger.info(f"Plan {plan.id}: {plan.status.value} -> {target.value}")
    plan.status = target
