"""
Goal progress state machine.

    active --progress >= target--> completed   (terminal)
    active <--------------------> paused
    active, paused -------------> failed      (terminal)

Only ``apply_progress`` can complete a goal. Pausing and failing are driven
from outside through ``set_status``.
"""
import logging
from datetime import datetime
from typing import Any, Dict, FrozenSet, Optional

from errors import ValidationError
from outcome import is_finite_number
from schemas import Goal, Milestone

logger = logging.getLogger(__name__)

# transitions a caller may request explicitly
ALLOWED_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    'active': frozenset({'paused', 'failed'}),
    'paused': frozenset({'active', 'failed'}),
    'completed': frozenset(),
    'failed': frozenset(),
}


def _check_value(value: Any) -> None:
    if not is_finite_number(value):
        raise ValidationError(f"current_value must be a finite number, got {value!r}")


def apply_progress(goal: Goal, new_current_value: float, timestamp: datetime, note: Optional[str] = None) -> Goal:
    """Record a new progress value on ``goal`` and return it.

    The goal completes the first time the value reaches its target while it
    is active. Goals that are paused, failed or already completed keep their
    status. One milestone is appended per call, duplicates included.
    """
    _check_value(new_current_value)

    goal.current_value = float(new_current_value)
    if goal.status == 'active' and goal.current_value >= goal.target_value:
        goal.status = 'completed'
        goal.completed_date = timestamp
        logger.info("Goal completed for user %s at value %s", goal.user_id, goal.current_value)
    goal.milestones.append(Milestone(value=goal.current_value, date=timestamp, note=note))
    goal.updated_at = timestamp
    return goal


def set_status(goal: Goal, status: str) -> Goal:
    """Apply an externally requested status change (pause, resume, fail)."""
    if status == goal.status:
        return goal
    if status not in ALLOWED_TRANSITIONS.get(goal.status, frozenset()):
        raise ValidationError(f"cannot change goal status from {goal.status!r} to {status!r}")
    logger.info("Goal status %s -> %s for user %s", goal.status, status, goal.user_id)
    goal.status = status
    return goal
