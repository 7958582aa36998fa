"""Tests for the goal progress state machine."""

import pytest
from datetime import datetime, timedelta

from errors import ValidationError
from goals import apply_progress, set_status
from schemas import goal_progress

from .conftest import make_goal


class TestApplyProgress:
    def test_reaching_target_completes_goal(self, base_time):
        goal = make_goal(target_value=1000, current_value=800)
        updated = apply_progress(goal, 1000, base_time)
        assert updated is goal
        assert goal.status == "completed"
        assert goal.completed_date == base_time
        assert goal.current_value == 1000
        assert len(goal.milestones) == 1
        assert goal.milestones[0].value == 1000
        assert goal.milestones[0].date == base_time

    def test_overshooting_target_completes_goal(self, base_time):
        goal = make_goal(target_value=1000)
        apply_progress(goal, 1500, base_time)
        assert goal.status == "completed"
        assert goal.progress == 100

    def test_below_target_stays_active(self, base_time):
        goal = make_goal(target_value=1000)
        apply_progress(goal, 250, base_time, note="first week")
        assert goal.status == "active"
        assert goal.completed_date is None
        assert goal.progress == 25
        assert goal.milestones[0].note == "first week"

    def test_repeated_update_appends_two_milestones(self, base_time):
        goal = make_goal(target_value=1000)
        apply_progress(goal, 400, base_time)
        apply_progress(goal, 400, base_time)
        assert [m.value for m in goal.milestones] == [400, 400]

    def test_completed_goal_is_never_reopened(self, base_time):
        goal = make_goal(target_value=1000)
        apply_progress(goal, 1000, base_time)
        later = base_time + timedelta(days=3)
        apply_progress(goal, 300, later)
        assert goal.status == "completed"
        assert goal.completed_date == base_time
        assert goal.current_value == 300
        assert [m.value for m in goal.milestones] == [1000, 300]

    def test_completion_date_set_only_once(self, base_time):
        goal = make_goal(target_value=10)
        apply_progress(goal, 10, base_time)
        apply_progress(goal, 20, base_time + timedelta(hours=1))
        assert goal.completed_date == base_time

    @pytest.mark.parametrize("status", ["paused", "failed"])
    def test_inactive_goal_records_value_without_completing(self, base_time, status):
        goal = make_goal(target_value=100, status=status)
        apply_progress(goal, 150, base_time)
        assert goal.status == status
        assert goal.completed_date is None
        assert goal.current_value == 150
        assert len(goal.milestones) == 1

    def test_negative_values_are_accepted(self, base_time):
        goal = make_goal(target_value=-5, goal_type="drawdown", unit="percent")
        apply_progress(goal, -8, base_time)
        assert goal.current_value == -8
        assert goal.status == "active"
        apply_progress(goal, -4, base_time)
        assert goal.status == "completed"

    @pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf"), None, "100", True, 10**400, -10**400])
    def test_rejects_non_finite_values(self, base_time, value):
        goal = make_goal()
        with pytest.raises(ValidationError):
            apply_progress(goal, value, base_time)
        assert goal.milestones == []
        assert goal.current_value == 0


class TestProgressPercentage:
    def test_capped_at_hundred(self):
        assert goal_progress(5000, 1000) == 100

    def test_partial(self):
        assert goal_progress(250, 1000) == 25

    def test_serialized_with_goal(self):
        goal = make_goal(target_value=200, current_value=50)
        assert goal.model_dump()["progress"] == 25


class TestSetStatus:
    @pytest.mark.parametrize("start, target", [
        ("active", "paused"),
        ("paused", "active"),
        ("active", "failed"),
        ("paused", "failed"),
    ])
    def test_allowed_transitions(self, start, target):
        goal = make_goal(status=start)
        set_status(goal, target)
        assert goal.status == target

    @pytest.mark.parametrize("start, target", [
        ("completed", "active"),
        ("completed", "paused"),
        ("failed", "active"),
        ("active", "completed"),
        ("paused", "completed"),
    ])
    def test_rejected_transitions(self, start, target):
        goal = make_goal(status=start)
        with pytest.raises(ValidationError):
            set_status(goal, target)
        assert goal.status == start

    def test_same_status_is_noop(self):
        goal = make_goal(status="completed")
        assert set_status(goal, "completed").status == "completed"


class TestGoalRecord:
    def test_zero_target_rejected(self):
        with pytest.raises(ValueError):
            make_goal(target_value=0)

    def test_defaults(self):
        goal = make_goal()
        assert goal.status == "active"
        assert goal.current_value == 0
        assert goal.milestones == []
        assert isinstance(goal.start_date, datetime)
