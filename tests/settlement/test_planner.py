"""Tests for recursion bound planning."""

import pytest

from clocktower_app.settlement import plan_rounds


class TestPlanRounds:
    """plan_rounds arithmetic."""

    def test_rounds_up_partial_round(self):
        """250 obligations at 100 per call need three rounds."""
        plan = plan_rounds(250, 100, 5)
        assert plan.expected_rounds == 3
        assert plan.bounded_rounds == 3
        assert not plan.capped

    def test_exact_multiple(self):
        plan = plan_rounds(200, 100, 5)
        assert plan.expected_rounds == 2
        assert plan.bounded_rounds == 2

    def test_hard_ceiling_caps_rounds(self):
        plan = plan_rounds(1000, 100, 5)
        assert plan.expected_rounds == 10
        assert plan.bounded_rounds == 5
        assert plan.capped

    def test_no_obligations_means_no_rounds(self):
        plan = plan_rounds(0, 100, 5)
        assert plan.expected_rounds == 0
        assert plan.bounded_rounds == 0

    def test_non_positive_capacity_treated_as_one(self):
        plan = plan_rounds(3, 0, 5)
        assert plan.per_call_capacity == 1
        assert plan.expected_rounds == 3

    def test_rejects_non_positive_ceiling(self):
        with pytest.raises(ValueError):
            plan_rounds(10, 100, 0)

    @pytest.mark.parametrize("total,capacity,ceiling", [
        (1, 1, 1), (99, 100, 3), (101, 100, 3), (5000, 7, 5), (17, 3, 100),
    ])
    def test_bound_never_exceeds_ceiling(self, total, capacity, ceiling):
        plan = plan_rounds(total, capacity, ceiling)
        assert plan.bounded_rounds <= ceiling
        assert plan.bounded_rounds == min(plan.expected_rounds, ceiling)
        assert plan.expected_rounds * capacity >= total
