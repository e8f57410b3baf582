"""
Tests for tick range selection.
"""
import pytest

from lpkeeper.engine.range_calc import clamp_and_normalize, compute_tick_range, usable_tick_bounds
from lpkeeper.ledger.amm_math import MAX_TICK, MIN_TICK


class TestComputeTickRange:
    def test_centered_on_zero(self):
        assert compute_tick_range(0, 10, 2000) == (-2000, 2000)

    def test_floors_both_sides_to_spacing(self):
        lower, upper = compute_tick_range(-5, 10, 2000)
        assert (lower, upper) == (-2010, 1990)
        assert lower % 10 == 0 and upper % 10 == 0

    def test_zero_width_is_widened_upward(self):
        assert compute_tick_range(5, 10, 0) == (0, 10)

    def test_clamped_near_max_tick(self):
        lower, upper = compute_tick_range(887000, 60, 2000)
        assert upper == 887220
        assert lower == 885000
        assert upper <= MAX_TICK

    def test_clamped_near_min_tick(self):
        lower, upper = compute_tick_range(-887000, 60, 2000)
        assert lower == -887220
        assert lower >= MIN_TICK
        assert lower < upper

    @pytest.mark.parametrize("tick", [-886000, -12345, 0, 777, 886999])
    def test_result_is_valid(self, tick):
        lower, upper = compute_tick_range(tick, 60, 2000)
        assert lower < upper
        assert lower % 60 == 0 and upper % 60 == 0
        assert MIN_TICK <= lower and upper <= MAX_TICK

    def test_rejects_non_positive_spacing(self):
        with pytest.raises(ValueError):
            compute_tick_range(0, 0, 2000)


class TestClampAndNormalize:
    def test_swaps_reversed_pair(self):
        assert clamp_and_normalize(200, 100, 10) == (100, 200)

    def test_idempotent(self):
        once = clamp_and_normalize(-900000, 900000, 60)
        assert clamp_and_normalize(*once, 60) == once

    def test_both_below_min(self):
        assert clamp_and_normalize(-900000, -899000, 60) == (-887220, -887160)

    def test_both_above_max(self):
        assert clamp_and_normalize(899000, 900000, 60) == (887160, 887220)

    def test_equal_ticks_get_one_spacing(self):
        lower, upper = clamp_and_normalize(600, 600, 60)
        assert upper - lower == 60

    def test_usable_bounds(self):
        assert usable_tick_bounds(10) == (-887270, 887270)
        assert usable_tick_bounds(60) == (-887220, 887220)
