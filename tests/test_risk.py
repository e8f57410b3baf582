"""
Tests for the safe-mode breaker and the hedge collaborators.
"""
import logging
from unittest.mock import AsyncMock

import pytest

from conftest import MockGateway, MockHedge, make_pool
from lpkeeper.errors import RiskPanic
from lpkeeper.ledger.models import RangePosition
from lpkeeper.risk.hedge import AaveHealthGuard, NullHedge, lp_volatile_exposure
from lpkeeper.risk.safe_mode import SafeModeBreaker, SafeModeConfig

WAD = 10 ** 18


class TestSafeModeBreaker:
    @pytest.mark.asyncio
    async def test_healthy_does_not_trip(self):
        breaker = SafeModeBreaker(MockHedge(healthy=True))
        await breaker.check("1")
        assert not breaker.is_tripped

    @pytest.mark.asyncio
    async def test_unhealthy_trips_and_raises(self):
        tripped = []

        async def on_trip(reason):
            tripped.append(reason)

        breaker = SafeModeBreaker(MockHedge(healthy=False), on_trip=on_trip)
        with pytest.raises(RiskPanic):
            await breaker.check("1")
        assert breaker.is_tripped
        assert len(tripped) == 1

    @pytest.mark.asyncio
    async def test_trip_is_idempotent(self):
        on_trip = AsyncMock()
        breaker = SafeModeBreaker(MockHedge(), on_trip=on_trip)
        await breaker.trip("first")
        await breaker.trip("second")
        assert on_trip.await_count == 1
        assert breaker.get_state()["reason"] == "first"

    def test_suppressed_logging_is_sampled(self):
        events = []
        breaker = SafeModeBreaker(
            MockHedge(), SafeModeConfig(log_every=100),
            log_event=lambda event, level=logging.INFO, **kw: events.append(kw["suppressed"]),
        )
        for marker in range(250):
            breaker.note_suppressed(marker)
        assert events == [1, 101, 201]


class TestAaveHealthGuard:
    @pytest.mark.asyncio
    async def test_no_debt_is_healthy(self):
        gateway = MockGateway()
        guard = AaveHealthGuard(gateway, min_health_factor=1.5)
        assert await guard.check_health_and_panic("1") is True

    @pytest.mark.asyncio
    @pytest.mark.parametrize("hf,expected", [(2.0, True), (1.5, True), (1.49, False)])
    async def test_threshold(self, hf, expected):
        gateway = MockGateway()
        gateway.account_health.return_value = {
            "total_collateral_base": 1000, "total_debt_base": 500, "health_factor": int(hf * WAD),
        }
        guard = AaveHealthGuard(gateway, min_health_factor=1.5)
        assert await guard.check_health_and_panic("1") is expected
        assert guard.last_health_factor == pytest.approx(hf)

    @pytest.mark.asyncio
    async def test_adjust_records_exposure(self):
        guard = AaveHealthGuard(MockGateway())
        await guard.adjust_hedge(0.75, "1")
        assert guard.last_exposure == 0.75

    @pytest.mark.asyncio
    async def test_null_hedge(self):
        hedge = NullHedge()
        assert await hedge.check_health_and_panic("1") is True
        await hedge.adjust_hedge(1.0, "1")


class TestExposure:
    def test_below_range_is_all_token0(self):
        position = RangePosition("1", 100, 200, 10 ** 18)
        as_token0 = lp_volatile_exposure(position, make_pool(0), True, 18)
        as_token1 = lp_volatile_exposure(position, make_pool(0), False, 18)
        assert as_token0 > 0
        assert as_token1 == 0

    def test_above_range_is_all_token1(self):
        position = RangePosition("1", 100, 200, 10 ** 18)
        assert lp_volatile_exposure(position, make_pool(500), True, 18) == 0
        assert lp_volatile_exposure(position, make_pool(500), False, 18) > 0
