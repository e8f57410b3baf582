"""
Tests for RebalanceEngine: phase order, swap planning, exit modes and persistence.
"""
import pytest

from conftest import MemoryStateStore, MockGateway, TEST_NETWORK, make_pool
from lpkeeper.engine.rebalance import RebalanceConfig, RebalanceEngine
from lpkeeper.errors import ExitIncomplete, ProtocolInvariantViolation, TxReverted
from lpkeeper.ledger.models import Balances, RangePosition
from lpkeeper.monitoring.metrics import KeeperMetrics
from lpkeeper.state.state import NO_POSITION

E18 = 10 ** 18


def make_engine(gateway, store, **overrides):
    return RebalanceEngine(gateway, store, RebalanceConfig(**overrides), metrics=KeeperMetrics())


class TestPlanSwap:
    def test_below_threshold_is_skipped(self, gateway, store):
        engine = make_engine(gateway, store, min_rebalance_usd=2.0)
        # total 2003, stable 1003: deviation $1.50
        balances = Balances(volatile=E18 // 2, stable=1003 * E18)
        assert engine.plan_swap(balances, 2000.0) is None

    def test_stable_heavy_sells_stable(self, gateway, store):
        engine = make_engine(gateway, store)
        plan = engine.plan_swap(Balances(volatile=0, stable=3000 * E18), 2000.0)
        assert not plan.sell_volatile
        assert plan.token_in == TEST_NETWORK.stable.address
        assert plan.amount_in == 1500 * E18

    def test_volatile_heavy_sells_volatile(self, gateway, store):
        engine = make_engine(gateway, store)
        plan = engine.plan_swap(Balances(volatile=E18, stable=0), 2000.0)
        assert plan.sell_volatile
        assert plan.token_in == TEST_NETWORK.volatile.address
        assert plan.amount_in == E18 // 2
        assert plan.deviation_usd == pytest.approx(-1000.0)

    def test_non_positive_price_is_transient(self, gateway, store):
        from lpkeeper.errors import TransientLedgerError
        engine = make_engine(gateway, store)
        with pytest.raises(TransientLedgerError):
            engine.plan_swap(Balances(volatile=E18, stable=E18), 0.0)


class TestRebalanceBalances:
    @pytest.mark.asyncio
    async def test_skip_leaves_balances_untouched(self, store):
        gateway = MockGateway(tick=0)
        gateway.balances.return_value = Balances(volatile=E18, stable=E18 + E18 // 2)
        engine = make_engine(gateway, store, min_rebalance_usd=2.0)
        # price ~1: deviation 0.25 units
        swapped = await engine.rebalance_balances(_trace())
        assert swapped is False
        gateway.quote_exact_input.assert_not_awaited()
        gateway.swap_exact_input.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_swap_uses_quote_less_slippage(self, store):
        gateway = MockGateway(tick=0)
        gateway.balances.return_value = Balances(volatile=0, stable=100 * E18)
        gateway.quote_exact_input.return_value = 50 * E18
        engine = make_engine(gateway, store, slippage_bps=50)
        assert await engine.rebalance_balances(_trace()) is True
        token_in, token_out, amount_in, min_out = gateway.swap_exact_input.await_args.args
        assert token_in == TEST_NETWORK.stable.address
        assert amount_in == 50 * E18
        assert min_out == 50 * E18 * 9950 // 10000

    @pytest.mark.asyncio
    async def test_zero_quote_aborts(self, store):
        from lpkeeper.errors import TransientLedgerError
        gateway = MockGateway(tick=0)
        gateway.balances.return_value = Balances(volatile=0, stable=100 * E18)
        gateway.quote_exact_input.return_value = 0
        engine = make_engine(gateway, store)
        with pytest.raises(TransientLedgerError):
            await engine.rebalance_balances(_trace())
        gateway.swap_exact_input.assert_not_awaited()


class TestExecute:
    @pytest.mark.asyncio
    async def test_full_cycle_saves_none_then_new_id(self):
        gateway = MockGateway(tick=500)
        store = MemoryStateStore("77")
        engine = make_engine(gateway, store)

        result = await engine.execute("77")

        assert result.old_position_id == "77"
        assert result.new_position_id == "1002"
        assert store.saves == [NO_POSITION, "1002"]
        assert (result.tick_lower, result.tick_upper) == (-1500, 2500)
        gateway.exit_position_batched.assert_awaited_once_with("77", 10 ** 18)

    @pytest.mark.asyncio
    async def test_open_from_nothing_skips_exit(self, store):
        gateway = MockGateway(tick=0)
        engine = make_engine(gateway, store)
        result = await engine.execute(NO_POSITION)
        assert result.new_position_id == "1002"
        assert store.saves == ["1002"]
        gateway.exit_position_batched.assert_not_awaited()
        gateway.position.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_range_is_centred_on_post_swap_tick(self, store):
        gateway = MockGateway(tick=0)
        gateway.balances.side_effect = [
            Balances(volatile=0, stable=100 * E18),
            Balances(volatile=50 * E18, stable=50 * E18),
        ]
        gateway.pool_snapshot.side_effect = [make_pool(0), make_pool(5000)]
        engine = make_engine(gateway, store)

        result = await engine.execute(NO_POSITION)

        assert result.swapped is True
        assert (result.tick_lower, result.tick_upper) == (3000, 7000)
        assert gateway.pool_snapshot.await_count == 2
        gateway.swap_exact_input.assert_awaited_once()
        assert gateway.mint.await_args.args[2:4] == (3000, 7000)

    @pytest.mark.asyncio
    async def test_mint_amounts_follow_token_order(self, store):
        gateway = MockGateway(tick=0)
        gateway.ctx.volatile_is_token0 = False
        gateway.balances.return_value = Balances(volatile=3 * E18, stable=4 * E18)
        engine = make_engine(gateway, store)
        await engine.execute(NO_POSITION)
        token0, token1, lower, upper, desired, minimum = gateway.mint.await_args.args
        assert token0 == TEST_NETWORK.stable.address
        assert desired == (4 * E18, 3 * E18)
        assert (lower, upper) == (-2000, 2000)
        assert minimum[0] <= desired[0] and minimum[1] <= desired[1]

    @pytest.mark.asyncio
    async def test_missing_mint_event_persists_nothing_new(self):
        gateway = MockGateway(tick=500)
        gateway.parse_minted_position_id.side_effect = ProtocolInvariantViolation("0 events")
        store = MemoryStateStore("77")
        engine = make_engine(gateway, store)

        with pytest.raises(ProtocolInvariantViolation):
            await engine.execute("77")
        assert store.saves == [NO_POSITION]
        assert store.record.position_id == NO_POSITION

    @pytest.mark.asyncio
    async def test_exit_revert_keeps_old_id(self):
        gateway = MockGateway(tick=500)
        gateway.settle.side_effect = TxReverted("exit_multicall", "0xdead")
        store = MemoryStateStore("77")
        engine = make_engine(gateway, store)

        with pytest.raises(TxReverted):
            await engine.execute("77")
        assert store.saves == []
        gateway.swap_exact_input.assert_not_awaited()
        gateway.mint.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_metrics_count_outcomes(self):
        gateway = MockGateway(tick=500)
        engine = make_engine(gateway, MemoryStateStore("77"))
        await engine.execute("77")
        gateway.mint.side_effect = RuntimeError("rpc down")
        with pytest.raises(RuntimeError):
            await engine.execute(NO_POSITION)
        assert engine.metrics.rebalances.labels(result="ok")._value.get() == 1
        assert engine.metrics.rebalances.labels(result="failed")._value.get() == 1


class TestSequentialExit:
    @pytest.mark.asyncio
    async def test_all_steps(self, gateway, store):
        engine = make_engine(gateway, store, exit_mode="sequential")
        await engine.exit_position("1", _trace())
        gateway.decrease_liquidity.assert_awaited_once_with("1", 10 ** 18)
        gateway.collect.assert_awaited_once_with("1")
        gateway.burn.assert_awaited_once_with("1")
        gateway.exit_position_batched.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_zero_liquidity_skips_decrease(self, store):
        gateway = MockGateway(position=RangePosition("1", -100, 100, 0))
        engine = make_engine(gateway, store, exit_mode="sequential")
        await engine.exit_position("1", _trace())
        gateway.decrease_liquidity.assert_not_awaited()
        gateway.burn.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_partial_exit_raises_exit_incomplete(self, gateway, store):
        calls = []

        async def settle(pending):
            calls.append(pending.label)
            if pending.label == "burn":
                raise TxReverted("burn", pending.tx_hash)
            return {"status": 1}

        gateway.settle.side_effect = settle
        engine = make_engine(gateway, store, exit_mode="sequential")
        with pytest.raises(ExitIncomplete) as info:
            await engine.exit_position("1", _trace())
        assert info.value.completed == ["decrease_liquidity", "collect"]
        assert isinstance(info.value.__cause__, TxReverted)

    @pytest.mark.asyncio
    async def test_first_step_failure_propagates_unchanged(self, gateway, store):
        gateway.settle.side_effect = TxReverted("decrease_liquidity", "0x1")
        engine = make_engine(gateway, store, exit_mode="sequential")
        with pytest.raises(TxReverted):
            await engine.exit_position("1", _trace())


def _trace():
    from lpkeeper.eval_context import EvaluationContext
    return EvaluationContext(marker="test")
