"""
RebalanceEngine: exit the old position, even out balances, mint a new range.

Phases run strictly in order; a failure in one aborts the rest and
propagates. There is no resume from the middle: the next trigger starts
again from phase 1 against fresh ledger state.

    1. exit      decreaseLiquidity + collect + burn (multicall, or sequential)
    2. swap      one swap toward a 50/50 value split, skipped below a threshold
    3. range     re-read the pool, centre a window on the new tick
    4. mint      full balances into the new range, id parsed from the receipt

The record is written twice at most: "none" once the exit settles (the old
id no longer exists) and the new id once the mint settles.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, TYPE_CHECKING

from lpkeeper.engine.range_calc import compute_tick_range
from lpkeeper.errors import ExitIncomplete, LpKeeperError, TransientLedgerError
from lpkeeper.eval_context import EvaluationContext
from lpkeeper.ledger.amm_math import (
    amounts_for_liquidity,
    apply_slippage,
    liquidity_for_amounts,
    tick_to_sqrt_price_x96,
)
from lpkeeper.ledger.models import Balances, PoolSnapshot
from lpkeeper.state.state import NO_POSITION

if TYPE_CHECKING:
    from lpkeeper.ledger.gateway import LedgerGateway
    from lpkeeper.monitoring.metrics import KeeperMetrics
    from lpkeeper.state.state_atomic import AtomicStateStore

log = logging.getLogger("lpkeeper")


@dataclass
class RebalanceConfig:
    """Configuration for RebalanceEngine."""
    range_width_ticks: int = 2000
    slippage_bps: int = 50
    min_rebalance_usd: float = 2.0
    exit_mode: str = "multicall"  # multicall | sequential
    log_event_callback: Optional[Callable[..., None]] = None


@dataclass
class SwapPlan:
    """A single swap that moves holdings toward an even value split."""
    token_in: str
    token_out: str
    amount_in: int
    deviation_usd: float
    sell_volatile: bool


@dataclass
class RebalanceResult:
    old_position_id: str
    new_position_id: str
    tick_lower: int
    tick_upper: int
    swapped: bool


class RebalanceEngine:
    def __init__(
        self,
        gateway: "LedgerGateway",
        state_store: "AtomicStateStore",
        config: Optional[RebalanceConfig] = None,
        metrics: Optional["KeeperMetrics"] = None,
    ) -> None:
        self.gateway = gateway
        self.state_store = state_store
        self.config = config or RebalanceConfig()
        self.metrics = metrics
        self.network = gateway.ctx.network
        self._log_event = self.config.log_event_callback or self._default_log

    def _default_log(self, event: str, **kwargs: Any) -> None:
        log.info(json.dumps({"event": event, **kwargs}, default=str))

    async def execute(
        self, old_position_id: str, trace: Optional[EvaluationContext] = None
    ) -> RebalanceResult:
        trace = trace or EvaluationContext(marker="manual")
        trace.info("rebalance_start", old_position_id=old_position_id)
        try:
            if old_position_id != NO_POSITION:
                await self.exit_position(old_position_id, trace.child("exit"))
                await self.state_store.save(NO_POSITION)

            swapped = await self.rebalance_balances(trace.child("swap"))

            pool = await self.gateway.pool_snapshot()
            tick_lower, tick_upper = compute_tick_range(
                pool.tick, pool.tick_spacing, self.config.range_width_ticks
            )
            trace.info(
                "range_computed", tick=pool.tick, spacing=pool.tick_spacing,
                tick_lower=tick_lower, tick_upper=tick_upper,
            )

            new_id = await self.mint_position(pool, tick_lower, tick_upper, trace.child("mint"))
            await self.state_store.save(new_id)
        except Exception as exc:
            if self.metrics:
                self.metrics.rebalances.labels(result="failed").inc()
            trace.error("rebalance_failed", err=str(exc), err_type=type(exc).__name__)
            raise

        if self.metrics:
            self.metrics.rebalances.labels(result="ok").inc()
        trace.info("rebalance_done", new_position_id=new_id, tick_lower=tick_lower, tick_upper=tick_upper)
        return RebalanceResult(
            old_position_id=old_position_id,
            new_position_id=new_id,
            tick_lower=tick_lower,
            tick_upper=tick_upper,
            swapped=swapped,
        )

    # ------------------------------------------------------------------
    # Phase 1: exit
    # ------------------------------------------------------------------

    async def exit_position(self, position_id: str, trace: EvaluationContext) -> None:
        position = await self.gateway.position(position_id)
        trace.info("exit_start", position_id=position_id, liquidity=position.liquidity, mode=self.config.exit_mode)

        if self.config.exit_mode == "multicall":
            pending = await self.gateway.exit_position_batched(position_id, position.liquidity)
            await self.gateway.settle(pending)
            trace.info("exit_done", position_id=position_id, tx_hash=pending.tx_hash)
            return

        completed: List[str] = []
        try:
            if position.liquidity > 0:
                await self.gateway.settle(await self.gateway.decrease_liquidity(position_id, position.liquidity))
                completed.append("decrease_liquidity")
            await self.gateway.settle(await self.gateway.collect(position_id))
            completed.append("collect")
            await self.gateway.settle(await self.gateway.burn(position_id))
            completed.append("burn")
        except Exception as exc:
            if not completed:
                raise
            raise ExitIncomplete(position_id, completed, exc) from exc
        trace.info("exit_done", position_id=position_id, steps=completed)

    # ------------------------------------------------------------------
    # Phase 2: swap toward 50/50
    # ------------------------------------------------------------------

    def plan_swap(self, balances: Balances, price: float) -> Optional[SwapPlan]:
        """
        Swap needed to even out value, or None when the deviation is under threshold.

        deviation = stable_value - total_value / 2, in stable units.
        """
        if price <= 0:
            raise TransientLedgerError(f"pool price not positive: {price}")
        vol, stable = self.network.volatile, self.network.stable
        vol_amount = balances.volatile / 10 ** vol.decimals
        stable_amount = balances.stable / 10 ** stable.decimals
        total_value = stable_amount + vol_amount * price
        deviation = stable_amount - total_value / 2

        if abs(deviation) < self.config.min_rebalance_usd:
            return None

        if deviation > 0:
            amount_in = min(int(deviation * 10 ** stable.decimals), balances.stable)
            return SwapPlan(stable.address, vol.address, amount_in, deviation, sell_volatile=False)

        amount_in = min(int(abs(deviation) / price * 10 ** vol.decimals), balances.volatile)
        return SwapPlan(vol.address, stable.address, amount_in, deviation, sell_volatile=True)

    async def rebalance_balances(self, trace: EvaluationContext) -> bool:
        balances = await self.gateway.balances()
        pool = await self.gateway.pool_snapshot()
        plan = self.plan_swap(balances, pool.price)
        if plan is None or plan.amount_in <= 0:
            trace.info(
                "swap_skipped", volatile=balances.volatile, stable=balances.stable,
                price=pool.price, threshold_usd=self.config.min_rebalance_usd,
            )
            return False

        expected = await self.gateway.quote_exact_input(plan.token_in, plan.token_out, plan.amount_in)
        if expected <= 0:
            raise TransientLedgerError(f"quoter returned {expected} for {plan.amount_in}")
        min_out = apply_slippage(expected, self.config.slippage_bps)
        trace.info(
            "swap_start", sell_volatile=plan.sell_volatile, amount_in=plan.amount_in,
            deviation_usd=round(plan.deviation_usd, 4), expected_out=expected, min_out=min_out,
        )
        pending = await self.gateway.swap_exact_input(plan.token_in, plan.token_out, plan.amount_in, min_out)
        await self.gateway.settle(pending)
        trace.info("swap_done", tx_hash=pending.tx_hash)
        return True

    # ------------------------------------------------------------------
    # Phase 4: mint
    # ------------------------------------------------------------------

    def _token_order(self, balances: Balances):
        vol, stable = self.network.volatile, self.network.stable
        if self.gateway.ctx.volatile_is_token0:
            return vol.address, stable.address, balances.volatile, balances.stable
        return stable.address, vol.address, balances.stable, balances.volatile

    async def mint_position(
        self, pool: PoolSnapshot, tick_lower: int, tick_upper: int, trace: EvaluationContext
    ) -> str:
        balances = await self.gateway.balances()
        token0, token1, amount0, amount1 = self._token_order(balances)

        sqrt_a = tick_to_sqrt_price_x96(tick_lower)
        sqrt_b = tick_to_sqrt_price_x96(tick_upper)
        liquidity = liquidity_for_amounts(pool.sqrt_price_x96, sqrt_a, sqrt_b, amount0, amount1)
        if liquidity <= 0:
            raise LpKeeperError(
                f"no liquidity obtainable from balances {amount0}/{amount1} in [{tick_lower}, {tick_upper}]"
            )
        used0, used1 = amounts_for_liquidity(pool.sqrt_price_x96, sqrt_a, sqrt_b, liquidity)
        min0 = apply_slippage(used0, self.config.slippage_bps)
        min1 = apply_slippage(used1, self.config.slippage_bps)
        trace.info(
            "mint_start", tick_lower=tick_lower, tick_upper=tick_upper, liquidity=liquidity,
            amount0=amount0, amount1=amount1, amount0_min=min0, amount1_min=min1,
        )

        pending = await self.gateway.mint(
            token0, token1, tick_lower, tick_upper, (amount0, amount1), (min0, min1)
        )
        receipt = await self.gateway.settle(pending)
        new_id = self.gateway.parse_minted_position_id(receipt)
        trace.info("mint_done", position_id=new_id, tx_hash=pending.tx_hash)
        return new_id
