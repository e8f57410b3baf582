"""
Hedge collaborator interface and the lending-protocol health guard.

The keeper only needs two answers from the hedge side: is the account
healthy enough to keep operating, and here is the LP's current volatile
exposure. How a hedge is sized or executed lives behind this interface.
"""

from __future__ import annotations

import json
import logging
from typing import Protocol, TYPE_CHECKING

from lpkeeper.ledger.amm_math import amounts_for_liquidity, tick_to_sqrt_price_x96
from lpkeeper.ledger.models import PoolSnapshot, RangePosition

if TYPE_CHECKING:
    from lpkeeper.ledger.gateway import LedgerGateway

log = logging.getLogger("lpkeeper")

WAD = 10 ** 18


class HedgeCollaborator(Protocol):
    async def check_health_and_panic(self, position_id: str) -> bool: ...

    async def adjust_hedge(self, exposure_amount: float, position_id: str) -> None: ...


def lp_volatile_exposure(
    position: RangePosition,
    pool: PoolSnapshot,
    volatile_is_token0: bool,
    volatile_decimals: int,
) -> float:
    """Volatile-asset amount held by the position at the current price, human units."""
    amount0, amount1 = amounts_for_liquidity(
        pool.sqrt_price_x96,
        tick_to_sqrt_price_x96(position.tick_lower),
        tick_to_sqrt_price_x96(position.tick_upper),
        position.liquidity,
    )
    raw = amount0 if volatile_is_token0 else amount1
    return raw / 10 ** volatile_decimals


class AaveHealthGuard:
    """Health factor from the lending pool's getUserAccountData."""

    def __init__(self, gateway: "LedgerGateway", min_health_factor: float = 1.5) -> None:
        self.gateway = gateway
        self.min_health_factor = min_health_factor
        self.last_health_factor: float | None = None
        self.last_exposure: float | None = None

    async def check_health_and_panic(self, position_id: str) -> bool:
        data = await self.gateway.account_health()
        if data["total_debt_base"] == 0:
            self.last_health_factor = None
            return True
        health = data["health_factor"] / WAD
        self.last_health_factor = health
        healthy = health >= self.min_health_factor
        level = logging.DEBUG if healthy else logging.CRITICAL
        log.log(level, json.dumps({
            "event": "health_check",
            "position_id": position_id,
            "health_factor": round(health, 4),
            "min_health_factor": self.min_health_factor,
            "healthy": healthy,
        }))
        return healthy

    async def adjust_hedge(self, exposure_amount: float, position_id: str) -> None:
        # Target short equals the LP's volatile exposure; execution is manual for now
        self.last_exposure = exposure_amount
        log.info(json.dumps({
            "event": "hedge_target",
            "position_id": position_id,
            "target_short": round(exposure_amount, 8),
        }))


class NullHedge:
    """No lending account: always healthy, nothing to adjust."""

    async def check_health_and_panic(self, position_id: str) -> bool:
        return True

    async def adjust_hedge(self, exposure_amount: float, position_id: str) -> None:
        log.debug(json.dumps({"event": "hedge_skipped", "position_id": position_id}))
