"""
Per-evaluation views of ledger state. Never cached across evaluations.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict


@dataclass(frozen=True)
class PoolSnapshot:
    sqrt_price_x96: int
    tick: int
    liquidity: int
    tick_spacing: int
    # volatile asset quoted in the stable asset, human units
    price: float


@dataclass(frozen=True)
class RangePosition:
    position_id: str
    tick_lower: int
    tick_upper: int
    liquidity: int
    tokens_owed0: int = 0
    tokens_owed1: int = 0

    @property
    def is_empty(self) -> bool:
        return self.liquidity == 0

    @property
    def is_uninitialized(self) -> bool:
        return self.liquidity == 0 and self.tick_lower == 0 and self.tick_upper == 0

    def contains(self, tick: int) -> bool:
        return self.tick_lower <= tick <= self.tick_upper


@dataclass(frozen=True)
class Balances:
    volatile: int
    stable: int


@dataclass
class PendingTx:
    """A submitted transaction whose receipt has not been observed yet."""
    label: str
    tx_hash: str
    wait: Callable[[], Awaitable[Dict[str, Any]]]
