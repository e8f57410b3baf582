"""
Pytest configuration and fixtures.
Adds src/ to Python path so tests can import the lpkeeper package without installing it.
"""

import sys
from pathlib import Path

# Add the repo root's src/ directory to sys.path
repo_root = Path(__file__).parent.parent
src_path = repo_root / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from lpkeeper.config.networks import NetworkConfig, TokenInfo
from lpkeeper.ledger.amm_math import tick_to_sqrt_price_x96
from lpkeeper.ledger.models import Balances, PendingTx, PoolSnapshot, RangePosition
from lpkeeper.state.state import NO_POSITION, PositionRecord

ACCOUNT = "0x00000000000000000000000000000000000000A1"

# Two 18-decimal tokens so that tick ~ 0 means price ~ 1
TEST_NETWORK = NetworkConfig(
    name="TEST",
    chain_id=31337,
    volatile=TokenInfo("VOL", "0x0000000000000000000000000000000000000011", 18),
    stable=TokenInfo("STB", "0x0000000000000000000000000000000000000022", 18),
    position_manager="0x0000000000000000000000000000000000000033",
    factory="0x0000000000000000000000000000000000000044",
    swap_router="0x0000000000000000000000000000000000000055",
    swap_router_kind="02",
    quoter="0x0000000000000000000000000000000000000066",
    aave_pool="0x0000000000000000000000000000000000000077",
)


def make_pool(tick: int, spacing: int = 10) -> PoolSnapshot:
    return PoolSnapshot(
        sqrt_price_x96=tick_to_sqrt_price_x96(tick),
        tick=tick,
        liquidity=10 ** 20,
        tick_spacing=spacing,
        price=1.0001 ** tick,
    )


def make_pending(label: str) -> PendingTx:
    async def _wait():
        return {"status": 1}
    return PendingTx(label=label, tx_hash=f"0x{label}", wait=_wait)


class MockGateway:
    """In-memory stand-in for LedgerGateway."""

    def __init__(self, tick: int = 0, position: RangePosition | None = None, owned=None):
        self.account = ACCOUNT
        self.ctx = SimpleNamespace(
            network=TEST_NETWORK,
            volatile_is_token0=True,
            address=ACCOUNT,
            reconnect=MagicMock(),
        )
        self.pool_snapshot = AsyncMock(return_value=make_pool(tick))
        self.position = AsyncMock(
            return_value=position or RangePosition("1", -100, 100, 10 ** 18)
        )
        owned = list(owned or [])
        self.owned_position_count = AsyncMock(return_value=len(owned))
        self.owned_position_at = AsyncMock(side_effect=lambda i: owned[i])
        self.balances = AsyncMock(return_value=Balances(volatile=10 ** 18, stable=10 ** 18))
        self.quote_exact_input = AsyncMock(return_value=10 ** 17)
        self.block_number = AsyncMock(return_value=100)
        self.chain_id = AsyncMock(return_value=TEST_NETWORK.chain_id)
        self.allowance = AsyncMock(return_value=0)
        self.account_health = AsyncMock(
            return_value={"total_collateral_base": 0, "total_debt_base": 0, "health_factor": 2 ** 256 - 1}
        )

        self.exit_position_batched = AsyncMock(return_value=make_pending("exit_multicall"))
        self.decrease_liquidity = AsyncMock(return_value=make_pending("decrease_liquidity"))
        self.collect = AsyncMock(return_value=make_pending("collect"))
        self.burn = AsyncMock(return_value=make_pending("burn"))
        self.swap_exact_input = AsyncMock(return_value=make_pending("swap"))
        self.mint = AsyncMock(return_value=make_pending("mint"))
        self.approve = AsyncMock(return_value=make_pending("approve"))
        self.settle = AsyncMock(side_effect=self._settle)
        self.parse_minted_position_id = MagicMock(return_value="1002")

    async def _settle(self, pending):
        return await pending.wait()

    @property
    def writes(self):
        """Every write method that was called."""
        names = ["exit_position_batched", "decrease_liquidity", "collect", "burn",
                 "swap_exact_input", "mint", "approve"]
        return [n for n in names if getattr(self, n).await_count]


class MemoryStateStore:
    """AtomicStateStore without the file."""

    def __init__(self, position_id: str = NO_POSITION):
        self.record = PositionRecord(position_id=position_id)
        self.saves = []
        self.fail_save = None

    async def load(self) -> PositionRecord:
        return self.record

    async def save(self, position_id: str) -> PositionRecord:
        if self.fail_save:
            raise self.fail_save
        self.saves.append(position_id)
        self.record = PositionRecord(position_id=position_id, last_checked_at=len(self.saves))
        return self.record


class MockHedge:
    def __init__(self, healthy: bool = True):
        self.healthy = healthy
        self.health_calls = []
        self.adjust_calls = []

    async def check_health_and_panic(self, position_id):
        self.health_calls.append(position_id)
        return self.healthy

    async def adjust_hedge(self, exposure_amount, position_id):
        self.adjust_calls.append((exposure_amount, position_id))


class MockAlerts:
    def __init__(self):
        self.sent = []

    async def notify(self, subject, body, severity=None, kind="CUSTOM", details=None):
        self.sent.append((kind, severity, subject))

    def kinds(self):
        return [k for k, _, _ in self.sent]


@pytest.fixture
def gateway():
    return MockGateway()


@pytest.fixture
def store():
    return MemoryStateStore()


@pytest.fixture
def alerts():
    return MockAlerts()
