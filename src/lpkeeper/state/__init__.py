"""
State persistence package.

PositionRecord is the single durable record per managed account.
"""

from lpkeeper.state.state import NO_POSITION, PositionRecord, StateStore
from lpkeeper.state.state_atomic import AtomicStateStore

__all__ = [
    "NO_POSITION",
    "PositionRecord",
    "StateStore",
    "AtomicStateStore",
]
