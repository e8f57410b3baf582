"""
Position lifecycle engine.

- RebalanceEngine: exit, swap, range, mint
- Reconciler: adopt a ledger-owned position the record does not know about
- range_calc: pure tick window computation
"""

from lpkeeper.engine.range_calc import clamp_and_normalize, compute_tick_range, usable_tick_bounds
from lpkeeper.engine.rebalance import RebalanceConfig, RebalanceEngine, RebalanceResult, SwapPlan
from lpkeeper.engine.reconciler import Reconciler, ReconcilerConfig, ReconcileResult

__all__ = [
    "clamp_and_normalize",
    "compute_tick_range",
    "usable_tick_bounds",
    "RebalanceConfig",
    "RebalanceEngine",
    "RebalanceResult",
    "SwapPlan",
    "Reconciler",
    "ReconcilerConfig",
    "ReconcileResult",
]
