"""
Risk package: the hedge collaborator and the terminal safe-mode breaker.
"""

from lpkeeper.risk.hedge import AaveHealthGuard, HedgeCollaborator, NullHedge, lp_volatile_exposure
from lpkeeper.risk.safe_mode import SafeModeBreaker, SafeModeConfig

__all__ = [
    "AaveHealthGuard",
    "HedgeCollaborator",
    "NullHedge",
    "lp_volatile_exposure",
    "SafeModeBreaker",
    "SafeModeConfig",
]
