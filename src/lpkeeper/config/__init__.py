"""
Configuration package.

Environment-driven settings and the static per-network address book.
"""

from lpkeeper.config.config import Settings
from lpkeeper.config.networks import NETWORKS, NetworkConfig, TokenInfo, get_network

__all__ = [
    "Settings",
    "NETWORKS",
    "NetworkConfig",
    "TokenInfo",
    "get_network",
]
