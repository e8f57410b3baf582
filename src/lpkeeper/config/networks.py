"""
Per-network contract addresses for the WETH/USDC 0.3% pool.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict

from lpkeeper.errors import ConfigError

POOL_FEE = 3000


@dataclass(frozen=True)
class TokenInfo:
    symbol: str
    address: str
    decimals: int


@dataclass(frozen=True)
class NetworkConfig:
    name: str
    chain_id: int
    volatile: TokenInfo
    stable: TokenInfo
    position_manager: str
    factory: str
    swap_router: str
    # "v1" takes a deadline in exactInputSingle, "02" does not
    swap_router_kind: str
    quoter: str
    aave_pool: str
    pool_fee: int = POOL_FEE


NETWORKS: Dict[str, NetworkConfig] = {
    # Arbitrum One
    "MAINNET": NetworkConfig(
        name="MAINNET",
        chain_id=42161,
        volatile=TokenInfo("WETH", "0x82aF49447D8a07e3bd95BD0d56f35241523fBab1", 18),
        stable=TokenInfo("USDC", "0xaf88d065e77c8cC2239327C5EDb3A432268e5831", 6),
        position_manager="0xC36442b4a4522E871399CD717aBDD847Ab11FE88",
        factory="0x1F98431c8aD98523631AE4a59f267346ea31F984",
        swap_router="0xE592427A0AEce92De3Edee1F18E0157C05861564",
        swap_router_kind="v1",
        quoter="0x61fFE014bA17989E743c5F6cB21bF9697530B21e",
        aave_pool="0x794a61358D6845594F94dc1DB02A252b5b4814aD",
    ),
    "SEPOLIA": NetworkConfig(
        name="SEPOLIA",
        chain_id=11155111,
        volatile=TokenInfo("WETH", "0xfFf9976782d46CC05630D1f6eBAb18b2324d6B14", 18),
        stable=TokenInfo("USDC", "0x1c7D4B196Cb0C7B01d743Fbc6116a902379C7238", 6),
        position_manager="0x1238536071E1c677A632429e3655c799b22cDA52",
        factory="0x0227628f3F023bb0B980b67D528571c95c6DaC1c",
        swap_router="0x3bFA4769FB09e8893f006F12D45212349f9aE488",
        swap_router_kind="02",
        quoter="0xEd1f6473345F45b75F8179591dd5bA1888cf2FB3",
        aave_pool="0x6Ae43d3271ff6888e7Fc43Fd7321a503ff738951",
    ),
}


def get_network(name: str) -> NetworkConfig:
    try:
        return NETWORKS[name.upper()]
    except KeyError:
        raise ConfigError(f"unknown network {name!r}; expected one of {sorted(NETWORKS)}") from None
