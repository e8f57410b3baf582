"""
Ledger access package.

- LedgerContext: web3 handle, signer and contract handles (built once)
- LedgerGateway: async reads, writes and receipt settlement
- amm_math: tick, price and liquidity arithmetic
"""

from lpkeeper.ledger.context import LedgerContext
from lpkeeper.ledger.gateway import GatewayConfig, LedgerGateway, parse_minted_position_id
from lpkeeper.ledger.models import Balances, PendingTx, PoolSnapshot, RangePosition

__all__ = [
    "LedgerContext",
    "LedgerGateway",
    "GatewayConfig",
    "parse_minted_position_id",
    "Balances",
    "PendingTx",
    "PoolSnapshot",
    "RangePosition",
]
