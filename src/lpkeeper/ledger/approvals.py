"""
One-time ERC20 approvals for the position manager and the swap router.
"""

from __future__ import annotations

import json
import logging
from typing import List, Tuple, TYPE_CHECKING

from lpkeeper.ledger.amm_math import MAX_UINT256

if TYPE_CHECKING:
    from lpkeeper.ledger.gateway import LedgerGateway

log = logging.getLogger("lpkeeper")


async def approve_all(gateway: "LedgerGateway") -> List[Tuple[str, str]]:
    """
    Approve both pool tokens for both spenders where the allowance is zero.

    Returns the (token symbol, spender) pairs that were approved.
    """
    net = gateway.ctx.network
    spenders = [("position_manager", net.position_manager), ("swap_router", net.swap_router)]
    approved: List[Tuple[str, str]] = []
    for token in (net.stable, net.volatile):
        for spender_name, spender in spenders:
            allowance = await gateway.allowance(token.address, spender)
            if allowance > 0:
                continue
            log.info(json.dumps({"event": "approve_start", "token": token.symbol, "spender": spender_name}))
            await gateway.settle(await gateway.approve(token.address, spender, MAX_UINT256))
            approved.append((token.symbol, spender_name))
    log.info(json.dumps({"event": "approvals_checked", "approved": approved}))
    return approved
