"""
LedgerContext: the one web3 handle, signer, and set of contract handles.

Built once at startup and passed to every component that talks to the
ledger. reconnect() swaps the provider in place so holders of the context
keep working after a transport failure.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, List, Optional

from web3 import Web3

from lpkeeper.config.networks import NetworkConfig
from lpkeeper.ledger import abi

log = logging.getLogger("lpkeeper")


def _http_web3(url: str, timeout: float) -> Web3:
    return Web3(Web3.HTTPProvider(url, request_kwargs={"timeout": timeout}))


class LedgerContext:
    def __init__(
        self,
        network: NetworkConfig,
        rpc_url: str,
        signer: Any,
        fallback_url: Optional[str] = None,
        request_timeout: float = 15.0,
        web3_factory: Optional[Callable[[str, float], Web3]] = None,
    ) -> None:
        self.network = network
        self.signer = signer
        self.address: str = Web3.to_checksum_address(signer.address)
        self._urls: List[str] = [rpc_url] + ([fallback_url] if fallback_url else [])
        self._url_index = 0
        self._timeout = request_timeout
        self._factory = web3_factory or _http_web3
        self._pool_address: Optional[str] = None
        self.reconnects = 0
        self._bind(self._urls[0])

    @property
    def rpc_url(self) -> str:
        return self._urls[self._url_index]

    @property
    def volatile_is_token0(self) -> bool:
        # Pools order tokens by address
        return int(self.network.volatile.address, 16) < int(self.network.stable.address, 16)

    def _bind(self, url: str) -> None:
        self.w3 = self._factory(url, self._timeout)
        net = self.network
        self.position_manager = self._contract(net.position_manager, abi.POSITION_MANAGER_ABI)
        router_abi = abi.SWAP_ROUTER_ABI if net.swap_router_kind == "v1" else abi.SWAP_ROUTER02_ABI
        self.swap_router = self._contract(net.swap_router, router_abi)
        self.quoter = self._contract(net.quoter, abi.QUOTER_V2_ABI)
        self.factory = self._contract(net.factory, abi.FACTORY_ABI)
        self.aave_pool = self._contract(net.aave_pool, abi.AAVE_POOL_ABI)
        self.volatile_token = self._contract(net.volatile.address, abi.ERC20_ABI)
        self.stable_token = self._contract(net.stable.address, abi.ERC20_ABI)

    def _contract(self, address: str, contract_abi: list):
        return self.w3.eth.contract(address=Web3.to_checksum_address(address), abi=contract_abi)

    def token(self, address: str):
        return self._contract(address, abi.ERC20_ABI)

    def pool(self):
        """Pool contract, resolving its address through the factory once. Blocking."""
        if self._pool_address is None:
            net = self.network
            addr = self.factory.functions.getPool(
                Web3.to_checksum_address(net.volatile.address),
                Web3.to_checksum_address(net.stable.address),
                net.pool_fee,
            ).call()
            if int(addr, 16) == 0:
                raise RuntimeError(
                    f"no pool for {net.volatile.symbol}/{net.stable.symbol} fee={net.pool_fee}"
                )
            self._pool_address = Web3.to_checksum_address(addr)
        return self._contract(self._pool_address, abi.POOL_ABI)

    def reconnect(self) -> str:
        """Rebuild the provider, rotating to the next configured URL. Blocking."""
        self._url_index = (self._url_index + 1) % len(self._urls)
        url = self.rpc_url
        self._bind(url)
        self.reconnects += 1
        log.warning(json.dumps({
            "event": "rpc_reconnected",
            "url_index": self._url_index,
            "reconnects": self.reconnects,
        }))
        return url
