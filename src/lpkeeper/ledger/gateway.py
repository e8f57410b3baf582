"""
LedgerGateway: async read and write interface over LedgerContext.

Reads are idempotent and retried. Writes are split into build (retried, it
has no side effects) and send (never retried, the node may already have it).
Every write returns a PendingTx; settle() bounds the wait for its receipt.

Thread Safety:
    A single asyncio.Lock serialises build+send so pending nonces never
    collide within this process.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence

from web3 import Web3
from web3.exceptions import ContractLogicError

from lpkeeper.errors import ProtocolInvariantViolation, TxReverted
from lpkeeper.infra.async_ledger import AsyncLedger
from lpkeeper.infra.retry import with_retry, with_timeout
from lpkeeper.ledger.amm_math import MAX_UINT128, MAX_UINT256, sqrt_price_x96_to_price
from lpkeeper.ledger.context import LedgerContext
from lpkeeper.ledger.models import Balances, PendingTx, PoolSnapshot, RangePosition

log = logging.getLogger("lpkeeper")

INCREASE_LIQUIDITY_TOPIC = bytes(Web3.keccak(text="IncreaseLiquidity(uint256,uint128,uint256,uint256)"))


@dataclass
class GatewayConfig:
    max_retries: int = 3
    retry_base_sec: float = 1.0
    tx_timeout_sec: float = 120.0
    tx_deadline_sec: int = 120
    gas_multiplier: float = 1.3
    log_event_callback: Optional[Callable[..., None]] = None


def _to_bytes(value: Any) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    text = str(value)
    return bytes.fromhex(text[2:] if text.startswith("0x") else text)


def _hex(value: Any) -> str:
    if isinstance(value, str):
        return value if value.startswith("0x") else "0x" + value
    return "0x" + _to_bytes(value).hex()


def parse_minted_position_id(receipt: Dict[str, Any], position_manager: str) -> str:
    """
    Position id minted by receipt.

    The receipt must carry exactly one IncreaseLiquidity log emitted by the
    position manager; the id is its first indexed argument.
    """
    manager = position_manager.lower()
    matches = []
    for entry in receipt.get("logs", []):
        topics = entry.get("topics") or []
        if not topics or str(entry.get("address", "")).lower() != manager:
            continue
        if _to_bytes(topics[0]) != INCREASE_LIQUIDITY_TOPIC or len(topics) < 2:
            continue
        matches.append(int.from_bytes(_to_bytes(topics[1]), "big"))
    if len(matches) != 1:
        raise ProtocolInvariantViolation(
            f"mint {_hex(receipt.get('transactionHash', b''))} settled with "
            f"{len(matches)} IncreaseLiquidity events; position id unknown"
        )
    return str(matches[0])


class LedgerGateway:
    def __init__(
        self,
        ctx: LedgerContext,
        executor: AsyncLedger,
        config: Optional[GatewayConfig] = None,
    ) -> None:
        self.ctx = ctx
        self._ledger = executor
        self.config = config or GatewayConfig()
        self._nonce_lock = asyncio.Lock()
        self._log_event = self.config.log_event_callback or self._default_log

    def _default_log(self, event: str, **kwargs: Any) -> None:
        log.info(json.dumps({"event": event, **kwargs}, default=str))

    @property
    def account(self) -> str:
        return self.ctx.address

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def _read(self, label: str, fn: Callable[[], Any]) -> Any:
        return await with_retry(
            lambda: self._ledger.call(fn),
            retries=self.config.max_retries,
            base_delay=self.config.retry_base_sec,
            label=label,
        )

    async def chain_id(self) -> int:
        return int(await self._read("chain_id", lambda: self.ctx.w3.eth.chain_id))

    async def block_number(self) -> int:
        # No retry: the block watcher counts failures itself
        return int(await self._ledger.call(lambda: self.ctx.w3.eth.block_number))

    async def pool_snapshot(self) -> PoolSnapshot:
        def _fetch():
            pool = self.ctx.pool()
            slot0 = pool.functions.slot0().call()
            liquidity = pool.functions.liquidity().call()
            spacing = pool.functions.tickSpacing().call()
            return slot0, liquidity, spacing

        slot0, liquidity, spacing = await self._read("pool_snapshot", _fetch)
        sqrt_price_x96, tick = int(slot0[0]), int(slot0[1])
        net = self.ctx.network
        if self.ctx.volatile_is_token0:
            price = sqrt_price_x96_to_price(sqrt_price_x96, net.volatile.decimals, net.stable.decimals)
        else:
            inverse = sqrt_price_x96_to_price(sqrt_price_x96, net.stable.decimals, net.volatile.decimals)
            price = 1.0 / inverse if inverse > 0 else 0.0
        return PoolSnapshot(
            sqrt_price_x96=sqrt_price_x96,
            tick=tick,
            liquidity=int(liquidity),
            tick_spacing=int(spacing),
            price=price,
        )

    async def position(self, position_id: str) -> RangePosition:
        """Position by id. A burned or unknown id reads as an uninitialized position."""
        def _fetch():
            try:
                return self.ctx.position_manager.functions.positions(int(position_id)).call()
            except ContractLogicError:
                return None

        raw = await self._read("position", _fetch)
        if raw is None:
            return RangePosition(position_id=str(position_id), tick_lower=0, tick_upper=0, liquidity=0)
        return RangePosition(
            position_id=str(position_id),
            tick_lower=int(raw[5]),
            tick_upper=int(raw[6]),
            liquidity=int(raw[7]),
            tokens_owed0=int(raw[10]),
            tokens_owed1=int(raw[11]),
        )

    async def owned_position_count(self) -> int:
        return int(await self._read(
            "owned_count",
            lambda: self.ctx.position_manager.functions.balanceOf(self.account).call(),
        ))

    async def owned_position_at(self, index: int) -> str:
        token_id = await self._read(
            "owned_at",
            lambda: self.ctx.position_manager.functions.tokenOfOwnerByIndex(self.account, index).call(),
        )
        return str(int(token_id))

    async def balances(self) -> Balances:
        def _fetch():
            vol = self.ctx.volatile_token.functions.balanceOf(self.account).call()
            stable = self.ctx.stable_token.functions.balanceOf(self.account).call()
            return vol, stable

        vol, stable = await self._read("balances", _fetch)
        return Balances(volatile=int(vol), stable=int(stable))

    async def allowance(self, token: str, spender: str) -> int:
        return int(await self._read(
            "allowance",
            lambda: self.ctx.token(token).functions.allowance(
                self.account, Web3.to_checksum_address(spender)
            ).call(),
        ))

    async def quote_exact_input(self, token_in: str, token_out: str, amount_in: int) -> int:
        params = (
            Web3.to_checksum_address(token_in),
            Web3.to_checksum_address(token_out),
            int(amount_in),
            self.ctx.network.pool_fee,
            0,
        )
        out = await self._read(
            "quote",
            lambda: self.ctx.quoter.functions.quoteExactInputSingle(params).call(),
        )
        return int(out[0])

    async def account_health(self) -> Dict[str, int]:
        raw = await self._read(
            "account_health",
            lambda: self.ctx.aave_pool.functions.getUserAccountData(self.account).call(),
        )
        return {
            "total_collateral_base": int(raw[0]),
            "total_debt_base": int(raw[1]),
            "health_factor": int(raw[5]),
        }

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _deadline(self) -> int:
        return int(time.time()) + self.config.tx_deadline_sec

    def _build(self, contract_fn) -> Dict[str, Any]:
        w3 = self.ctx.w3
        tx = contract_fn.build_transaction({
            "from": self.account,
            "nonce": w3.eth.get_transaction_count(self.account, "pending"),
            "chainId": self.ctx.network.chain_id,
        })
        tx["gas"] = int(w3.eth.estimate_gas(tx) * self.config.gas_multiplier)
        return tx

    def _sign_and_send(self, tx: Dict[str, Any]) -> str:
        signed = self.ctx.signer.sign_transaction(tx)
        return _hex(self.ctx.w3.eth.send_raw_transaction(signed.raw_transaction))

    async def _send(self, label: str, make_fn: Callable[[], Any]) -> PendingTx:
        async with self._nonce_lock:
            tx = await with_retry(
                lambda: self._ledger.call(lambda: self._build(make_fn())),
                retries=self.config.max_retries,
                base_delay=self.config.retry_base_sec,
                label=f"build_{label}",
            )
            # No hash yet on expiry: the node may or may not hold the tx.
            tx_hash = await with_timeout(
                self._ledger.submit(lambda: self._sign_and_send(tx)),
                self.config.tx_timeout_sec,
                label=label,
            )
        self._log_event("tx_submitted", label=label, tx_hash=tx_hash)

        receipt_timeout = self.config.tx_timeout_sec + 5.0

        async def _wait() -> Dict[str, Any]:
            return dict(await self._ledger.submit(
                lambda: self.ctx.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=receipt_timeout)
            ))

        return PendingTx(label=label, tx_hash=tx_hash, wait=_wait)

    async def settle(self, pending: PendingTx) -> Dict[str, Any]:
        """Wait for pending's receipt. TxTimeout if unseen, TxReverted on status 0."""
        receipt = await with_timeout(
            pending.wait(), self.config.tx_timeout_sec, label=pending.label, tx_hash=pending.tx_hash,
        )
        if int(receipt.get("status", 0)) != 1:
            raise TxReverted(pending.label, pending.tx_hash)
        self._log_event(
            "tx_settled", label=pending.label, tx_hash=pending.tx_hash,
            block=receipt.get("blockNumber"), gas_used=receipt.get("gasUsed"),
        )
        return receipt

    def _decrease_params(self, position_id: str, liquidity: int) -> tuple:
        return (int(position_id), int(liquidity), 0, 0, self._deadline())

    def _collect_params(self, position_id: str) -> tuple:
        return (int(position_id), self.account, MAX_UINT128, MAX_UINT128)

    async def exit_position_batched(self, position_id: str, liquidity: int) -> PendingTx:
        """decreaseLiquidity (when liquidity > 0), collect and burn in one multicall."""
        npm = self.ctx.position_manager

        def _make():
            calls: List[str] = []
            if liquidity > 0:
                calls.append(npm.encode_abi(
                    "decreaseLiquidity", args=[self._decrease_params(position_id, liquidity)]
                ))
            calls.append(npm.encode_abi("collect", args=[self._collect_params(position_id)]))
            calls.append(npm.encode_abi("burn", args=[int(position_id)]))
            return npm.functions.multicall(calls)

        return await self._send("exit_multicall", _make)

    async def decrease_liquidity(self, position_id: str, liquidity: int) -> PendingTx:
        npm = self.ctx.position_manager
        return await self._send(
            "decrease_liquidity",
            lambda: npm.functions.decreaseLiquidity(self._decrease_params(position_id, liquidity)),
        )

    async def collect(self, position_id: str) -> PendingTx:
        npm = self.ctx.position_manager
        return await self._send(
            "collect", lambda: npm.functions.collect(self._collect_params(position_id)),
        )

    async def burn(self, position_id: str) -> PendingTx:
        npm = self.ctx.position_manager
        return await self._send("burn", lambda: npm.functions.burn(int(position_id)))

    async def swap_exact_input(
        self, token_in: str, token_out: str, amount_in: int, min_amount_out: int
    ) -> PendingTx:
        router = self.ctx.swap_router
        fee = self.ctx.network.pool_fee

        def _make():
            t_in = Web3.to_checksum_address(token_in)
            t_out = Web3.to_checksum_address(token_out)
            if self.ctx.network.swap_router_kind == "v1":
                params = (t_in, t_out, fee, self.account, self._deadline(),
                          int(amount_in), int(min_amount_out), 0)
            else:
                params = (t_in, t_out, fee, self.account, int(amount_in), int(min_amount_out), 0)
            return router.functions.exactInputSingle(params)

        return await self._send("swap", _make)

    async def mint(
        self,
        token0: str,
        token1: str,
        tick_lower: int,
        tick_upper: int,
        amounts_desired: Sequence[int],
        amounts_min: Sequence[int],
    ) -> PendingTx:
        npm = self.ctx.position_manager

        def _make():
            params = (
                Web3.to_checksum_address(token0),
                Web3.to_checksum_address(token1),
                self.ctx.network.pool_fee,
                int(tick_lower),
                int(tick_upper),
                int(amounts_desired[0]),
                int(amounts_desired[1]),
                int(amounts_min[0]),
                int(amounts_min[1]),
                self.account,
                self._deadline(),
            )
            return npm.functions.mint(params)

        return await self._send("mint", _make)

    async def approve(self, token: str, spender: str, amount: int = MAX_UINT256) -> PendingTx:
        contract = self.ctx.token(token)
        return await self._send(
            "approve",
            lambda: contract.functions.approve(Web3.to_checksum_address(spender), int(amount)),
        )

    def parse_minted_position_id(self, receipt: Dict[str, Any]) -> str:
        return parse_minted_position_id(receipt, self.ctx.network.position_manager)
