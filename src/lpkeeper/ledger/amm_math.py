"""
Concentrated-liquidity math for a single pool.

Prices are Q64.96 square roots as stored in slot0. Amounts are raw token
units (no decimals applied).
"""

from __future__ import annotations

import math
from typing import Tuple

Q96 = 2 ** 96
MIN_TICK = -887272
MAX_TICK = 887272
MAX_UINT128 = 2 ** 128 - 1
MAX_UINT256 = 2 ** 256 - 1
BPS = 10_000


def tick_to_sqrt_price_x96(tick: int) -> int:
    return int(math.sqrt(1.0001 ** tick) * Q96)


def sqrt_price_x96_to_price(sqrt_price_x96: int, decimals0: int, decimals1: int) -> float:
    """Human price of token0 quoted in token1."""
    raw = (sqrt_price_x96 / Q96) ** 2
    return raw * (10 ** decimals0) / (10 ** decimals1)


def _ordered(sqrt_a: int, sqrt_b: int) -> Tuple[int, int]:
    return (sqrt_a, sqrt_b) if sqrt_a <= sqrt_b else (sqrt_b, sqrt_a)


def liquidity_for_amount0(sqrt_a: int, sqrt_b: int, amount0: int) -> int:
    sqrt_a, sqrt_b = _ordered(sqrt_a, sqrt_b)
    if sqrt_a == sqrt_b:
        return 0
    intermediate = sqrt_a * sqrt_b // Q96
    return amount0 * intermediate // (sqrt_b - sqrt_a)


def liquidity_for_amount1(sqrt_a: int, sqrt_b: int, amount1: int) -> int:
    sqrt_a, sqrt_b = _ordered(sqrt_a, sqrt_b)
    if sqrt_a == sqrt_b:
        return 0
    return amount1 * Q96 // (sqrt_b - sqrt_a)


def liquidity_for_amounts(
    sqrt_price_x96: int, sqrt_a: int, sqrt_b: int, amount0: int, amount1: int
) -> int:
    """Largest liquidity that both amounts can fund at the current price."""
    sqrt_a, sqrt_b = _ordered(sqrt_a, sqrt_b)
    if sqrt_price_x96 <= sqrt_a:
        return liquidity_for_amount0(sqrt_a, sqrt_b, amount0)
    if sqrt_price_x96 < sqrt_b:
        l0 = liquidity_for_amount0(sqrt_price_x96, sqrt_b, amount0)
        l1 = liquidity_for_amount1(sqrt_a, sqrt_price_x96, amount1)
        return min(l0, l1)
    return liquidity_for_amount1(sqrt_a, sqrt_b, amount1)


def amounts_for_liquidity(
    sqrt_price_x96: int, sqrt_a: int, sqrt_b: int, liquidity: int
) -> Tuple[int, int]:
    """Token amounts represented by liquidity in [sqrt_a, sqrt_b]."""
    sqrt_a, sqrt_b = _ordered(sqrt_a, sqrt_b)
    if liquidity <= 0 or sqrt_a == sqrt_b:
        return 0, 0
    sp = min(max(sqrt_price_x96, sqrt_a), sqrt_b)
    amount0 = liquidity * Q96 * (sqrt_b - sp) // (sqrt_b * sp) if sp < sqrt_b else 0
    amount1 = liquidity * (sp - sqrt_a) // Q96 if sp > sqrt_a else 0
    return amount0, amount1


def apply_slippage(amount: int, slippage_bps: int) -> int:
    """Minimum acceptable amount: amount less slippage_bps, rounded down."""
    return amount * (BPS - slippage_bps) // BPS
