"""
Sanity tests for concentrated-liquidity math.
"""
import pytest

from lpkeeper.ledger.amm_math import (
    Q96,
    amounts_for_liquidity,
    apply_slippage,
    liquidity_for_amounts,
    sqrt_price_x96_to_price,
    tick_to_sqrt_price_x96,
)


def test_tick_zero_is_parity():
    assert tick_to_sqrt_price_x96(0) == Q96
    assert sqrt_price_x96_to_price(Q96, 18, 18) == pytest.approx(1.0)


def test_decimals_adjust_price():
    # WETH(18)/USDC(6) at raw 2e-9 is $2000
    sqrt_price = int((2e-9) ** 0.5 * Q96)
    assert sqrt_price_x96_to_price(sqrt_price, 18, 6) == pytest.approx(2000.0, rel=1e-9)


def test_in_range_liquidity_uses_both_tokens():
    sp = tick_to_sqrt_price_x96(0)
    sa, sb = tick_to_sqrt_price_x96(-600), tick_to_sqrt_price_x96(600)
    liquidity = liquidity_for_amounts(sp, sa, sb, 10 ** 18, 10 ** 18)
    assert liquidity > 0
    amount0, amount1 = amounts_for_liquidity(sp, sa, sb, liquidity)
    assert 0 < amount0 <= 10 ** 18
    assert 0 < amount1 <= 10 ** 18


def test_out_of_range_liquidity_uses_one_token():
    sa, sb = tick_to_sqrt_price_x96(100), tick_to_sqrt_price_x96(200)
    below = tick_to_sqrt_price_x96(0)
    assert liquidity_for_amounts(below, sa, sb, 0, 10 ** 18) == 0
    assert liquidity_for_amounts(below, sa, sb, 10 ** 18, 0) > 0


def test_zero_liquidity_has_no_amounts():
    assert amounts_for_liquidity(Q96, Q96 // 2, Q96 * 2, 0) == (0, 0)


def test_apply_slippage_rounds_down():
    assert apply_slippage(10_000, 50) == 9_950
    assert apply_slippage(199, 50) == 198
    assert apply_slippage(1000, 0) == 1000
