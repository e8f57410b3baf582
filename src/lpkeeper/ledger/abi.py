"""
Minimal JSON ABIs for the contracts the keeper touches.

Only the entries actually called are listed.
"""

from __future__ import annotations

from typing import Any, Dict, List, Sequence, Tuple

Param = Tuple[str, str]


def _p(params: Sequence[Param]) -> List[Dict[str, Any]]:
    return [{"name": name, "type": typ} for typ, name in params]


def _tuple(name: str, components: Sequence[Param]) -> Dict[str, Any]:
    return {"name": name, "type": "tuple", "components": _p(components)}


def _fn(
    name: str,
    inputs: Sequence[Any] = (),
    outputs: Sequence[Param] = (),
    mutability: str = "view",
) -> Dict[str, Any]:
    return {
        "type": "function",
        "name": name,
        "inputs": [i if isinstance(i, dict) else _p([i])[0] for i in inputs],
        "outputs": _p(outputs),
        "stateMutability": mutability,
    }


ERC20_ABI = [
    _fn("balanceOf", [("address", "owner")], [("uint256", "")]),
    _fn("decimals", [], [("uint8", "")]),
    _fn("allowance", [("address", "owner"), ("address", "spender")], [("uint256", "")]),
    _fn("approve", [("address", "spender"), ("uint256", "amount")], [("bool", "")], "nonpayable"),
]

POOL_ABI = [
    _fn("slot0", [], [
        ("uint160", "sqrtPriceX96"), ("int24", "tick"), ("uint16", "observationIndex"),
        ("uint16", "observationCardinality"), ("uint16", "observationCardinalityNext"),
        ("uint8", "feeProtocol"), ("bool", "unlocked"),
    ]),
    _fn("liquidity", [], [("uint128", "")]),
    _fn("tickSpacing", [], [("int24", "")]),
    _fn("token0", [], [("address", "")]),
    _fn("token1", [], [("address", "")]),
]

FACTORY_ABI = [
    _fn("getPool", [("address", "tokenA"), ("address", "tokenB"), ("uint24", "fee")], [("address", "")]),
]

_MINT_PARAMS = [
    ("address", "token0"), ("address", "token1"), ("uint24", "fee"),
    ("int24", "tickLower"), ("int24", "tickUpper"),
    ("uint256", "amount0Desired"), ("uint256", "amount1Desired"),
    ("uint256", "amount0Min"), ("uint256", "amount1Min"),
    ("address", "recipient"), ("uint256", "deadline"),
]
_DECREASE_PARAMS = [
    ("uint256", "tokenId"), ("uint128", "liquidity"),
    ("uint256", "amount0Min"), ("uint256", "amount1Min"), ("uint256", "deadline"),
]
_COLLECT_PARAMS = [
    ("uint256", "tokenId"), ("address", "recipient"),
    ("uint128", "amount0Max"), ("uint128", "amount1Max"),
]

POSITION_MANAGER_ABI = [
    _fn("balanceOf", [("address", "owner")], [("uint256", "")]),
    _fn("tokenOfOwnerByIndex", [("address", "owner"), ("uint256", "index")], [("uint256", "")]),
    _fn("positions", [("uint256", "tokenId")], [
        ("uint96", "nonce"), ("address", "operator"), ("address", "token0"), ("address", "token1"),
        ("uint24", "fee"), ("int24", "tickLower"), ("int24", "tickUpper"), ("uint128", "liquidity"),
        ("uint256", "feeGrowthInside0LastX128"), ("uint256", "feeGrowthInside1LastX128"),
        ("uint128", "tokensOwed0"), ("uint128", "tokensOwed1"),
    ]),
    _fn("mint", [_tuple("params", _MINT_PARAMS)], [
        ("uint256", "tokenId"), ("uint128", "liquidity"), ("uint256", "amount0"), ("uint256", "amount1"),
    ], "payable"),
    _fn("decreaseLiquidity", [_tuple("params", _DECREASE_PARAMS)],
        [("uint256", "amount0"), ("uint256", "amount1")], "payable"),
    _fn("collect", [_tuple("params", _COLLECT_PARAMS)],
        [("uint256", "amount0"), ("uint256", "amount1")], "payable"),
    _fn("burn", [("uint256", "tokenId")], [], "payable"),
    _fn("multicall", [("bytes[]", "data")], [("bytes[]", "results")], "payable"),
    {
        "type": "event",
        "name": "IncreaseLiquidity",
        "anonymous": False,
        "inputs": [
            {"name": "tokenId", "type": "uint256", "indexed": True},
            {"name": "liquidity", "type": "uint128", "indexed": False},
            {"name": "amount0", "type": "uint256", "indexed": False},
            {"name": "amount1", "type": "uint256", "indexed": False},
        ],
    },
]

SWAP_ROUTER_ABI = [
    _fn("exactInputSingle", [_tuple("params", [
        ("address", "tokenIn"), ("address", "tokenOut"), ("uint24", "fee"),
        ("address", "recipient"), ("uint256", "deadline"), ("uint256", "amountIn"),
        ("uint256", "amountOutMinimum"), ("uint160", "sqrtPriceLimitX96"),
    ])], [("uint256", "amountOut")], "payable"),
]

SWAP_ROUTER02_ABI = [
    _fn("exactInputSingle", [_tuple("params", [
        ("address", "tokenIn"), ("address", "tokenOut"), ("uint24", "fee"),
        ("address", "recipient"), ("uint256", "amountIn"),
        ("uint256", "amountOutMinimum"), ("uint160", "sqrtPriceLimitX96"),
    ])], [("uint256", "amountOut")], "payable"),
]

QUOTER_V2_ABI = [
    _fn("quoteExactInputSingle", [_tuple("params", [
        ("address", "tokenIn"), ("address", "tokenOut"), ("uint256", "amountIn"),
        ("uint24", "fee"), ("uint160", "sqrtPriceLimitX96"),
    ])], [
        ("uint256", "amountOut"), ("uint160", "sqrtPriceX96After"),
        ("uint32", "initializedTicksCrossed"), ("uint256", "gasEstimate"),
    ], "nonpayable"),
]

AAVE_POOL_ABI = [
    _fn("getUserAccountData", [("address", "user")], [
        ("uint256", "totalCollateralBase"), ("uint256", "totalDebtBase"),
        ("uint256", "availableBorrowsBase"), ("uint256", "currentLiquidationThreshold"),
        ("uint256", "ltv"), ("uint256", "healthFactor"),
    ]),
]
