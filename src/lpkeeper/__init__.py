"""
lpkeeper: keeps one concentrated-liquidity position in range on a Uniswap V3 pool.
"""

__version__ = "0.1.0"
