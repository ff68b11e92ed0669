"""
Minimal ABI fragments for the contracts margin-desk talks to.

Only the functions actually called are listed; the deployed artifacts carry
many more.
"""
from __future__ import annotations


def _fn(name: str, inputs=(), outputs=(), mutability: str = "view") -> dict:
    return {
        "type": "function",
        "name": name,
        "stateMutability": mutability,
        "inputs": [{"name": n, "type": t} for n, t in inputs],
        "outputs": [{"name": n, "type": t} for n, t in outputs],
    }


ERC20_ABI = [
    _fn("symbol", outputs=[("", "string")]),
    _fn("decimals", outputs=[("", "uint8")]),
    _fn("balanceOf", [("account", "address")], [("", "uint256")]),
    _fn("allowance", [("owner", "address"), ("spender", "address")], [("", "uint256")]),
    _fn("approve", [("spender", "address"), ("amount", "uint256")], [("", "bool")], "nonpayable"),
]

PRICE_FEED_ABI = [
    _fn("getTokenLatestPriceInUsd", [("token", "address")], [("", "uint256")]),
    _fn("getAmountInUsd", [("token", "address"), ("amount", "uint256")], [("", "uint256")]),
]

POSITIONS_ABI = [
    _fn("ownerOf", [("tokenId", "uint256")], [("", "address")]),
    _fn("posId", outputs=[("", "uint256")]),
    _fn("getPositionState", [("posId", "uint256")], [("", "uint8")]),
]

MARKET_ABI = [
    _fn(
        "getPositionParams",
        [("posId", "uint256")],
        [
            ("baseToken", "address"),
            ("quoteToken", "address"),
            ("positionSize", "uint128"),
            ("timestamp", "uint64"),
            ("isShort", "bool"),
            ("leverage", "uint8"),
            ("breakEvenLimit", "uint256"),
            ("limitPrice", "uint160"),
            ("stopLossPrice", "uint256"),
            ("currentPnL", "int128"),
            ("collateralLeft", "int128"),
        ],
    ),
    _fn(
        "openPosition",
        [
            ("token0", "address"),
            ("token1", "address"),
            ("fee", "uint24"),
            ("isShort", "bool"),
            ("leverage", "uint8"),
            ("amount", "uint128"),
            ("limitPrice", "uint160"),
            ("stopLossPrice", "uint256"),
        ],
        mutability="nonpayable",
    ),
    _fn("closePosition", [("posId", "uint256")], mutability="nonpayable"),
    _fn("getLiquidablePositions", outputs=[("", "uint256[]")]),
    _fn("liquidatePositions", [("posIds", "uint256[]")], mutability="nonpayable"),
    _fn("getTraderPositions", [("trader", "address")], [("", "uint256[]")]),
]

LIQUIDITY_POOL_ABI = [
    _fn("totalAssets", outputs=[("", "uint256")]),
    _fn("convertToAssets", [("shares", "uint256")], [("", "uint256")]),
    _fn("balanceOf", [("account", "address")], [("", "uint256")]),
    _fn("availableBorrowCapacity", [("token", "address")], [("", "uint256")]),
    _fn("deposit", [("assets", "uint256"), ("receiver", "address")], [("", "uint256")], "nonpayable"),
    _fn(
        "redeem",
        [("shares", "uint256"), ("receiver", "address"), ("owner", "address")],
        [("", "uint256")],
        "nonpayable",
    ),
]

POOL_FACTORY_ABI = [
    _fn("getTokenToLiquidityPools", [("token", "address")], [("", "address")]),
]

FEE_MANAGER_ABI = [
    _fn("defaultTreasureFee", outputs=[("", "uint256")]),
    _fn("defaultLiquidationReward", outputs=[("", "uint256")]),
    _fn(
        "setDefaultFees",
        [("treasureFee", "uint256"), ("liquidationReward", "uint256")],
        mutability="nonpayable",
    ),
]
