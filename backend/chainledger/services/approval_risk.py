from __future__ import annotations
from typing import Optional

from chainledger.models.token_approval import RiskLevel

MAX_UINT256 = 2**256 - 1
MAX_UINT256_STR = str(MAX_UINT256)
MAX_UINT256_HEX = "0x" + "f" * 64

# Some indexers report unbounded allowances with a word instead of the number
UNLIMITED_SENTINELS = {"infinite", "unlimited"}

# Spender names containing one of these are well-known protocols
KNOWN_SAFE_PROTOCOLS = ("uniswap", "aave", "compound", "curve")

# Well-known spender contracts, lower-case address -> display name.
# The same deployment address is shared across the EVM chains listed.
KNOWN_SPENDERS = {
    "0x7a250d5630b4cf539739df2c5dacb4c659f2488d": "Uniswap V2 Router",
    "0xe592427a0aece92de3edee1f18e0157c05861564": "Uniswap V3 Router",
    "0x68b3465833fb72a70ecdf485e0e4c7bd8665fc45": "Uniswap V3 Router 2",
    "0x3fc91a3afd70395cd496c647d5a6cc9d4b2b7fad": "Uniswap Universal Router",
    "0x000000000022d473030f116ddee9f6b43ac78ba3": "Uniswap Permit2",
    "0x87870bca3f3fd6335c3f4ce8392d69350b4fa4e2": "Aave V3 Pool",
    "0x794a61358d6845594f94dc1db02a252b5b4814ad": "Aave V3 Pool",
    "0x7d2768de32b0b80b7a3454c06bdac94a69ddc7a9": "Aave V2 Lending Pool",
    "0xc3d688b66703497daa19211eedff47f25384cdc3": "Compound V3 USDC Market",
    "0x99a58482bd75cbab83b27ec03ca68ff489b5788f": "Curve Router",
    "0x1111111254eeb25477b68fb85ed929f73a960582": "1inch Aggregation Router V5",
    "0xdef1c0ded9bec7f1a1670819833240f027b25eff": "0x Exchange Proxy",
}


def is_unlimited_allowance(allowance: Optional[str]) -> bool:
    """True iff ``allowance`` is max uint256 (decimal or hex) or an unlimited sentinel."""
    if allowance is None:
        return False
    text = str(allowance).strip()
    if text == MAX_UINT256_STR:
        return True
    if text.lower() == MAX_UINT256_HEX:
        return True
    return text.lower() in UNLIMITED_SENTINELS


def resolve_spender_name(spender_address: str) -> Optional[str]:
    return KNOWN_SPENDERS.get((spender_address or "").lower())


def classify(spender_address: str, spender_name: Optional[str]) -> RiskLevel:
    """Risk tier for a spender.

    Only ever answers ``low`` (name matches a well-known protocol) or
    ``unknown``; ``medium``/``high`` are left for manual classification.
    """
    if spender_name:
        name = spender_name.lower()
        if any(protocol in name for protocol in KNOWN_SAFE_PROTOCOLS):
            return RiskLevel.low
    return RiskLevel.unknown
