from __future__ import annotations
import enum
from typing import Optional
from pydantic import BaseModel


class TransferCategory(str, enum.Enum):
    native = "native"
    fungible = "fungible"
    nft = "nft"
    multi_token = "multi_token"
    transfer = "transfer"  # generic tag for chains without richer classification


class TransferDirection(str, enum.Enum):
    outgoing = "outgoing"
    incoming = "incoming"
    both = "both"


class TransferRecord(BaseModel):
    """Canonical cross-chain transfer. ``hash`` + ``chain`` identify it."""

    hash: str
    chain: str
    from_address: str
    to_address: Optional[str] = None
    asset: Optional[str] = None
    value: str = "0"  # raw integer, never a float
    category: TransferCategory
    block_ref: str = ""
    timestamp: str = ""  # ISO-8601 or empty when the provider omits it
    contract_address: Optional[str] = None
    decimals: Optional[int] = None
    token_id: Optional[str] = None
    fee: Optional[str] = None
    status: Optional[str] = None

    model_config = {"frozen": True}

    @property
    def key(self) -> tuple[str, str]:
        return (self.hash, self.chain)


class TransferQueryOptions(BaseModel):
    from_block: Optional[str] = None
    to_block: Optional[str] = None
    max_count: Optional[int] = None


class TokenBalance(BaseModel):
    contract_address: str
    balance: str
    name: str = "Unknown"
    symbol: str = "UNKNOWN"
    decimals: int = 18
    logo: Optional[str] = None
