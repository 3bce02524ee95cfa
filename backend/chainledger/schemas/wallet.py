from __future__ import annotations
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel
from chainledger.schemas.transfer import TokenBalance


class AddWalletRequest(BaseModel):
    wallet_address: str
    chain: str
    wallet_type: str = "metamask"
    label: Optional[str] = None


class WalletResponse(BaseModel):
    id: int
    chain: str
    wallet_address: str
    wallet_label: Optional[str] = None
    wallet_type: Optional[str] = None
    added_at: datetime
    last_synced_at: Optional[datetime] = None
    is_active: bool

    model_config = {"from_attributes": True}


class WalletResult(BaseModel):
    success: bool
    created: bool = False
    error: Optional[str] = None


class WalletListResult(BaseModel):
    success: bool
    wallets: List[WalletResponse] = []
    error: Optional[str] = None


class WalletBalances(BaseModel):
    chain: str
    wallet_address: str
    native_balance: str
    tokens: List[TokenBalance]


class BalancesResult(BaseModel):
    success: bool
    balances: Optional[WalletBalances] = None
    error: Optional[str] = None
