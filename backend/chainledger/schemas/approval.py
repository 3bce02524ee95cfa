from __future__ import annotations
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel
from chainledger.models.token_approval import RiskLevel


class TokenApprovalInfo(BaseModel):
    wallet_address: str
    chain: str
    token_address: str
    token_name: Optional[str] = None
    token_symbol: Optional[str] = None
    spender_address: str
    spender_name: Optional[str] = None
    allowance: Optional[str] = None
    is_unlimited: bool = False
    risk_level: RiskLevel = RiskLevel.unknown
    approved_at: Optional[datetime] = None
    approval_tx_hash: Optional[str] = None


class TokenApprovalResponse(BaseModel):
    id: int
    wallet_address: str
    chain: str
    token_address: str
    token_name: Optional[str] = None
    token_symbol: Optional[str] = None
    spender_address: str
    spender_name: Optional[str] = None
    allowance: Optional[str] = None
    is_unlimited: bool
    risk_level: RiskLevel
    approved_at: Optional[datetime] = None
    approval_tx_hash: Optional[str] = None
    last_checked_at: datetime
    is_revoked: bool
    revoked_at: Optional[datetime] = None
    revoke_tx_hash: Optional[str] = None

    model_config = {"from_attributes": True}


class ApprovalResult(BaseModel):
    success: bool
    error: Optional[str] = None


class ApprovalListResult(BaseModel):
    success: bool
    approvals: List[TokenApprovalResponse] = []
    error: Optional[str] = None


class RevokeResult(BaseModel):
    success: bool
    tx_hash: Optional[str] = None
    error: Optional[str] = None


class ScanApprovalsRequest(BaseModel):
    wallet_address: str
    chain: str
    from_block: Optional[str] = None


class ScanResult(BaseModel):
    success: bool
    found: int = 0
    approvals: List[TokenApprovalResponse] = []
    error: Optional[str] = None


class MarkRevokedRequest(BaseModel):
    tx_hash: str


class ReapproveRequest(BaseModel):
    allowance: str
    approval_tx_hash: Optional[str] = None


class ContractCallResponse(BaseModel):
    chain: str
    chain_id: Optional[int] = None
    from_address: str
    to: str
    data: str
    value: str = "0"


class RevokeCallResult(BaseModel):
    success: bool
    call: Optional[ContractCallResponse] = None
    error: Optional[str] = None
