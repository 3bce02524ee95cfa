from __future__ import annotations
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from chainledger.deps import get_token_approval_service
from chainledger.middleware.auth import get_current_owner
from chainledger.schemas.approval import (
    ApprovalListResult,
    ApprovalResult,
    MarkRevokedRequest,
    ReapproveRequest,
    RevokeCallResult,
    ScanApprovalsRequest,
    ScanResult,
    TokenApprovalInfo,
)
from chainledger.services.token_approvals import TokenApprovalService

router = APIRouter(prefix="/api/approvals", tags=["approvals"])


@router.get("", response_model=ApprovalListResult)
async def list_approvals(
    wallet_address: Optional[str] = Query(None),
    include_revoked: bool = Query(False),
    owner_id: str = Depends(get_current_owner),
    service: TokenApprovalService = Depends(get_token_approval_service),
):
    result = await service.get_token_approvals(owner_id, wallet_address, include_revoked=include_revoked)
    if not result.success:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=result.error)
    return result


@router.post("", response_model=ApprovalResult)
async def save_approval(
    body: TokenApprovalInfo,
    owner_id: str = Depends(get_current_owner),
    service: TokenApprovalService = Depends(get_token_approval_service),
):
    result = await service.save_token_approval(owner_id, body)
    if not result.success:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=result.error)
    return result


@router.post("/scan", response_model=ScanResult)
async def scan_approvals(
    body: ScanApprovalsRequest,
    owner_id: str = Depends(get_current_owner),
    service: TokenApprovalService = Depends(get_token_approval_service),
):
    result = await service.scan_approvals(owner_id, body.wallet_address, body.chain, from_block=body.from_block)
    if not result.success:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=result.error)
    return result


@router.get("/{approval_id}/revoke-call", response_model=RevokeCallResult)
async def revoke_call(
    approval_id: int,
    owner_id: str = Depends(get_current_owner),
    service: TokenApprovalService = Depends(get_token_approval_service),
):
    result = await service.get_revoke_call(owner_id, approval_id)
    if not result.success:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=result.error)
    return result


@router.post("/{approval_id}/revoked", response_model=ApprovalResult)
async def mark_revoked(
    approval_id: int,
    body: MarkRevokedRequest,
    owner_id: str = Depends(get_current_owner),
    service: TokenApprovalService = Depends(get_token_approval_service),
):
    result = await service.mark_approval_revoked(owner_id, approval_id, body.tx_hash)
    if not result.success:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=result.error)
    return result


@router.post("/{approval_id}/reapproved", response_model=ApprovalResult)
async def mark_reapproved(
    approval_id: int,
    body: ReapproveRequest,
    owner_id: str = Depends(get_current_owner),
    service: TokenApprovalService = Depends(get_token_approval_service),
):
    result = await service.record_reapproval(
        owner_id, approval_id, body.allowance, approval_tx_hash=body.approval_tx_hash
    )
    if not result.success:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=result.error)
    return result
