from __future__ import annotations
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from chainledger.deps import get_wallet_sync_service
from chainledger.middleware.auth import get_current_owner
from chainledger.schemas.sync import StartSyncRequest, SyncHandleResponse, SyncHistoryResult
from chainledger.services.wallet_sync import SyncHandle, WalletSyncService

router = APIRouter(prefix="/api/sync", tags=["sync"])


def _handle_response(handle: SyncHandle) -> SyncHandleResponse:
    return SyncHandleResponse(
        handle_id=handle.handle_id,
        run_id=handle.run_id,
        progress=handle.latest,
        done=handle.done,
        result=handle.result,
    )


@router.post("", response_model=SyncHandleResponse, status_code=status.HTTP_202_ACCEPTED)
async def start_sync(
    body: StartSyncRequest,
    owner_id: str = Depends(get_current_owner),
    service: WalletSyncService = Depends(get_wallet_sync_service),
):
    handle = service.start_sync(owner_id, body.wallet_address, body.chain)
    return _handle_response(handle)


@router.get("/history", response_model=SyncHistoryResult)
async def sync_history(
    wallet_address: Optional[str] = Query(None),
    owner_id: str = Depends(get_current_owner),
    service: WalletSyncService = Depends(get_wallet_sync_service),
):
    result = await service.get_sync_history(owner_id, wallet_address)
    if not result.success:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=result.error)
    return result


@router.get("/{handle_id}", response_model=SyncHandleResponse)
async def sync_progress(
    handle_id: str,
    owner_id: str = Depends(get_current_owner),
    service: WalletSyncService = Depends(get_wallet_sync_service),
):
    handle = service.registry.get(handle_id, owner_id=owner_id)
    if handle is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Sync not found")
    return _handle_response(handle)
