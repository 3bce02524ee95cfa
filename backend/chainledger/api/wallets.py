from __future__ import annotations
from fastapi import APIRouter, Depends, HTTPException, status
from chainledger.deps import get_wallet_sync_service
from chainledger.middleware.auth import get_current_owner
from chainledger.schemas.wallet import (
    AddWalletRequest,
    BalancesResult,
    WalletListResult,
    WalletResult,
)
from chainledger.services.wallet_sync import WalletSyncService

router = APIRouter(prefix="/api/wallets", tags=["wallets"])


@router.get("", response_model=WalletListResult)
async def list_wallets(
    owner_id: str = Depends(get_current_owner),
    service: WalletSyncService = Depends(get_wallet_sync_service),
):
    result = await service.get_user_wallets(owner_id)
    if not result.success:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=result.error)
    return result


@router.post("", response_model=WalletResult)
async def add_wallet(
    body: AddWalletRequest,
    owner_id: str = Depends(get_current_owner),
    service: WalletSyncService = Depends(get_wallet_sync_service),
):
    result = await service.save_connected_wallet(
        owner_id, body.wallet_address, body.chain, wallet_type=body.wallet_type, label=body.label
    )
    if not result.success:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=result.error)
    return result


@router.delete("/{wallet_id}", response_model=WalletResult)
async def remove_wallet(
    wallet_id: int,
    owner_id: str = Depends(get_current_owner),
    service: WalletSyncService = Depends(get_wallet_sync_service),
):
    result = await service.remove_wallet(owner_id, wallet_id)
    if not result.success:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=result.error)
    return result


@router.get("/{chain}/{address}/balances", response_model=BalancesResult)
async def get_balances(
    chain: str,
    address: str,
    owner_id: str = Depends(get_current_owner),
    service: WalletSyncService = Depends(get_wallet_sync_service),
):
    result = await service.get_wallet_balances(chain, address)
    if not result.success:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=result.error)
    return result
