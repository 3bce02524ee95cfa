from __future__ import annotations
from functools import lru_cache

from chainledger.config import ProviderConfig, get_settings
from chainledger.database import async_session
from chainledger.services.adapters.factory import adapter_factory
from chainledger.services.ledger_store import LedgerStore
from chainledger.services.token_approvals import TokenApprovalService
from chainledger.services.wallet_sync import LedgerTransferSink, SyncRegistry, WalletSyncService


@lru_cache()
def get_store() -> LedgerStore:
    return LedgerStore(async_session)


@lru_cache()
def get_sync_registry() -> SyncRegistry:
    return SyncRegistry()


@lru_cache()
def get_wallet_sync_service() -> WalletSyncService:
    settings = get_settings()
    store = get_store()
    return WalletSyncService(
        store=store,
        adapters=adapter_factory(ProviderConfig.from_settings(settings)),
        transfer_sink=LedgerTransferSink(store),
        registry=get_sync_registry(),
        history_limit=settings.sync_history_limit,
    )


@lru_cache()
def get_token_approval_service() -> TokenApprovalService:
    settings = get_settings()
    return TokenApprovalService(
        store=get_store(),
        adapters=adapter_factory(ProviderConfig.from_settings(settings)),
        default_from_block=settings.approval_scan_from_block,
    )
