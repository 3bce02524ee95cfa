from __future__ import annotations
import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import Callable, Optional, Protocol

from chainledger.chains import Chain, canonical_lookup, normalize_address, same_address
from chainledger.errors import ChainLedgerError, PersistenceError
from chainledger.models.sync_run import SyncStatus
from chainledger.schemas.sync import (
    SyncHistoryResult,
    SyncProgress,
    SyncResult,
    SyncRunResponse,
)
from chainledger.schemas.transfer import TransferRecord
from chainledger.schemas.wallet import (
    BalancesResult,
    WalletBalances,
    WalletListResult,
    WalletResponse,
    WalletResult,
)
from chainledger.services.adapters.factory import AdapterFactory
from chainledger.services.ledger_store import LedgerStore
from chainledger.services.normalizer import dedupe_transfers, normalize_transfer

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[SyncProgress], None]

TRANSFER_IN = "transfer_in"
TRANSFER_OUT = "transfer_out"


def _message(error: Exception, fallback: str) -> str:
    return str(error) or fallback


class TransferSink(Protocol):
    async def write(
        self,
        owner_id: str,
        wallet_address: str,
        run_id: Optional[str],
        record: TransferRecord,
        direction: str,
    ) -> None:
        ...


class LedgerTransferSink:
    """Writes transfers onward into the ledger store (one row per chain+hash)."""

    def __init__(self, store: LedgerStore):
        self.store = store

    async def write(self, owner_id, wallet_address, run_id, record, direction) -> None:
        await self.store.record_transfer(owner_id, wallet_address, run_id, record, direction)


def classify_direction(record: TransferRecord, wallet_address: str) -> str:
    return TRANSFER_OUT if same_address(record.from_address, wallet_address) else TRANSFER_IN


# ── per-run handles ────────────────────────────────────────────────


@dataclass
class SyncHandle:
    """Correlates one background sync with its caller.

    Dropping the handle does not stop the run; its terminal state is still
    recorded.
    """

    owner_id: str
    wallet_address: str
    chain: str
    handle_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    run_id: Optional[str] = None
    latest: SyncProgress = field(default_factory=lambda: SyncProgress(status=SyncStatus.pending))
    task: Optional[asyncio.Task] = None

    @property
    def done(self) -> bool:
        return self.task is not None and self.task.done()

    @property
    def result(self) -> Optional[SyncResult]:
        if not self.done or self.task.cancelled() or self.task.exception() is not None:
            return None
        return self.task.result()

    async def wait(self) -> SyncResult:
        return await asyncio.shield(self.task)


class SyncRegistry:
    def __init__(self, max_finished: int = 200):
        self._handles: dict[str, SyncHandle] = {}
        self.max_finished = max_finished

    def add(self, handle: SyncHandle) -> None:
        self._handles[handle.handle_id] = handle
        self._prune()

    def get(self, handle_id: str, owner_id: Optional[str] = None) -> Optional[SyncHandle]:
        handle = self._handles.get(handle_id)
        if handle is None or (owner_id is not None and handle.owner_id != owner_id):
            return None
        return handle

    def active(self) -> list[SyncHandle]:
        return [h for h in self._handles.values() if not h.done]

    def _prune(self) -> None:
        finished = [h for h in self._handles.values() if h.done]
        for handle in finished[: max(len(finished) - self.max_finished, 0)]:
            self._handles.pop(handle.handle_id, None)


# ── orchestrator ───────────────────────────────────────────────────


class WalletSyncService:
    def __init__(
        self,
        store: LedgerStore,
        adapters: AdapterFactory,
        transfer_sink: Optional[TransferSink] = None,
        registry: Optional[SyncRegistry] = None,
        history_limit: int = 50,
    ):
        self.store = store
        self.adapters = adapters
        self.transfer_sink = transfer_sink
        self.registry = registry or SyncRegistry()
        self.history_limit = history_limit

    # ── wallets ────────────────────────────────────────────────────

    async def save_connected_wallet(
        self,
        owner_id: str,
        wallet_address: str,
        chain: str,
        wallet_type: str = "metamask",
        label: Optional[str] = None,
    ) -> WalletResult:
        """Save a wallet; an already-saved wallet counts as success."""
        try:
            chain_tag = Chain.parse(chain)
            address = normalize_address(chain_tag, wallet_address)
            created = await self.store.save_wallet(
                owner_id=owner_id,
                chain=chain_tag.value,
                wallet_address=address,
                wallet_type=wallet_type,
                label=label or f"{wallet_type} - {chain_tag.value}",
            )
            return WalletResult(success=True, created=created)
        except ChainLedgerError as e:
            logger.error(f"Error saving wallet: {e}")
            return WalletResult(success=False, error=_message(e, "Failed to save wallet"))

    async def get_user_wallets(self, owner_id: str) -> WalletListResult:
        try:
            wallets = await self.store.list_wallets(owner_id)
            return WalletListResult(
                success=True, wallets=[WalletResponse.model_validate(w) for w in wallets]
            )
        except PersistenceError as e:
            logger.error(f"Error fetching wallets: {e}")
            return WalletListResult(success=False, error=_message(e, "Failed to fetch wallets"))

    async def remove_wallet(self, owner_id: str, wallet_id: int) -> WalletResult:
        try:
            removed = await self.store.deactivate_wallet(owner_id, wallet_id)
        except PersistenceError as e:
            logger.error(f"Error removing wallet {wallet_id}: {e}")
            return WalletResult(success=False, error=_message(e, "Failed to remove wallet"))
        if not removed:
            return WalletResult(success=False, error="Wallet not found")
        return WalletResult(success=True)

    async def get_sync_history(
        self, owner_id: str, wallet_address: Optional[str] = None
    ) -> SyncHistoryResult:
        try:
            runs = await self.store.list_sync_runs(
                owner_id, canonical_lookup(wallet_address), limit=self.history_limit
            )
            return SyncHistoryResult(
                success=True, runs=[SyncRunResponse.model_validate(r) for r in runs]
            )
        except PersistenceError as e:
            logger.error(f"Error fetching sync history: {e}")
            return SyncHistoryResult(success=False, error=_message(e, "Failed to fetch sync history"))

    async def get_wallet_balances(self, chain: str, wallet_address: str) -> BalancesResult:
        try:
            chain_tag = Chain.parse(chain)
            address = normalize_address(chain_tag, wallet_address)
            adapter = self.adapters(chain_tag)
            native, tokens = await asyncio.gather(
                adapter.fetch_native_balance(address),
                adapter.fetch_token_balances(address),
            )
            return BalancesResult(
                success=True,
                balances=WalletBalances(
                    chain=chain_tag.value,
                    wallet_address=address,
                    native_balance=native,
                    tokens=tokens,
                ),
            )
        except ChainLedgerError as e:
            logger.error(f"Error fetching balances for {wallet_address} on {chain}: {e}")
            return BalancesResult(success=False, error=_message(e, "Failed to fetch balances"))

    # ── sync ───────────────────────────────────────────────────────

    async def sync_wallet(
        self,
        owner_id: str,
        wallet_address: str,
        chain: str,
        on_progress: Optional[ProgressCallback] = None,
    ) -> SyncResult:
        return await self._run_sync(owner_id, wallet_address, chain, on_progress)

    def start_sync(
        self,
        owner_id: str,
        wallet_address: str,
        chain: str,
        on_progress: Optional[ProgressCallback] = None,
    ) -> SyncHandle:
        """Run ``sync_wallet`` as a background task and return its handle."""
        handle = SyncHandle(owner_id=owner_id, wallet_address=wallet_address, chain=chain)

        def _track(progress: SyncProgress) -> None:
            handle.latest = progress
            if on_progress is not None:
                on_progress(progress)

        def _run_created(run_id: str) -> None:
            handle.run_id = run_id

        handle.task = asyncio.create_task(
            self._run_sync(owner_id, wallet_address, chain, _track, _run_created)
        )
        self.registry.add(handle)
        return handle

    def _emit(self, callback: Optional[ProgressCallback], progress: SyncProgress) -> None:
        if callback is None:
            return
        try:
            callback(progress)
        except Exception as e:
            logger.warning(f"Progress callback raised, ignoring: {e}")

    async def _run_sync(
        self,
        owner_id: str,
        wallet_address: str,
        chain: str,
        on_progress: Optional[ProgressCallback] = None,
        on_run_created: Optional[Callable[[str], None]] = None,
    ) -> SyncResult:
        try:
            chain_tag = Chain.parse(chain)
            address = normalize_address(chain_tag, wallet_address)
        except ChainLedgerError as e:
            return SyncResult(success=False, error=str(e))

        try:
            run = await self.store.create_sync_run(owner_id, address, chain_tag.value)
        except PersistenceError as e:
            logger.error(f"Could not create sync run for {address} on {chain_tag.value}: {e}")
            return SyncResult(success=False, error="Failed to create sync record")

        if on_run_created is not None:
            on_run_created(run.id)
        logger.info(f"Sync run {run.id} started for {address} on {chain_tag.value}")
        self._emit(on_progress, SyncProgress(status=SyncStatus.in_progress, imported=0, total=0))

        try:
            adapter = self.adapters(chain_tag)
            raw_transfers = await adapter.fetch_all_transfers(address)
        except Exception as e:
            message = _message(e, "Failed to sync transactions")
            logger.error(f"Sync run {run.id} failed: {message}")
            await self._finish(run.id, SyncStatus.failed, 0, message)
            self._emit(on_progress, SyncProgress(status=SyncStatus.failed, imported=0, total=0, error=message))
            return SyncResult(success=False, imported=0, run_id=run.id, error=message)

        if not raw_transfers:
            await self._finish(run.id, SyncStatus.completed, 0)
            await self._touch_wallet(owner_id, chain_tag.value, address)
            logger.info(f"Sync run {run.id} completed with no transfers")
            self._emit(on_progress, SyncProgress(status=SyncStatus.completed, imported=0, total=0))
            return SyncResult(success=True, imported=0, run_id=run.id)

        records = dedupe_transfers(self._normalize_all(chain_tag, raw_transfers))
        total = len(records)
        imported = 0
        for record in records:
            try:
                direction = classify_direction(record, address)
                if self.transfer_sink is not None:
                    await self.transfer_sink.write(owner_id, address, run.id, record, direction)
                imported += 1
                self._emit(
                    on_progress,
                    SyncProgress(status=SyncStatus.in_progress, imported=imported, total=total),
                )
            except Exception as e:
                logger.warning(f"Error processing transaction {record.hash}: {e}")

        await self._finish(run.id, SyncStatus.completed, imported)
        await self._touch_wallet(owner_id, chain_tag.value, address)
        logger.info(f"Sync run {run.id} completed: {imported}/{total} transfers")
        self._emit(on_progress, SyncProgress(status=SyncStatus.completed, imported=imported, total=total))
        return SyncResult(success=True, imported=imported, run_id=run.id)

    def _normalize_all(self, chain: Chain, raw_transfers: list[dict]) -> list[TransferRecord]:
        records = []
        for raw in raw_transfers:
            try:
                records.append(normalize_transfer(chain, raw))
            except Exception as e:
                logger.warning(f"Skipping unreadable {chain.value} transfer: {e}")
        return records

    async def _finish(
        self, run_id: str, status: SyncStatus, imported: int, error: Optional[str] = None
    ) -> None:
        try:
            await self.store.finish_sync_run(run_id, status, imported=imported, error_message=error)
        except PersistenceError as e:
            logger.error(f"Could not record {status.value} for sync run {run_id}: {e}")

    async def _touch_wallet(self, owner_id: str, chain: str, address: str) -> None:
        try:
            await self.store.touch_wallet_synced(owner_id, chain, address)
        except PersistenceError as e:
            logger.error(f"Could not update last_synced_at for {address}: {e}")
