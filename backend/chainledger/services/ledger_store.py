from __future__ import annotations
import logging
from datetime import datetime, timezone
from typing import Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from chainledger.errors import InvalidSyncTransitionError, PersistenceError
from chainledger.models.sync_run import SyncRun, SyncStatus, VALID_TRANSITIONS
from chainledger.models.token_approval import RiskLevel, TokenApproval
from chainledger.models.wallet import Wallet
from chainledger.models.wallet_transfer import WalletTransfer
from chainledger.schemas.approval import TokenApprovalInfo
from chainledger.schemas.transfer import TransferRecord

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class LedgerStore:
    """Persistence for wallets, sync runs, approvals and onward-written transfers.

    Each method runs in its own session and commits before returning.
    SQLAlchemy failures surface as ``PersistenceError``.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    # ── wallets ────────────────────────────────────────────────────

    async def save_wallet(
        self,
        owner_id: str,
        chain: str,
        wallet_address: str,
        wallet_type: str,
        label: str,
    ) -> bool:
        """Insert a wallet. Returns False when it already exists.

        An existing row that was removed is made active again.
        """
        try:
            async with self._session_factory() as db:
                db.add(Wallet(
                    owner_id=owner_id,
                    chain=chain,
                    wallet_address=wallet_address,
                    wallet_type=wallet_type,
                    wallet_label=label,
                ))
                await db.commit()
                return True
        except IntegrityError:
            logger.info(f"Wallet {wallet_address} on {chain} already saved for {owner_id}")
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to save wallet: {e}") from e

        try:
            async with self._session_factory() as db:
                await db.execute(
                    update(Wallet)
                    .where(
                        Wallet.owner_id == owner_id,
                        Wallet.chain == chain,
                        Wallet.wallet_address == wallet_address,
                    )
                    .values(is_active=True)
                )
                await db.commit()
                return False
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to restore wallet: {e}") from e

    async def list_wallets(self, owner_id: str) -> Sequence[Wallet]:
        try:
            async with self._session_factory() as db:
                result = await db.execute(
                    select(Wallet)
                    .where(Wallet.owner_id == owner_id, Wallet.is_active.is_(True))
                    .order_by(Wallet.added_at.desc(), Wallet.id.desc())
                )
                return result.scalars().all()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to fetch wallets: {e}") from e

    async def deactivate_wallet(self, owner_id: str, wallet_id: int) -> bool:
        try:
            async with self._session_factory() as db:
                result = await db.execute(
                    update(Wallet)
                    .where(Wallet.id == wallet_id, Wallet.owner_id == owner_id)
                    .values(is_active=False)
                )
                await db.commit()
                return result.rowcount > 0
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to remove wallet: {e}") from e

    async def touch_wallet_synced(self, owner_id: str, chain: str, wallet_address: str) -> None:
        try:
            async with self._session_factory() as db:
                await db.execute(
                    update(Wallet)
                    .where(
                        Wallet.owner_id == owner_id,
                        Wallet.chain == chain,
                        Wallet.wallet_address == wallet_address,
                    )
                    .values(last_synced_at=_now())
                )
                await db.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to update wallet sync time: {e}") from e

    # ── sync runs ──────────────────────────────────────────────────

    async def create_sync_run(self, owner_id: str, wallet_address: str, chain: str) -> SyncRun:
        try:
            async with self._session_factory() as db:
                run = SyncRun(
                    owner_id=owner_id,
                    wallet_address=wallet_address,
                    chain=chain,
                    status=SyncStatus.pending,
                    started_at=_now(),
                )
                db.add(run)
                await db.commit()
                return run
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to create sync record: {e}") from e

    async def finish_sync_run(
        self,
        run_id: str,
        status: SyncStatus,
        imported: int = 0,
        error_message: Optional[str] = None,
    ) -> SyncRun:
        """Write the terminal status. A run accepts exactly one terminal write."""
        if not status.is_terminal:
            raise InvalidSyncTransitionError(f"{status.value} is not a terminal sync status")
        try:
            async with self._session_factory() as db:
                run = await db.get(SyncRun, run_id)
                if run is None:
                    raise PersistenceError(f"Sync run {run_id} not found")
                if status not in VALID_TRANSITIONS[run.status]:
                    raise InvalidSyncTransitionError(
                        f"Sync run {run_id} cannot move from {run.status.value} to {status.value}"
                    )
                run.status = status
                run.transactions_imported = imported
                run.error_message = error_message
                if status is SyncStatus.completed:
                    run.completed_at = _now()
                await db.commit()
                return run
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to update sync record: {e}") from e

    async def get_sync_run(self, run_id: str) -> Optional[SyncRun]:
        try:
            async with self._session_factory() as db:
                return await db.get(SyncRun, run_id)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to fetch sync record: {e}") from e

    async def list_sync_runs(
        self, owner_id: str, wallet_address: Optional[str] = None, limit: int = 50
    ) -> Sequence[SyncRun]:
        try:
            async with self._session_factory() as db:
                query = select(SyncRun).where(SyncRun.owner_id == owner_id)
                if wallet_address:
                    query = query.where(SyncRun.wallet_address == wallet_address)
                result = await db.execute(
                    query.order_by(SyncRun.started_at.desc()).limit(limit)
                )
                return result.scalars().all()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to fetch sync history: {e}") from e

    # ── transfers ──────────────────────────────────────────────────

    async def record_transfer(
        self,
        owner_id: str,
        wallet_address: str,
        run_id: Optional[str],
        record: TransferRecord,
        direction: str,
    ) -> bool:
        """Write one transfer for a wallet; a ``(chain, hash)`` already on file
        for the same owner and wallet is left alone.

        Returns True when a row was inserted.
        """
        try:
            async with self._session_factory() as db:
                existing = await db.execute(
                    select(WalletTransfer.id).where(
                        WalletTransfer.owner_id == owner_id,
                        WalletTransfer.wallet_address == wallet_address,
                        WalletTransfer.chain == record.chain,
                        WalletTransfer.tx_hash == record.hash,
                    )
                )
                if existing.scalar_one_or_none() is not None:
                    return False
                db.add(WalletTransfer(
                    chain=record.chain,
                    tx_hash=record.hash,
                    owner_id=owner_id,
                    wallet_address=wallet_address,
                    sync_run_id=run_id,
                    direction=direction,
                    from_address=record.from_address,
                    to_address=record.to_address,
                    asset=record.asset,
                    value=record.value,
                    category=record.category.value,
                    block_ref=record.block_ref,
                    timestamp=record.timestamp,
                    contract_address=record.contract_address,
                    decimals=record.decimals,
                ))
                try:
                    await db.commit()
                except IntegrityError:
                    # lost a race with a concurrent run writing the same transfer
                    await db.rollback()
                    return False
                return True
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to record transfer {record.hash}: {e}") from e

    async def list_transfers(self, owner_id: str, wallet_address: Optional[str] = None) -> Sequence[WalletTransfer]:
        try:
            async with self._session_factory() as db:
                query = select(WalletTransfer).where(WalletTransfer.owner_id == owner_id)
                if wallet_address:
                    query = query.where(WalletTransfer.wallet_address == wallet_address)
                result = await db.execute(query.order_by(WalletTransfer.id))
                return result.scalars().all()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to fetch transfers: {e}") from e

    # ── token approvals ────────────────────────────────────────────

    async def upsert_approval(
        self, owner_id: str, info: TokenApprovalInfo, keep_risk: bool = False
    ) -> TokenApproval:
        """Refresh the live snapshot for (wallet, chain, token, spender).

        Revoked rows are history: a live approval seen after a revoke becomes
        a new row rather than resetting the revoked one. With ``keep_risk`` a
        tier already set on the live row (anything but ``unknown``) is kept.
        """
        try:
            async with self._session_factory() as db:
                result = await db.execute(
                    select(TokenApproval).where(
                        TokenApproval.owner_id == owner_id,
                        TokenApproval.wallet_address == info.wallet_address,
                        TokenApproval.chain == info.chain,
                        TokenApproval.token_address == info.token_address,
                        TokenApproval.spender_address == info.spender_address,
                        TokenApproval.is_revoked.is_(False),
                    )
                )
                approval = result.scalars().first()
                if approval is None:
                    approval = TokenApproval(owner_id=owner_id, **info.model_dump())
                    db.add(approval)
                else:
                    updates = info.model_dump(exclude_none=True)
                    if keep_risk and approval.risk_level is not RiskLevel.unknown:
                        updates.pop("risk_level", None)
                    for field, value in updates.items():
                        setattr(approval, field, value)
                approval.last_checked_at = _now()
                await db.commit()
                return approval
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to save approval: {e}") from e

    async def get_approval(self, owner_id: str, approval_id: int) -> Optional[TokenApproval]:
        try:
            async with self._session_factory() as db:
                result = await db.execute(
                    select(TokenApproval).where(
                        TokenApproval.id == approval_id,
                        TokenApproval.owner_id == owner_id,
                    )
                )
                return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to fetch approval: {e}") from e

    async def list_approvals(
        self,
        owner_id: str,
        wallet_address: Optional[str] = None,
        include_revoked: bool = False,
    ) -> Sequence[TokenApproval]:
        try:
            async with self._session_factory() as db:
                query = select(TokenApproval).where(TokenApproval.owner_id == owner_id)
                if not include_revoked:
                    query = query.where(TokenApproval.is_revoked.is_(False))
                if wallet_address:
                    query = query.where(TokenApproval.wallet_address == wallet_address)
                result = await db.execute(
                    query.order_by(TokenApproval.last_checked_at.desc(), TokenApproval.id.desc())
                )
                return result.scalars().all()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to fetch approvals: {e}") from e

    async def mark_approval_revoked(self, owner_id: str, approval_id: int, tx_hash: str) -> TokenApproval:
        try:
            async with self._session_factory() as db:
                result = await db.execute(
                    select(TokenApproval).where(
                        TokenApproval.id == approval_id,
                        TokenApproval.owner_id == owner_id,
                    )
                )
                approval = result.scalar_one_or_none()
                if approval is None:
                    raise PersistenceError(f"Approval {approval_id} not found")
                approval.is_revoked = True
                approval.revoked_at = _now()
                approval.revoke_tx_hash = tx_hash
                await db.commit()
                return approval
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to update approval: {e}") from e

    async def reactivate_approval(
        self,
        owner_id: str,
        approval_id: int,
        allowance: str,
        is_unlimited: bool,
        approval_tx_hash: Optional[str] = None,
    ) -> TokenApproval:
        try:
            async with self._session_factory() as db:
                result = await db.execute(
                    select(TokenApproval).where(
                        TokenApproval.id == approval_id,
                        TokenApproval.owner_id == owner_id,
                    )
                )
                approval = result.scalar_one_or_none()
                if approval is None:
                    raise PersistenceError(f"Approval {approval_id} not found")
                now = _now()
                approval.is_revoked = False
                approval.revoked_at = None
                approval.revoke_tx_hash = None
                approval.allowance = allowance
                approval.is_unlimited = is_unlimited
                approval.approved_at = now
                approval.last_checked_at = now
                if approval_tx_hash:
                    approval.approval_tx_hash = approval_tx_hash
                await db.commit()
                return approval
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to update approval: {e}") from e
