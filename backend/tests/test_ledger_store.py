"""LedgerStore against a temporary SQLite database."""
import pytest

from chainledger.chains import Chain
from chainledger.errors import InvalidSyncTransitionError, PersistenceError
from chainledger.models.sync_run import SyncStatus
from chainledger.models.token_approval import RiskLevel
from chainledger.schemas.approval import TokenApprovalInfo
from chainledger.services.normalizer import normalize_evm_transfer

from conftest import OTHER, TOKEN, UNISWAP_V3, UNKNOWN_SPENDER, WALLET_LOWER, evm_transfer


def approval_info(allowance="1000", **overrides):
    fields = dict(
        wallet_address=WALLET_LOWER,
        chain="ethereum",
        token_address=TOKEN,
        spender_address=UNISWAP_V3,
        allowance=allowance,
    )
    fields.update(overrides)
    return TokenApprovalInfo(**fields)


class TestWallets:
    async def test_duplicate_wallet_is_not_created_twice(self, store):
        assert await store.save_wallet("u1", "ethereum", WALLET_LOWER, "metamask", "main") is True
        assert await store.save_wallet("u1", "ethereum", WALLET_LOWER, "metamask", "main") is False
        assert await store.save_wallet("u2", "ethereum", WALLET_LOWER, "metamask", "main") is True
        assert len(await store.list_wallets("u1")) == 1

    async def test_deactivate_is_owner_scoped(self, store):
        await store.save_wallet("u1", "ethereum", WALLET_LOWER, "metamask", "main")
        wallet = (await store.list_wallets("u1"))[0]
        assert await store.deactivate_wallet("u2", wallet.id) is False
        assert await store.deactivate_wallet("u1", wallet.id) is True
        assert await store.list_wallets("u1") == []

    async def test_re_adding_removed_wallet_reactivates_it(self, store):
        await store.save_wallet("u1", "ethereum", WALLET_LOWER, "metamask", "main")
        wallet = (await store.list_wallets("u1"))[0]
        await store.deactivate_wallet("u1", wallet.id)

        assert await store.save_wallet("u1", "ethereum", WALLET_LOWER, "metamask", "main") is False
        wallets = await store.list_wallets("u1")
        assert [w.id for w in wallets] == [wallet.id]
        assert wallets[0].is_active


class TestSyncRuns:
    async def test_created_pending(self, store):
        run = await store.create_sync_run("u1", WALLET_LOWER, "ethereum")
        fetched = await store.get_sync_run(run.id)
        assert fetched.status is SyncStatus.pending
        assert fetched.completed_at is None
        assert fetched.transactions_imported == 0

    async def test_single_terminal_write(self, store):
        run = await store.create_sync_run("u1", WALLET_LOWER, "ethereum")
        await store.finish_sync_run(run.id, SyncStatus.completed, imported=3)
        fetched = await store.get_sync_run(run.id)
        assert fetched.status is SyncStatus.completed
        assert fetched.transactions_imported == 3
        assert fetched.completed_at is not None

        with pytest.raises(InvalidSyncTransitionError):
            await store.finish_sync_run(run.id, SyncStatus.failed, error_message="late")

    async def test_failed_run_has_no_completed_at(self, store):
        run = await store.create_sync_run("u1", WALLET_LOWER, "ethereum")
        await store.finish_sync_run(run.id, SyncStatus.failed, error_message="rate limited")
        fetched = await store.get_sync_run(run.id)
        assert fetched.error_message == "rate limited"
        assert fetched.completed_at is None

    async def test_non_terminal_write_rejected(self, store):
        run = await store.create_sync_run("u1", WALLET_LOWER, "ethereum")
        with pytest.raises(InvalidSyncTransitionError):
            await store.finish_sync_run(run.id, SyncStatus.in_progress)

    async def test_unknown_run(self, store):
        with pytest.raises(PersistenceError):
            await store.finish_sync_run("missing", SyncStatus.completed)

    async def test_history_limit(self, store):
        for _ in range(3):
            await store.create_sync_run("u1", WALLET_LOWER, "ethereum")
        await store.create_sync_run("u2", WALLET_LOWER, "ethereum")
        assert len(await store.list_sync_runs("u1", limit=2)) == 2
        assert len(await store.list_sync_runs("u1", WALLET_LOWER)) == 3


async def test_transfers_inserted_once_per_chain_and_hash(store):
    record = normalize_evm_transfer(Chain.ethereum, evm_transfer("0xabc"))
    assert await store.record_transfer("u1", WALLET_LOWER, None, record, "transfer_out") is True
    assert await store.record_transfer("u1", WALLET_LOWER, None, record, "transfer_out") is False
    polygon = normalize_evm_transfer(Chain.polygon, evm_transfer("0xabc"))
    assert await store.record_transfer("u1", WALLET_LOWER, None, polygon, "transfer_out") is True
    assert len(await store.list_transfers("u1")) == 2


async def test_same_transaction_recorded_for_each_wallet(store):
    record = normalize_evm_transfer(Chain.ethereum, evm_transfer("0xabc"))
    assert await store.record_transfer("alice", WALLET_LOWER, None, record, "transfer_out") is True
    assert await store.record_transfer("bob", OTHER, None, record, "transfer_in") is True
    assert await store.record_transfer("u1", OTHER, None, record, "transfer_in") is True
    assert await store.record_transfer("bob", OTHER, None, record, "transfer_in") is False

    received = await store.list_transfers("bob")
    assert [(t.wallet_address, t.direction) for t in received] == [(OTHER, "transfer_in")]


class TestApprovals:
    async def test_upsert_refreshes_live_row(self, store):
        first = await store.upsert_approval("u1", approval_info("1000"))
        second = await store.upsert_approval("u1", approval_info("500"))
        assert first.id == second.id
        approvals = await store.list_approvals("u1")
        assert len(approvals) == 1
        assert approvals[0].allowance == "500"

    async def test_revoked_row_is_history(self, store):
        approval = await store.upsert_approval("u1", approval_info("1000"))
        await store.mark_approval_revoked("u1", approval.id, "0xrevoke")

        assert await store.list_approvals("u1") == []
        revoked = (await store.list_approvals("u1", include_revoked=True))[0]
        assert revoked.is_revoked
        assert revoked.revoked_at is not None
        assert revoked.revoke_tx_hash == "0xrevoke"

        fresh = await store.upsert_approval("u1", approval_info("7"))
        assert fresh.id != approval.id
        still_revoked = await store.get_approval("u1", approval.id)
        assert still_revoked.is_revoked
        assert still_revoked.allowance == "1000"

    async def test_reactivate_clears_revoked_fields(self, store):
        approval = await store.upsert_approval("u1", approval_info("1000"))
        await store.mark_approval_revoked("u1", approval.id, "0xrevoke")
        await store.reactivate_approval("u1", approval.id, allowance="5", is_unlimited=False, approval_tx_hash="0xagain")
        row = await store.get_approval("u1", approval.id)
        assert not row.is_revoked
        assert row.revoked_at is None
        assert row.revoke_tx_hash is None
        assert row.allowance == "5"
        assert row.approval_tx_hash == "0xagain"

    async def test_other_owner_cannot_revoke(self, store):
        approval = await store.upsert_approval("u1", approval_info())
        with pytest.raises(PersistenceError):
            await store.mark_approval_revoked("u2", approval.id, "0xrevoke")

    async def test_keep_risk_preserves_manual_tier(self, store):
        manual = approval_info("1000", spender_address=UNKNOWN_SPENDER, risk_level=RiskLevel.high)
        await store.upsert_approval("u1", manual)

        rescanned = approval_info("50", spender_address=UNKNOWN_SPENDER, risk_level=RiskLevel.unknown)
        row = await store.upsert_approval("u1", rescanned, keep_risk=True)
        assert row.risk_level is RiskLevel.high
        assert row.allowance == "50"

        overwritten = await store.upsert_approval("u1", rescanned)
        assert overwritten.risk_level is RiskLevel.unknown
