"""WalletSyncService: run lifecycle, progress and failure isolation."""
from chainledger.errors import PersistenceError, ProviderError
from chainledger.models.sync_run import SyncStatus
from chainledger.schemas.transfer import TokenBalance
from chainledger.services.ledger_store import LedgerStore
from chainledger.services.wallet_sync import (
    TRANSFER_IN,
    TRANSFER_OUT,
    LedgerTransferSink,
    WalletSyncService,
)

from conftest import OTHER, SOL_WALLET, WALLET, WALLET_LOWER, FakeAdapter, evm_transfer, fixed_adapters


class RecordingSink:
    def __init__(self, fail_on=()):
        self.fail_on = set(fail_on)
        self.written = []

    async def write(self, owner_id, wallet_address, run_id, record, direction):
        if record.hash in self.fail_on:
            raise RuntimeError(f"cannot write {record.hash}")
        self.written.append((record.hash, direction))


class CreateFailsStore(LedgerStore):
    async def create_sync_run(self, owner_id, wallet_address, chain):
        raise PersistenceError("database is locked")


class FinishFailsStore(LedgerStore):
    async def finish_sync_run(self, run_id, status, imported=0, error_message=None):
        raise PersistenceError("database is locked")


def service_for(store, adapter, sink=None):
    return WalletSyncService(store, fixed_adapters(adapter), transfer_sink=sink)


class TestSyncWallet:
    async def test_zero_transfers_completes(self, store):
        events = []
        service = service_for(store, FakeAdapter(transfers=[]))
        result = await service.sync_wallet("u1", WALLET, "ethereum", events.append)

        assert result.success and result.imported == 0
        run = await store.get_sync_run(result.run_id)
        assert run.status is SyncStatus.completed
        assert run.transactions_imported == 0
        assert [e.status for e in events] == [SyncStatus.in_progress, SyncStatus.completed]

    async def test_progress_sequence(self, store):
        events = []
        adapter = FakeAdapter(transfers=[evm_transfer("0x1"), evm_transfer("0x2")])
        service = service_for(store, adapter, RecordingSink())
        await service.sync_wallet("u1", WALLET, "ethereum", events.append)

        assert [(e.status, e.imported, e.total) for e in events] == [
            (SyncStatus.in_progress, 0, 0),
            (SyncStatus.in_progress, 1, 2),
            (SyncStatus.in_progress, 2, 2),
            (SyncStatus.completed, 2, 2),
        ]

    async def test_one_bad_record_does_not_fail_the_run(self, store):
        transfers = [evm_transfer(f"0x{i}") for i in range(10)]
        sink = RecordingSink(fail_on={"0x4"})
        result = await service_for(store, FakeAdapter(transfers=transfers), sink).sync_wallet("u1", WALLET, "ethereum")

        assert result.success
        assert result.imported == 9
        assert len(sink.written) == 9
        run = await store.get_sync_run(result.run_id)
        assert run.status is SyncStatus.completed
        assert run.transactions_imported == 9

    async def test_unreadable_payload_is_skipped(self, store):
        broken = evm_transfer("0x2", category="mystery")
        adapter = FakeAdapter(transfers=[evm_transfer("0x1"), broken])
        result = await service_for(store, adapter, RecordingSink()).sync_wallet("u1", WALLET, "ethereum")
        assert result.success and result.imported == 1

    async def test_duplicates_counted_once(self, store):
        # self-transfer returned by both the sent and received queries
        self_transfer = evm_transfer("0x1", frm=WALLET_LOWER, to=WALLET_LOWER)
        sink = RecordingSink()
        events = []
        result = await service_for(store, FakeAdapter(transfers=[self_transfer, self_transfer]), sink).sync_wallet(
            "u1", WALLET, "ethereum", events.append
        )
        assert result.imported == 1
        assert sink.written == [("0x1", TRANSFER_OUT)]
        assert events[-1].total == 1

    async def test_direction(self, store):
        sink = RecordingSink()
        adapter = FakeAdapter(transfers=[evm_transfer("0x1"), evm_transfer("0x2", frm=OTHER, to=WALLET_LOWER)])
        await service_for(store, adapter, sink).sync_wallet("u1", WALLET, "ethereum")
        assert sink.written == [("0x1", TRANSFER_OUT), ("0x2", TRANSFER_IN)]

    async def test_provider_failure_marks_run_failed(self, store):
        events = []
        adapter = FakeAdapter(error=ProviderError("rate limited", provider="alchemy", status_code=429))
        result = await service_for(store, adapter).sync_wallet("u1", WALLET, "ethereum", events.append)

        assert not result.success
        assert result.error == "rate limited"
        run = await store.get_sync_run(result.run_id)
        assert run.status is SyncStatus.failed
        assert run.error_message == "rate limited"
        assert events[-1].status is SyncStatus.failed
        assert events[-1].error == "rate limited"

    async def test_run_creation_failure_stops_before_fetching(self, session_factory):
        adapter = FakeAdapter(error=AssertionError("should not fetch"))
        service = service_for(CreateFailsStore(session_factory), adapter)
        events = []
        result = await service.sync_wallet("u1", WALLET, "ethereum", events.append)

        assert not result.success
        assert result.error == "Failed to create sync record"
        assert result.run_id is None
        assert events == []

    async def test_terminal_write_failure_keeps_outcome(self, session_factory):
        service = service_for(FinishFailsStore(session_factory), FakeAdapter(transfers=[evm_transfer("0x1")]), RecordingSink())
        result = await service.sync_wallet("u1", WALLET, "ethereum")
        assert result.success and result.imported == 1

    async def test_invalid_input_creates_no_run(self, store):
        service = service_for(store, FakeAdapter())
        assert not (await service.sync_wallet("u1", WALLET, "bitcoin")).success
        assert not (await service.sync_wallet("u1", "0x123", "ethereum")).success
        assert await store.list_sync_runs("u1") == []

    async def test_progress_callback_errors_are_ignored(self, store):
        def explode(progress):
            raise ValueError("ui went away")

        result = await service_for(store, FakeAdapter(transfers=[evm_transfer("0x1")]), RecordingSink()).sync_wallet(
            "u1", WALLET, "ethereum", explode
        )
        assert result.success and result.imported == 1

    async def test_ledger_sink_writes_transfers(self, store):
        service = service_for(store, FakeAdapter(transfers=[evm_transfer("0x1")]), LedgerTransferSink(store))
        result = await service.sync_wallet("u1", WALLET, "ethereum")
        transfers = await store.list_transfers("u1")
        assert len(transfers) == 1
        assert transfers[0].sync_run_id == result.run_id
        assert transfers[0].direction == TRANSFER_OUT
        assert transfers[0].value == "1000000000000000000"

    async def test_sender_and_recipient_both_keep_the_transfer(self, store):
        shared = evm_transfer("0x1", frm=WALLET_LOWER, to=OTHER)
        sink = LedgerTransferSink(store)
        alice = await service_for(store, FakeAdapter(transfers=[shared]), sink).sync_wallet("alice", WALLET, "ethereum")
        bob = await service_for(store, FakeAdapter(transfers=[shared]), sink).sync_wallet("bob", OTHER, "ethereum")

        assert alice.imported == 1
        assert bob.imported == 1
        assert [t.direction for t in await store.list_transfers("alice")] == [TRANSFER_OUT]
        received = await store.list_transfers("bob")
        assert [(t.wallet_address, t.direction) for t in received] == [(OTHER, TRANSFER_IN)]

    async def test_sync_updates_last_synced_at(self, store):
        service = service_for(store, FakeAdapter())
        await service.save_connected_wallet("u1", WALLET, "ethereum")
        await service.sync_wallet("u1", WALLET, "ethereum")
        wallets = (await service.get_user_wallets("u1")).wallets
        assert wallets[0].last_synced_at is not None


class TestStartSync:
    async def test_handle_tracks_progress_and_result(self, store):
        service = service_for(store, FakeAdapter(transfers=[evm_transfer("0x1")]), RecordingSink())
        handle = service.start_sync("u1", WALLET, "ethereum")
        result = await handle.wait()

        assert handle.done
        assert handle.result == result
        assert handle.run_id == result.run_id
        assert handle.latest.status is SyncStatus.completed
        assert service.registry.get(handle.handle_id, owner_id="u1") is handle
        assert service.registry.get(handle.handle_id, owner_id="u2") is None
        assert service.registry.active() == []


class TestWallets:
    async def test_save_is_idempotent(self, store):
        service = service_for(store, FakeAdapter())
        first = await service.save_connected_wallet("u1", WALLET, "ethereum")
        second = await service.save_connected_wallet("u1", WALLET_LOWER, "ethereum")
        assert first.success and first.created
        assert second.success and not second.created

        wallets = (await service.get_user_wallets("u1")).wallets
        assert len(wallets) == 1
        assert wallets[0].wallet_address == WALLET_LOWER
        assert wallets[0].wallet_label == "metamask - ethereum"

    async def test_solana_wallet_keeps_case(self, store):
        service = service_for(store, FakeAdapter())
        await service.save_connected_wallet("u1", SOL_WALLET, "solana", wallet_type="phantom")
        assert (await service.get_user_wallets("u1")).wallets[0].wallet_address == SOL_WALLET

    async def test_invalid_wallet(self, store):
        result = await service_for(store, FakeAdapter()).save_connected_wallet("u1", "nope", "ethereum")
        assert not result.success
        assert "Invalid ethereum address" in result.error

    async def test_remove_wallet(self, store):
        service = service_for(store, FakeAdapter())
        await service.save_connected_wallet("u1", WALLET, "ethereum")
        wallet_id = (await service.get_user_wallets("u1")).wallets[0].id
        assert (await service.remove_wallet("u1", wallet_id)).success
        assert (await service.get_user_wallets("u1")).wallets == []
        assert not (await service.remove_wallet("u1", 9999)).success

    async def test_removed_wallet_can_be_added_again(self, store):
        service = service_for(store, FakeAdapter())
        await service.save_connected_wallet("u1", WALLET, "ethereum")
        wallet_id = (await service.get_user_wallets("u1")).wallets[0].id
        await service.remove_wallet("u1", wallet_id)

        again = await service.save_connected_wallet("u1", WALLET, "ethereum")
        assert again.success and not again.created
        wallets = (await service.get_user_wallets("u1")).wallets
        assert [w.id for w in wallets] == [wallet_id]

    async def test_history_is_filtered_by_wallet(self, store):
        service = service_for(store, FakeAdapter())
        await service.sync_wallet("u1", WALLET, "ethereum")
        await service.sync_wallet("u1", OTHER, "ethereum")
        history = await service.get_sync_history("u1", WALLET)
        assert history.success
        assert [r.wallet_address for r in history.runs] == [WALLET_LOWER]

    async def test_balances(self, store):
        adapter = FakeAdapter(
            native_balance="123",
            tokens=[TokenBalance(contract_address="0xtoken", balance="5", symbol="TKN")],
        )
        result = await service_for(store, adapter).get_wallet_balances("ethereum", WALLET)
        assert result.success
        assert result.balances.native_balance == "123"
        assert result.balances.wallet_address == WALLET_LOWER
        assert result.balances.tokens[0].symbol == "TKN"

    async def test_balances_provider_failure(self, store):
        adapter = FakeAdapter(error=ProviderError("upstream down"))
        result = await service_for(store, adapter).get_wallet_balances("ethereum", WALLET)
        assert not result.success
        assert result.error == "upstream down"
