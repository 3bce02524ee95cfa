"""Shared fixtures: a throwaway SQLite ledger and in-memory chain adapters."""
from __future__ import annotations
from typing import Optional

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from chainledger.chains import Chain
from chainledger.database import init_db
from chainledger.errors import ProviderError
from chainledger.schemas.transfer import TokenBalance, TransferDirection, TransferQueryOptions
from chainledger.services.adapters.base import ChainAdapter
from chainledger.services.ledger_store import LedgerStore

WALLET = "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"
WALLET_LOWER = WALLET.lower()
OTHER = "0x1111111111111111111111111111111111111111"
TOKEN = "0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48"
UNISWAP_V3 = "0xe592427a0aece92de3edee1f18e0157c05861564"
UNKNOWN_SPENDER = "0x9999999999999999999999999999999999999999"
SOL_WALLET = "So11111111111111111111111111111111111111112"


def evm_transfer(
    tx_hash: str,
    frm: str = WALLET_LOWER,
    to: Optional[str] = OTHER,
    value_hex: str = "0xde0b6b3a7640000",
    category: str = "external",
) -> dict:
    return {
        "hash": tx_hash,
        "from": frm,
        "to": to,
        "asset": "ETH",
        "category": category,
        "blockNum": "0x10",
        "rawContract": {"value": value_hex, "address": None, "decimal": "0x12"},
        "metadata": {"blockTimestamp": "2024-01-01T00:00:00.000Z"},
    }


class FakeAdapter(ChainAdapter):
    """Serves canned provider payloads; ``error`` makes every fetch fail."""

    def __init__(
        self,
        chain: Chain = Chain.ethereum,
        transfers: Optional[list[dict]] = None,
        error: Optional[Exception] = None,
        native_balance: str = "0",
        tokens: Optional[list[TokenBalance]] = None,
        approval_events: Optional[list[dict]] = None,
        allowances: Optional[dict[tuple[str, str], str]] = None,
        metadata: Optional[dict[str, dict]] = None,
    ):
        self.chain = chain
        self.transfers = transfers or []
        self.error = error
        self.native_balance = native_balance
        self.tokens = tokens or []
        self.approval_events = approval_events or []
        self.allowances = allowances or {}
        self.metadata = metadata or {}
        self.metadata_calls: list[str] = []

    async def fetch_transfers(
        self,
        address: str,
        direction: TransferDirection = TransferDirection.both,
        options: Optional[TransferQueryOptions] = None,
    ) -> list[dict]:
        if self.error is not None:
            raise self.error
        return list(self.transfers)

    async def fetch_native_balance(self, address: str) -> str:
        if self.error is not None:
            raise self.error
        return self.native_balance

    async def fetch_token_balances(self, address: str) -> list[TokenBalance]:
        if self.error is not None:
            raise self.error
        return list(self.tokens)

    async def fetch_approval_events(self, owner: str, from_block: Optional[str] = None) -> list[dict]:
        if self.error is not None:
            raise self.error
        return list(self.approval_events)

    async def read_allowance(self, token_address: str, owner: str, spender: str) -> str:
        allowance = self.allowances.get((token_address, spender))
        if allowance is None:
            raise ProviderError("allowance() returned no data", provider="fake")
        return allowance

    async def fetch_token_metadata(self, contract_address: str) -> dict:
        self.metadata_calls.append(contract_address)
        return self.metadata.get(contract_address, {})


def fixed_adapters(adapter: ChainAdapter):
    def _factory(chain: Chain) -> ChainAdapter:
        return adapter

    return _factory


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def store(session_factory):
    return LedgerStore(session_factory)
