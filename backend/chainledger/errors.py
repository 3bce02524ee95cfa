"""Error taxonomy shared by adapters, the ledger store and the services.

UnsupportedChainError  unknown chain tag or no configured provider; fatal, never retried
ProviderError          upstream RPC/API failure; surfaced to the sync run, which is marked failed
PerRecordError         one transfer could not be processed; logged and skipped
PersistenceError       ledger store write/read failure
NoSignerError          revoke requested without a wallet signer
"""
from __future__ import annotations
from typing import Optional


class ChainLedgerError(Exception):
    """Base class. ``str(err)`` is the user-facing message."""


class UnsupportedChainError(ChainLedgerError):
    pass


class InvalidAddressError(ChainLedgerError):
    pass


class ProviderError(ChainLedgerError):
    def __init__(self, message: str, provider: str = "", status_code: Optional[int] = None):
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code


class PerRecordError(ChainLedgerError):
    def __init__(self, message: str, tx_hash: str = ""):
        super().__init__(message)
        self.tx_hash = tx_hash


class PersistenceError(ChainLedgerError):
    pass


class InvalidSyncTransitionError(PersistenceError):
    pass


class NoSignerError(ChainLedgerError):
    def __init__(self, message: str = "No wallet provider found"):
        super().__init__(message)
