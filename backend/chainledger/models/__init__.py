from chainledger.models.wallet import Wallet
from chainledger.models.sync_run import SyncRun, SyncStatus
from chainledger.models.token_approval import TokenApproval, RiskLevel
from chainledger.models.wallet_transfer import WalletTransfer

__all__ = [
    "Wallet",
    "SyncRun",
    "SyncStatus",
    "TokenApproval",
    "RiskLevel",
    "WalletTransfer",
]
