from __future__ import annotations
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel
from chainledger.models.sync_run import SyncStatus


class SyncProgress(BaseModel):
    status: SyncStatus
    imported: int = 0
    total: int = 0
    error: Optional[str] = None


class SyncResult(BaseModel):
    success: bool
    imported: int = 0
    run_id: Optional[str] = None
    error: Optional[str] = None


class StartSyncRequest(BaseModel):
    wallet_address: str
    chain: str


class SyncHandleResponse(BaseModel):
    handle_id: str
    run_id: Optional[str] = None
    progress: SyncProgress
    done: bool = False
    result: Optional[SyncResult] = None


class SyncRunResponse(BaseModel):
    id: str
    wallet_address: str
    chain: str
    status: SyncStatus
    started_at: datetime
    completed_at: Optional[datetime] = None
    transactions_imported: int
    error_message: Optional[str] = None
    from_block: Optional[str] = None
    to_block: Optional[str] = None

    model_config = {"from_attributes": True}


class SyncHistoryResult(BaseModel):
    success: bool
    runs: List[SyncRunResponse] = []
    error: Optional[str] = None
