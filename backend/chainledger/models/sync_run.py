from __future__ import annotations
import enum
import uuid
from datetime import datetime
from typing import Optional
from sqlalchemy import String, Integer, Text, DateTime, Enum as SAEnum, func
from sqlalchemy.orm import Mapped, mapped_column
from chainledger.database import Base


class SyncStatus(str, enum.Enum):
    pending = "pending"
    in_progress = "in_progress"
    completed = "completed"
    failed = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (SyncStatus.completed, SyncStatus.failed)


# Allowed status writes; terminal states have no outgoing edges.
VALID_TRANSITIONS: dict[SyncStatus, set[SyncStatus]] = {
    SyncStatus.pending: {SyncStatus.in_progress, SyncStatus.completed, SyncStatus.failed},
    SyncStatus.in_progress: {SyncStatus.completed, SyncStatus.failed},
    SyncStatus.completed: set(),
    SyncStatus.failed: set(),
}


class SyncRun(Base):
    __tablename__ = "sync_runs"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    owner_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    wallet_address: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    chain: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[SyncStatus] = mapped_column(
        SAEnum(SyncStatus), default=SyncStatus.pending, nullable=False
    )
    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True, default=None
    )
    transactions_imported: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True, default=None)
    from_block: Mapped[Optional[str]] = mapped_column(String(66), nullable=True, default=None)
    to_block: Mapped[Optional[str]] = mapped_column(String(66), nullable=True, default=None)
