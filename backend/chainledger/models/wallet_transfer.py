from __future__ import annotations
from datetime import datetime
from typing import Optional
from sqlalchemy import String, Integer, Text, DateTime, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column
from chainledger.database import Base


class WalletTransfer(Base):
    """A normalized transfer written onward from a sync run."""

    __tablename__ = "wallet_transfers"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    chain: Mapped[str] = mapped_column(String(20), nullable=False)
    tx_hash: Mapped[str] = mapped_column(String(100), nullable=False)
    owner_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    wallet_address: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    sync_run_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True, default=None)
    direction: Mapped[str] = mapped_column(String(20), nullable=False)  # transfer_in / transfer_out
    from_address: Mapped[str] = mapped_column(String(64), nullable=False)
    to_address: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, default=None)
    asset: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, default=None)
    value: Mapped[str] = mapped_column(Text, nullable=False, default="0")
    category: Mapped[str] = mapped_column(String(20), nullable=False)
    block_ref: Mapped[str] = mapped_column(String(66), nullable=False, default="")
    timestamp: Mapped[str] = mapped_column(String(40), nullable=False, default="")
    contract_address: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, default=None)
    decimals: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint(
            "owner_id", "wallet_address", "chain", "tx_hash", name="uq_wallet_chain_tx_hash"
        ),
    )
