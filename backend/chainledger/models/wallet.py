from __future__ import annotations
from datetime import datetime
from typing import Optional
from sqlalchemy import String, Boolean, DateTime, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column
from chainledger.database import Base


class Wallet(Base):
    __tablename__ = "wallets"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    owner_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    chain: Mapped[str] = mapped_column(String(20), nullable=False)
    wallet_address: Mapped[str] = mapped_column(String(64), nullable=False)
    wallet_label: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    wallet_type: Mapped[Optional[str]] = mapped_column(String(30), nullable=True, default="metamask")
    added_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    last_synced_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True, default=None
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    __table_args__ = (
        UniqueConstraint("owner_id", "chain", "wallet_address", name="uq_owner_chain_wallet"),
    )
