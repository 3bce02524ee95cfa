from __future__ import annotations
import enum
from datetime import datetime
from typing import Optional
from sqlalchemy import String, Boolean, Text, DateTime, Enum as SAEnum, func
from sqlalchemy.orm import Mapped, mapped_column
from chainledger.database import Base


class RiskLevel(str, enum.Enum):
    low = "low"
    medium = "medium"
    high = "high"
    unknown = "unknown"


class TokenApproval(Base):
    __tablename__ = "token_approvals"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    owner_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    wallet_address: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    chain: Mapped[str] = mapped_column(String(20), nullable=False)
    token_address: Mapped[str] = mapped_column(String(64), nullable=False)
    token_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, default=None)
    token_symbol: Mapped[Optional[str]] = mapped_column(String(30), nullable=True, default=None)
    spender_address: Mapped[str] = mapped_column(String(64), nullable=False)
    spender_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, default=None)
    # uint256 does not fit any SQL integer type
    allowance: Mapped[Optional[str]] = mapped_column(Text, nullable=True, default=None)
    is_unlimited: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    risk_level: Mapped[RiskLevel] = mapped_column(
        SAEnum(RiskLevel), default=RiskLevel.unknown, nullable=False
    )
    approved_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True, default=None
    )
    approval_tx_hash: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, default=None)
    last_checked_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    is_revoked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)
    revoked_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True, default=None
    )
    revoke_tx_hash: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, default=None)
