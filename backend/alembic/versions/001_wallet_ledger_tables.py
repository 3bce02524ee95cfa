"""wallet ledger tables

Revision ID: 001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

sync_status = sa.Enum("pending", "in_progress", "completed", "failed", name="syncstatus")
risk_level = sa.Enum("low", "medium", "high", "unknown", name="risklevel")


def upgrade() -> None:
    op.create_table(
        "wallets",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("owner_id", sa.String(64), nullable=False),
        sa.Column("chain", sa.String(20), nullable=False),
        sa.Column("wallet_address", sa.String(64), nullable=False),
        sa.Column("wallet_label", sa.String(100), nullable=True),
        sa.Column("wallet_type", sa.String(30), nullable=True),
        sa.Column("added_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("last_synced_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("owner_id", "chain", "wallet_address", name="uq_owner_chain_wallet"),
    )
    op.create_index("ix_wallets_owner_id", "wallets", ["owner_id"])

    op.create_table(
        "sync_runs",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("owner_id", sa.String(64), nullable=False),
        sa.Column("wallet_address", sa.String(64), nullable=False),
        sa.Column("chain", sa.String(20), nullable=False),
        sa.Column("status", sync_status, nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("transactions_imported", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("from_block", sa.String(66), nullable=True),
        sa.Column("to_block", sa.String(66), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_sync_runs_owner_id", "sync_runs", ["owner_id"])
    op.create_index("ix_sync_runs_wallet_address", "sync_runs", ["wallet_address"])

    op.create_table(
        "token_approvals",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("owner_id", sa.String(64), nullable=False),
        sa.Column("wallet_address", sa.String(64), nullable=False),
        sa.Column("chain", sa.String(20), nullable=False),
        sa.Column("token_address", sa.String(64), nullable=False),
        sa.Column("token_name", sa.String(100), nullable=True),
        sa.Column("token_symbol", sa.String(30), nullable=True),
        sa.Column("spender_address", sa.String(64), nullable=False),
        sa.Column("spender_name", sa.String(100), nullable=True),
        sa.Column("allowance", sa.Text(), nullable=True),
        sa.Column("is_unlimited", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("risk_level", risk_level, nullable=False),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("approval_tx_hash", sa.String(100), nullable=True),
        sa.Column("last_checked_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("is_revoked", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("revoke_tx_hash", sa.String(100), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_token_approvals_owner_id", "token_approvals", ["owner_id"])
    op.create_index("ix_token_approvals_wallet_address", "token_approvals", ["wallet_address"])
    op.create_index("ix_token_approvals_is_revoked", "token_approvals", ["is_revoked"])

    op.create_table(
        "wallet_transfers",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("chain", sa.String(20), nullable=False),
        sa.Column("tx_hash", sa.String(100), nullable=False),
        sa.Column("owner_id", sa.String(64), nullable=False),
        sa.Column("wallet_address", sa.String(64), nullable=False),
        sa.Column("sync_run_id", sa.String(36), nullable=True),
        sa.Column("direction", sa.String(20), nullable=False),
        sa.Column("from_address", sa.String(64), nullable=False),
        sa.Column("to_address", sa.String(64), nullable=True),
        sa.Column("asset", sa.String(64), nullable=True),
        sa.Column("value", sa.Text(), nullable=False),
        sa.Column("category", sa.String(20), nullable=False),
        sa.Column("block_ref", sa.String(66), nullable=False),
        sa.Column("timestamp", sa.String(40), nullable=False),
        sa.Column("contract_address", sa.String(64), nullable=True),
        sa.Column("decimals", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "owner_id", "wallet_address", "chain", "tx_hash", name="uq_wallet_chain_tx_hash"
        ),
    )
    op.create_index("ix_wallet_transfers_owner_id", "wallet_transfers", ["owner_id"])
    op.create_index("ix_wallet_transfers_wallet_address", "wallet_transfers", ["wallet_address"])


def downgrade() -> None:
    op.drop_table("wallet_transfers")
    op.drop_table("token_approvals")
    op.drop_table("sync_runs")
    op.drop_table("wallets")
    risk_level.drop(op.get_bind(), checkfirst=True)
    sync_status.drop(op.get_bind(), checkfirst=True)
