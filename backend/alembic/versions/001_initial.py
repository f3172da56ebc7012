"""initial ledger schema

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19

accounts, ledger_transactions, journal_entries, budgets, sequence_counters
"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = '001_initial'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

MONEY = sa.Numeric(18, 6)


def upgrade() -> None:
    """Create all tables."""
    print("🔧 Starting migration 001_initial...")
    print("=" * 60)

    # Accounts table
    print("📦 Creating table: accounts...")
    op.create_table(
        "accounts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("account_number", sa.String(16), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("type", sa.String(9), nullable=False),
        sa.Column("category", sa.String(22), nullable=False),
        sa.Column("balance", MONEY, nullable=False),
        sa.Column("currency", sa.String(), nullable=False),
        sa.Column("parent_account_id", sa.Integer(), sa.ForeignKey("accounts.id", ondelete="SET NULL"), nullable=True),
        sa.Column("user_id", sa.String(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        )
    print("  ✓ Table created")
    op.create_index("ix_accounts_account_number", "accounts", ["account_number"], unique=True)
    op.create_index("ix_accounts_name", "accounts", ["name"])
    op.create_index("idx_accounts_type_active", "accounts", ["type", "is_active"])
    op.create_index(
        "uq_accounts_active_user",
        "accounts",
        ["user_id"],
        unique=True,
        sqlite_where=sa.text("is_active = 1 AND user_id IS NOT NULL"),
        postgresql_where=sa.text("is_active AND user_id IS NOT NULL"),
        )
    print("  ✓ 4 Indexes created")

    # Transactions table
    print("📦 Creating table: ledger_transactions...")
    op.create_table(
        "ledger_transactions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("transaction_number", sa.String(32), nullable=False),
        sa.Column("date", sa.DateTime(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("type", sa.String(10), nullable=False),
        sa.Column("status", sa.String(6), nullable=False),
        sa.Column("reference_id", sa.String(), nullable=True),
        sa.Column("reference_type", sa.String(), nullable=True),
        sa.Column("created_by", sa.String(), nullable=False),
        sa.Column("voided_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        )
    print("  ✓ Table created")
    op.create_index("ix_ledger_transactions_transaction_number", "ledger_transactions", ["transaction_number"], unique=True)
    op.create_index("idx_ledger_transactions_status_date", "ledger_transactions", ["status", "date", "id"])
    op.create_index("idx_ledger_transactions_reference", "ledger_transactions", ["reference_type", "reference_id"])
    print("  ✓ 3 Indexes created")

    # Journal entries table
    print("📦 Creating table: journal_entries...")
    op.create_table(
        "journal_entries",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("transaction_id", sa.Integer(), sa.ForeignKey("ledger_transactions.id", ondelete="CASCADE"), nullable=False),
        sa.Column("line_no", sa.Integer(), nullable=False),
        sa.Column("account_id", sa.Integer(), sa.ForeignKey("accounts.id"), nullable=False),
        sa.Column("account_name", sa.String(), nullable=False),
        sa.Column("debit", MONEY, nullable=False),
        sa.Column("credit", MONEY, nullable=False),
        sa.Column("memo", sa.Text(), nullable=True),
        sa.UniqueConstraint("transaction_id", "line_no", name="uq_journal_entries_line"),
        sa.CheckConstraint("debit >= 0 AND credit >= 0", name="ck_journal_entries_non_negative"),
        )
    print("  ✓ Table created")
    op.create_index("idx_journal_entries_account", "journal_entries", ["account_id", "transaction_id"])
    print("  ✓ Index created")

    # Budgets table
    print("📦 Creating table: budgets...")
    op.create_table(
        "budgets",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("account_id", sa.Integer(), sa.ForeignKey("accounts.id"), nullable=False),
        sa.Column("period", sa.String(9), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("spent", MONEY, nullable=False),
        sa.Column("remaining", MONEY, nullable=False),
        sa.Column("is_exceeded", sa.Boolean(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("end_date >= start_date", name="ck_budgets_window"),
        )
    print("  ✓ Table created")
    op.create_index(
        "idx_budgets_account_active_window",
        "budgets",
        ["account_id", "is_active", "start_date", "end_date"],
        )
    print("  ✓ Index created")

    # Sequence counters table
    print("📦 Creating table: sequence_counters...")
    op.create_table(
        "sequence_counters",
        sa.Column("scope", sa.String(64), primary_key=True),
        sa.Column("value", sa.Integer(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        )
    print("  ✓ Table created")

    print("=" * 60)
    print("✅ Migration 001_initial completed successfully!")
    print("📊 Created 5 tables with all indexes and constraints")


def downgrade() -> None:
    """Drop all tables."""
    for table in ['sequence_counters', 'budgets', 'journal_entries', 'ledger_transactions', 'accounts']:
        op.drop_table(table)
