"""
Database models for LedgerCore.

All models use SQLModel (SQLAlchemy 2.x) with the following conventions:
- Money columns use Numeric(18, 6) for precision
- Timestamps in UTC (created_at, updated_at)
- Foreign keys enforced with PRAGMA foreign_keys=ON on SQLite
- Balances, budget spend and document counters are only ever changed with
  single-statement increments (UPDATE ... SET x = x + :delta), never with
  read-modify-write in Python
"""
from datetime import date as date_type, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import (
    Column,
    UniqueConstraint,
    Index,
    Numeric,
    Text,
    event,
    CheckConstraint,
    Integer,
    ForeignKey,
    text,
    )
from sqlmodel import Field, SQLModel

from backend.app.utils.datetime_utils import utcnow


# ============================================================================
# ENUMS
# ============================================================================

class AccountType(str, Enum):
    """
    Top-level account classification.

    Determines both the leading digit of the account number and how debits
    and credits move the balance:

    - ASSET (1xxxx): debit - credit (see ASSET_SIGN_CONVENTION)
    - LIABILITY (2xxxx): credit - debit
    - EQUITY (3xxxx): credit - debit
    - REVENUE (4xxxx): credit - debit
    - EXPENSE (5xxxx): debit - credit
    """
    ASSET = "ASSET"
    LIABILITY = "LIABILITY"
    EQUITY = "EQUITY"
    REVENUE = "REVENUE"
    EXPENSE = "EXPENSE"


ACCOUNT_NUMBER_PREFIX = {
    AccountType.ASSET: "1",
    AccountType.LIABILITY: "2",
    AccountType.EQUITY: "3",
    AccountType.REVENUE: "4",
    AccountType.EXPENSE: "5",
    }


class AccountCategory(str, Enum):
    """
    Finer reporting classification of an account.

    Categories are not validated against the account type: a REVENUE account
    in CURRENT_ASSETS is accepted (it only affects reports).
    """
    CURRENT_ASSETS = "CURRENT_ASSETS"
    FIXED_ASSETS = "FIXED_ASSETS"
    OTHER_ASSETS = "OTHER_ASSETS"
    CURRENT_LIABILITIES = "CURRENT_LIABILITIES"
    LONG_TERM_LIABILITIES = "LONG_TERM_LIABILITIES"
    OWNERS_EQUITY = "OWNERS_EQUITY"
    RETAINED_EARNINGS = "RETAINED_EARNINGS"
    OPERATING_REVENUE = "OPERATING_REVENUE"
    NON_OPERATING_REVENUE = "NON_OPERATING_REVENUE"
    COST_OF_GOODS_SOLD = "COST_OF_GOODS_SOLD"
    OPERATING_EXPENSES = "OPERATING_EXPENSES"
    NON_OPERATING_EXPENSES = "NON_OPERATING_EXPENSES"


class TransactionType(str, Enum):
    """
    Business nature of a posted transaction.

    Informational only: the type never changes how entries are applied.
    """
    SALE = "SALE"
    PURCHASE = "PURCHASE"
    PAYMENT = "PAYMENT"
    RECEIPT = "RECEIPT"
    TRANSFER = "TRANSFER"
    ADJUSTMENT = "ADJUSTMENT"
    RETURN = "RETURN"


class TransactionStatus(str, Enum):
    """
    Transaction lifecycle.

    POSTED -> VOIDED is the only transition; a voided transaction is terminal.
    """
    POSTED = "POSTED"
    VOIDED = "VOIDED"


class BudgetPeriod(str, Enum):
    """Nominal length of a budget window (the window itself is start_date..end_date)."""
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    YEARLY = "YEARLY"


class UserRole(str, Enum):
    """
    Caller role, supplied by the upstream identity provider.

    - VIEWER: read-only access
    - MANAGER: can create accounts, post transactions and manage budgets
    - ADMIN: everything, including voids, deactivation and balance overrides
    """
    VIEWER = "VIEWER"
    MANAGER = "MANAGER"
    ADMIN = "ADMIN"


# ============================================================================
# MODELS
# ============================================================================


class Account(SQLModel, table=True):
    """
    Ledger account.

    Account numbers are "<type prefix><4-digit sequence>" (10001, 10002,
    20001, ...) and are unique across the ledger. The sequence is per type
    and is drawn from sequence_counters, so concurrent creators never
    receive the same number.

    A non-null user_id binds the account to an external user: at most one
    ACTIVE account per user (partial unique index). Deactivated accounts are
    kept for history and free the user binding.
    """
    __tablename__ = "accounts"
    __table_args__ = (
        Index("idx_accounts_type_active", "type", "is_active"),
        Index(
            "uq_accounts_active_user",
            "user_id",
            unique=True,
            sqlite_where=text("is_active = 1 AND user_id IS NOT NULL"),
            postgresql_where=text("is_active AND user_id IS NOT NULL"),
            ),
        )

    id: Optional[int] = Field(default=None, primary_key=True)
    account_number: str = Field(nullable=False, unique=True, index=True, max_length=16)
    name: str = Field(nullable=False, index=True)
    type: AccountType = Field(nullable=False)
    category: AccountCategory = Field(nullable=False)

    balance: Decimal = Field(default=Decimal("0"), sa_column=Column(Numeric(18, 6), nullable=False))
    currency: str = Field(default="USD", nullable=False)  # ISO 4217

    parent_account_id: Optional[int] = Field(
        default=None,
        sa_column=Column(
            Integer,
            ForeignKey("accounts.id", ondelete="SET NULL"),
            nullable=True
            ),
        )
    user_id: Optional[str] = Field(default=None, nullable=True)
    description: Optional[str] = Field(default=None, sa_column=Column(Text))
    is_active: bool = Field(default=True, nullable=False)

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Transaction(SQLModel, table=True):
    """
    Journal transaction header.

    The lines live in journal_entries and are immutable once written: voiding
    flips status to VOIDED and reverses the balance effect of every line, it
    never deletes or edits them.

    transaction_number is "TXN-YYYYMMDD-NNNNNN" with a per-day sequence.
    """
    __tablename__ = "ledger_transactions"
    __table_args__ = (
        Index("idx_ledger_transactions_status_date", "status", "date", "id"),
        Index("idx_ledger_transactions_reference", "reference_type", "reference_id"),
        )

    id: Optional[int] = Field(default=None, primary_key=True)
    transaction_number: str = Field(nullable=False, unique=True, index=True, max_length=32)
    date: datetime = Field(default_factory=utcnow, nullable=False)
    description: str = Field(sa_column=Column(Text, nullable=False))
    type: TransactionType = Field(nullable=False)
    status: TransactionStatus = Field(default=TransactionStatus.POSTED, nullable=False)

    reference_id: Optional[str] = Field(default=None)
    reference_type: Optional[str] = Field(default=None)

    created_by: str = Field(nullable=False)
    voided_at: Optional[datetime] = Field(default=None)

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class JournalEntry(SQLModel, table=True):
    """
    One line of a transaction.

    account_name is a snapshot taken at posting time; renaming the account
    later does not rewrite history. Exactly one of debit/credit is normally
    non-zero, both are >= 0.
    """
    __tablename__ = "journal_entries"
    __table_args__ = (
        UniqueConstraint("transaction_id", "line_no", name="uq_journal_entries_line"),
        Index("idx_journal_entries_account", "account_id", "transaction_id"),
        CheckConstraint("debit >= 0 AND credit >= 0", name="ck_journal_entries_non_negative"),
        )

    id: Optional[int] = Field(default=None, primary_key=True)
    transaction_id: int = Field(
        sa_column=Column(
            Integer,
            ForeignKey("ledger_transactions.id", ondelete="CASCADE"),
            nullable=False
            ),
        )
    line_no: int = Field(nullable=False)
    account_id: int = Field(foreign_key="accounts.id", nullable=False)
    account_name: str = Field(nullable=False)

    debit: Decimal = Field(default=Decimal("0"), sa_column=Column(Numeric(18, 6), nullable=False))
    credit: Decimal = Field(default=Decimal("0"), sa_column=Column(Numeric(18, 6), nullable=False))
    memo: Optional[str] = Field(default=None, sa_column=Column(Text))


class Budget(SQLModel, table=True):
    """
    Spending limit on one account over a date window (both ends inclusive).

    spent accumulates the net balance movement of the account for postings
    made while the window is open. remaining = amount - spent is kept in the
    same UPDATE statement that changes spent. is_exceeded tracks the last
    known spent > amount state (used by ON_TRANSITION alerting).
    """
    __tablename__ = "budgets"
    __table_args__ = (
        Index("idx_budgets_account_active_window", "account_id", "is_active", "start_date", "end_date"),
        CheckConstraint("end_date >= start_date", name="ck_budgets_window"),
        )

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(nullable=False)
    account_id: int = Field(foreign_key="accounts.id", nullable=False)
    period: BudgetPeriod = Field(nullable=False)

    start_date: date_type = Field(nullable=False)
    end_date: date_type = Field(nullable=False)

    amount: Decimal = Field(sa_column=Column(Numeric(18, 6), nullable=False))
    spent: Decimal = Field(default=Decimal("0"), sa_column=Column(Numeric(18, 6), nullable=False))
    remaining: Decimal = Field(default=Decimal("0"), sa_column=Column(Numeric(18, 6), nullable=False))
    is_exceeded: bool = Field(default=False, nullable=False)
    is_active: bool = Field(default=True, nullable=False)

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class SequenceCounter(SQLModel, table=True):
    """
    Named monotonic counters for document numbers.

    scope examples: "account:ASSET", "transaction:20261019".
    value is the last number handed out; next_value() increments it with a
    single UPDATE ... RETURNING.
    """
    __tablename__ = "sequence_counters"

    scope: str = Field(primary_key=True, max_length=64)
    value: int = Field(default=0, nullable=False)
    updated_at: datetime = Field(default_factory=utcnow)


# ============================================================================
# EVENT LISTENERS
# ============================================================================


@event.listens_for(Account, "before_update")
@event.listens_for(Transaction, "before_update")
@event.listens_for(Budget, "before_update")
@event.listens_for(SequenceCounter, "before_update")
def receive_before_update(mapper, connection, target):
    """Update updated_at timestamp on update."""
    target.updated_at = utcnow()
