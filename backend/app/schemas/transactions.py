"""
Transaction schemas for LedgerCore.

DTOs for posting, voiding and reading journal transactions.

**Naming Convention**:
- TX prefix: Transaction-related schemas
- Item suffix: Single item in a list (e.g., TXEntryItem)

**Design Notes**:
- Entries are accepted in request order and keep that order (line_no)
- Amount sign and balance checks are done by TransactionService, so an
  unbalanced request reaches the service and is rejected with 409, not 422
- total_amount on reads is sum(debit), which equals sum(credit)
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional, List, Sequence

from pydantic import BaseModel, Field, ConfigDict, field_validator

from backend.app.db.models import TransactionType, TransactionStatus, Transaction, JournalEntry
from backend.app.schemas.common import validate_amount


# =============================================================================
# TRANSACTION CREATE
# =============================================================================

class TXEntryItem(BaseModel):
    """
    One journal line of a posting request.

    Normally exactly one of debit/credit is non-zero.
    """
    model_config = ConfigDict(extra="forbid")

    account_id: int = Field(..., gt=0, description="Target account ID")
    debit: Decimal = Field(default=Decimal("0"), description="Debit amount (>= 0)")
    credit: Decimal = Field(default=Decimal("0"), description="Credit amount (>= 0)")
    memo: Optional[str] = Field(default=None, max_length=500)

    @field_validator('debit', 'credit', mode='before')
    @classmethod
    def _validate_amounts(cls, v):
        return validate_amount(v)


class TXCreateItem(BaseModel):
    """
    DTO for posting a transaction.

    Used by POST /api/v1/transactions. created_by is taken from the caller
    identity, not from the body.
    """
    model_config = ConfigDict(extra="forbid")

    description: str = Field(..., min_length=1, max_length=500)
    type: str = Field(..., description="SALE, PURCHASE, PAYMENT, RECEIPT, TRANSFER, ADJUSTMENT or RETURN")
    entries: List[TXEntryItem] = Field(..., description="Journal lines; debits must equal credits")
    date: Optional[datetime] = Field(default=None, description="Business date; defaults to now (UTC)")
    reference_id: Optional[str] = Field(default=None, max_length=128, description="Upstream document id (e.g. order id)")
    reference_type: Optional[str] = Field(default=None, max_length=64, description="Upstream document kind (e.g. ORDER)")


# =============================================================================
# TRANSACTION READ
# =============================================================================

class TXEntryReadItem(BaseModel):
    """Journal line as stored."""
    model_config = ConfigDict(extra="forbid", from_attributes=True)

    line_no: int
    account_id: int
    account_name: str
    debit: Decimal
    credit: Decimal
    memo: Optional[str] = None


class TXReadItem(BaseModel):
    """
    DTO for reading a transaction with its lines.

    This is the response format for GET operations and for post/void.
    """
    model_config = ConfigDict(extra="forbid")

    id: int
    transaction_number: str
    date: datetime
    description: str
    type: TransactionType
    status: TransactionStatus
    entries: List[TXEntryReadItem]
    total_amount: Decimal

    reference_id: Optional[str] = None
    reference_type: Optional[str] = None
    created_by: str
    voided_at: Optional[datetime] = None

    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_db_model(cls, tx: Transaction, entries: Sequence[JournalEntry]) -> 'TXReadItem':
        """
        Create TXReadItem from a Transaction row and its journal_entries rows.

        Args:
            tx: Transaction SQLModel instance
            entries: Its JournalEntry rows (any order, sorted by line_no here)
        """
        lines = sorted(entries, key=lambda e: e.line_no)
        return cls(
            id=tx.id,
            transaction_number=tx.transaction_number,
            date=tx.date,
            description=tx.description,
            type=tx.type,
            status=tx.status,
            entries=[TXEntryReadItem.model_validate(e) for e in lines],
            total_amount=sum((Decimal(e.debit) for e in lines), Decimal("0")),
            reference_id=tx.reference_id,
            reference_type=tx.reference_type,
            created_by=tx.created_by,
            voided_at=tx.voided_at,
            created_at=tx.created_at,
            updated_at=tx.updated_at,
            )
