"""
Account schemas for LedgerCore.

DTOs for the chart of accounts.

**Naming Convention**:
- AC prefix: Account-related schemas
- Item suffix: Single item (e.g., ACCreateItem)

**Design Notes**:
- type/category are free strings on input (e.g. "Asset", "CurrentAssets",
  "CURRENT_ASSETS") and are parsed by AccountService
- account_number and balance are never accepted from clients
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, ConfigDict, field_validator

from backend.app.db.models import AccountType, AccountCategory
from backend.app.schemas.common import Currency, validate_amount


# =============================================================================
# ACCOUNT CREATE / UPDATE
# =============================================================================

class ACCreateItem(BaseModel):
    """
    DTO for creating an account.

    Used by POST /api/v1/accounts.
    """
    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1, max_length=200, description="Account name")
    type: str = Field(..., description="Account type: ASSET, LIABILITY, EQUITY, REVENUE, EXPENSE")
    category: str = Field(..., description="Account category (e.g. CURRENT_ASSETS, OPERATING_EXPENSES)")
    currency: Optional[str] = Field(default=None, description="ISO 4217 code; defaults to DEFAULT_CURRENCY")
    parent_account_id: Optional[int] = Field(default=None, gt=0, description="Parent account (informational)")
    user_id: Optional[str] = Field(default=None, min_length=1, max_length=128, description="Bind the account to an external user")
    description: Optional[str] = Field(default=None, max_length=1000)

    @field_validator('currency')
    @classmethod
    def _validate_currency(cls, v):
        if v is None:
            return v
        return Currency.validate_code(v)


class ACUpdateItem(BaseModel):
    """
    DTO for updating an account.

    Only provided fields are changed. type, number, currency and balance are
    immutable through this DTO. is_active=False follows the same rule as
    deactivation (refused while the balance is non-zero).
    """
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    category: Optional[str] = Field(default=None)
    description: Optional[str] = Field(default=None, max_length=1000)
    is_active: Optional[bool] = Field(default=None)


class ACAdjustBalanceItem(BaseModel):
    """
    DTO for a privileged balance override.

    amount is added to the balance as-is (negative amounts decrease it),
    bypassing the journal. Every call is audited.
    """
    model_config = ConfigDict(extra="forbid")

    amount: Decimal = Field(..., description="Signed amount added to the balance")
    reason: Optional[str] = Field(default=None, max_length=500, description="Free-text justification (audited)")

    @field_validator('amount', mode='before')
    @classmethod
    def _validate_amount(cls, v):
        return validate_amount(v)


# =============================================================================
# ACCOUNT READ
# =============================================================================

class ACReadItem(BaseModel):
    """DTO for reading an account."""
    model_config = ConfigDict(extra="forbid", from_attributes=True)

    id: int
    account_number: str
    name: str
    type: AccountType
    category: AccountCategory
    balance: Decimal
    currency: str
    parent_account_id: Optional[int] = None
    user_id: Optional[str] = None
    description: Optional[str] = None
    is_active: bool

    created_at: datetime
    updated_at: datetime


class ACBalanceRead(BaseModel):
    """Balance snapshot of a single account."""
    model_config = ConfigDict(extra="forbid")

    account_id: int
    account_number: str
    balance: Decimal
    currency: str
