"""
Budget schemas for LedgerCore.

**Naming Convention**:
- BG prefix: Budget-related schemas

**Design Notes**:
- The window is [start_date, end_date], both inclusive, UTC calendar days
- percentage_used is derived on read, never stored
"""
from __future__ import annotations

from datetime import date as date_type, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, ConfigDict, field_validator

from backend.app.db.models import BudgetPeriod, Budget
from backend.app.schemas.common import validate_amount
from backend.app.utils.decimal_utils import percentage


class BGCreateItem(BaseModel):
    """DTO for creating a budget (POST /api/v1/budgets)."""
    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1, max_length=200)
    account_id: int = Field(..., gt=0, description="Account whose spending is tracked")
    period: str = Field(..., description="MONTHLY, QUARTERLY or YEARLY")
    start_date: date_type = Field(..., description="First day of the window (inclusive)")
    end_date: date_type = Field(..., description="Last day of the window (inclusive)")
    amount: Decimal = Field(..., description="Spending limit")

    @field_validator('amount', mode='before')
    @classmethod
    def _validate_amount(cls, v):
        return validate_amount(v)


class BGUpdateItem(BaseModel):
    """
    DTO for updating a budget.

    Changing amount recomputes remaining; spent is never client-writable.
    """
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    amount: Optional[Decimal] = Field(default=None)
    is_active: Optional[bool] = Field(default=None)

    @field_validator('amount', mode='before')
    @classmethod
    def _validate_amount(cls, v):
        if v is None:
            return v
        return validate_amount(v)


class BGReadItem(BaseModel):
    """DTO for reading a budget."""
    model_config = ConfigDict(extra="forbid")

    id: int
    name: str
    account_id: int
    period: BudgetPeriod
    start_date: date_type
    end_date: date_type
    amount: Decimal
    spent: Decimal
    remaining: Decimal
    percentage_used: Decimal
    is_exceeded: bool
    is_active: bool

    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_db_model(cls, budget: Budget) -> 'BGReadItem':
        return cls(
            id=budget.id,
            name=budget.name,
            account_id=budget.account_id,
            period=budget.period,
            start_date=budget.start_date,
            end_date=budget.end_date,
            amount=budget.amount,
            spent=budget.spent,
            remaining=budget.remaining,
            percentage_used=percentage(Decimal(budget.spent), Decimal(budget.amount)),
            is_exceeded=budget.is_exceeded,
            is_active=budget.is_active,
            created_at=budget.created_at,
            updated_at=budget.updated_at,
            )
