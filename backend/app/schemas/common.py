"""
Common schemas shared across subsystems.

**Domain Coverage**:
- Currency: ISO 4217 code validation (pycountry)
- DateRangeModel: Reusable inclusive date range
- PageParams: skip/limit pagination shared by every list endpoint
- validate_amount: Decimal coercion shared by money fields

**Design Notes**:
- Enum fields in request DTOs are plain strings; services parse them so
  that an unknown value produces a ledger validation error listing the
  legal values instead of a generic 422
"""
# Postpones evaluation of type hints to improve imports and performance. Also avoid circular import issues.
from __future__ import annotations

from datetime import date as date_type, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Optional, Any, Tuple

import pycountry
from pydantic import BaseModel, Field, ConfigDict, model_validator

from backend.app.utils.decimal_utils import to_decimal


# =============================================================================
# CURRENCY
# =============================================================================

class Currency:
    """
    ISO 4217 currency code helpers.

    Accounts carry a currency code but amounts are never converted: a
    posting moves the numbers as given.
    """

    @staticmethod
    def validate_code(v: Any) -> str:
        """
        Validate and normalize a currency code.

        Use this method in Pydantic @field_validator for currency code fields.

        Returns:
            Uppercase validated currency code

        Raises:
            ValueError: If currency code is invalid

        Example:
            @field_validator('currency')
            @classmethod
            def validate_currency(cls, v):
                return Currency.validate_code(v)
        """
        if not isinstance(v, str):
            raise ValueError(f"Currency code must be a string, got {type(v)}")

        code = v.upper().strip()

        if not code:
            raise ValueError("Currency code cannot be empty")

        # Check ISO 4217 via pycountry (lookup() also matches names, hence the length check)
        if len(code) == 3:
            try:
                pycountry.currencies.lookup(code)
                return code
            except LookupError:
                pass

        raise ValueError(f"Invalid currency code: '{code}'. Must be an ISO 4217 currency.")


def validate_amount(v: Any) -> Decimal:
    """Shared before-validator for money fields (accepts int, float, str, Decimal)."""
    return to_decimal(v)


# =============================================================================
# DATE RANGE
# =============================================================================

class DateRangeModel(BaseModel):
    """
    Reusable date range model.

    Represents an inclusive date range [start, end].

    Attributes:
        start: Start date (inclusive, required)
        end: End date (inclusive, optional - defaults to start for single day)

    Examples:
        # Single day
        {"start": "2026-10-19", "end": null}

        # Range
        {"start": "2026-10-01", "end": "2026-10-31"}  # Entire October
    """
    model_config = ConfigDict(extra="forbid")

    start: date_type = Field(..., description="Start date (inclusive)")
    end: Optional[date_type] = Field(None, description="End date (inclusive, optional = single day)")

    @model_validator(mode='after')
    def validate_end_after_start(self) -> 'DateRangeModel':
        """Ensure end >= start when end is provided."""
        if self.end is not None and self.end < self.start:
            raise ValueError(f"end date ({self.end}) must be >= start date ({self.start})")
        return self

    def as_datetime_bounds(self) -> Tuple[datetime, datetime]:
        """
        UTC [lower, upper) datetime bounds covering the whole range.

        upper is midnight after the last day, so timestamps on the end day match.
        """
        end = self.end or self.start
        lower = datetime.combine(self.start, time.min, tzinfo=timezone.utc)
        upper = datetime.combine(end + timedelta(days=1), time.min, tzinfo=timezone.utc)
        return lower, upper


# =============================================================================
# PAGINATION
# =============================================================================

class PageParams(BaseModel):
    """skip/limit pagination; lists are returned newest first."""
    model_config = ConfigDict(extra="forbid")

    skip: int = Field(default=0, ge=0, description="Number of records to skip")
    limit: int = Field(default=50, ge=1, le=500, description="Max records to return")
