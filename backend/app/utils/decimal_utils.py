"""
Decimal precision utilities for LedgerCore.

Provides functions to work with database numeric precision and decimal truncation.
All money columns in the database use NUMERIC(18, 6).

Usage:
    from backend.app.utils.decimal_utils import get_model_column_precision, truncate_to_db_precision

    # Get precision for a column
    precision, scale = get_model_column_precision(Account, "balance")
    # Returns: (18, 6)

    # Truncate a decimal to match DB precision
    value = Decimal("175.123456789")
    truncated = truncate_to_db_precision(value, Account, "balance")
    # Returns: Decimal("175.123456")
"""
from decimal import Decimal, ROUND_DOWN, ROUND_HALF_UP, InvalidOperation
from typing import Any, Type, Tuple

from sqlalchemy import Numeric
from sqlmodel import SQLModel


def get_model_column_precision(model: Type[SQLModel], column_name: str) -> Tuple[int, int]:
    """
    Get (precision, scale) for a numeric column from SQLModel.

    Reads the column type definition from the model to get the actual
    precision and scale values, avoiding hardcoded constants.

    Args:
        model: SQLModel class (e.g., Account, Budget)
        column_name: Column name (e.g., "balance", "spent")

    Returns:
        Tuple of (precision, scale)

    Raises:
        ValueError: If column not found or not a Numeric type

    Example:
        >>> get_model_column_precision(Account, "balance")
        (18, 6)
    """
    if not hasattr(model, '__table__'):
        raise ValueError(f"Model {model.__name__} has no __table__ attribute")

    table = model.__table__

    if column_name not in table.columns:
        raise ValueError(f"Column '{column_name}' not found in {model.__name__}")

    column_type = table.columns[column_name].type

    if not isinstance(column_type, Numeric):
        raise ValueError(
            f"Column '{column_name}' in {model.__name__} is not Numeric type "
            f"(found: {type(column_type).__name__})"
            )

    precision = column_type.precision
    scale = column_type.scale

    if precision is None or scale is None:
        raise ValueError(f"Column '{column_name}' in {model.__name__} has undefined precision/scale")

    return precision, scale


def truncate_to_db_precision(value: Decimal, model: Type[SQLModel], column_name: str) -> Decimal:
    """
    Truncate decimal to match database column precision.

    Amounts are truncated before they are validated and stored, so the
    debit/credit equality check runs on the same digits the database keeps.

    Example:
        >>> truncate_to_db_precision(Decimal("175.123456789"), Account, "balance")
        Decimal("175.123456")

    Raises:
        ValueError: If the value has more integer digits than the column holds

    Note:
        Uses ROUND_DOWN to match SQLite truncation behavior.
    """
    precision, scale = get_model_column_precision(model, column_name)
    max_integer_digits = precision - scale
    out_of_range = f"Amount {value} is out of range (at most {max_integer_digits} integer digits)"

    quantizer = Decimal(10) ** -scale
    try:
        truncated = value.quantize(quantizer, rounding=ROUND_DOWN)
    except InvalidOperation:
        # Result needs more digits than the decimal context allows
        raise ValueError(out_of_range)

    if truncated != 0 and truncated.adjusted() + 1 > max_integer_digits:
        raise ValueError(out_of_range)
    return truncated


def to_decimal(v: Any) -> Decimal:
    """
    Convert an API/CLI value to a finite Decimal.

    Floats go through str() so 0.1 stays 0.1.

    Raises:
        ValueError: If the value is not numeric or not finite
    """
    if isinstance(v, bool):
        raise ValueError("Amount must be numeric, got bool")
    if isinstance(v, Decimal):
        result = v
    elif isinstance(v, (int, float, str)):
        try:
            result = Decimal(str(v).strip())
        except InvalidOperation:
            raise ValueError(f"Cannot convert '{v}' to Decimal")
    else:
        raise ValueError(f"Amount must be numeric, got {type(v)}")

    if not result.is_finite():
        raise ValueError(f"Amount must be finite, got {v}")
    return result


def percentage(part: Decimal, whole: Decimal) -> Decimal:
    """part / whole * 100 rounded to 2 decimals; 0 when whole <= 0."""
    if whole <= Decimal("0"):
        return Decimal("0.00")
    return (part / whole * 100).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
