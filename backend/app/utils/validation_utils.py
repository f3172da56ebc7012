"""
Validation utilities shared by schemas and services.

Closed enumerations arrive from callers as free strings ("Asset",
"CurrentAssets", "current_assets"). parse_enum() maps them onto the enum
members and raises ValueError listing the legal values otherwise.

Note: Currency validation is handled by Currency.validate_code()
in backend.app.schemas.common
"""
import re
from enum import Enum
from typing import Type, TypeVar

E = TypeVar("E", bound=Enum)

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def normalize_enum_token(value: str) -> str:
    """
    Normalize an enum spelling to UPPER_SNAKE.

    Examples:
        >>> normalize_enum_token("CurrentAssets")
        'CURRENT_ASSETS'
        >>> normalize_enum_token("current-assets")
        'CURRENT_ASSETS'
        >>> normalize_enum_token(" Sale ")
        'SALE'
    """
    token = _CAMEL_BOUNDARY.sub("_", value.strip())
    return re.sub(r"[\s\-]+", "_", token).upper()


def legal_values(enum_cls: Type[Enum]) -> str:
    """Comma separated list of the values of enum_cls."""
    return ", ".join(member.value for member in enum_cls)


def parse_enum(enum_cls: Type[E], value, field_name: str) -> E:
    """
    Parse value into a member of enum_cls (case-insensitive).

    Args:
        enum_cls: Target enumeration
        value: Member, member value or any accepted spelling
        field_name: Used in the error message

    Raises:
        ValueError: If value does not name a member
    """
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str) and value.strip():
        token = normalize_enum_token(value)
        for member in enum_cls:
            if member.value == token or member.name == token:
                return member
    raise ValueError(
        f"Invalid {field_name}: '{value}'. Valid values are: {legal_values(enum_cls)}"
        )
