"""
Ledger error hierarchy.

Services raise these; main.py maps them to HTTP responses through
status_code. Validation and conflict errors are always raised before
anything is written.
"""
from typing import List, Optional


class LedgerError(Exception):
    """Base class for all ledger errors."""
    status_code: int = 500

    def __init__(self, message: str, **context):
        self.message = message
        self.context = context
        super().__init__(message)


class LedgerValidationError(LedgerError):
    """Malformed input: unknown enum value, bad amount, unresolved account."""
    status_code = 400


class ConflictError(LedgerError):
    """Request is well-formed but violates a ledger rule (unbalanced, already voided, ...)."""
    status_code = 409


class NotFoundError(LedgerError):
    """Referenced entity does not exist."""
    status_code = 404


class PartialWriteError(LedgerError):
    """
    A non-atomic write failed after some of its steps were committed.

    The ledger may be inconsistent until reconciled by hand; retrying would
    apply the committed steps twice.
    """
    status_code = 500

    def __init__(self, message: str, applied_steps: Optional[List[str]] = None, **context):
        self.applied_steps = list(applied_steps or [])
        super().__init__(message, applied_steps=self.applied_steps, **context)
