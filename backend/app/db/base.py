"""
Database base module.
SQLModel base classes and metadata.
Import all models here so Alembic can detect them.
"""
from sqlmodel import SQLModel

# Import all models so Alembic can detect them
from backend.app.db.models import (
    # Enums
    AccountType,
    AccountCategory,
    TransactionType,
    TransactionStatus,
    BudgetPeriod,
    UserRole,
    # Models
    Account,
    Transaction,
    JournalEntry,
    Budget,
    SequenceCounter,
    )

__all__ = [
    "SQLModel",
    # Enums
    "AccountType",
    "AccountCategory",
    "TransactionType",
    "TransactionStatus",
    "BudgetPeriod",
    "UserRole",
    # Models
    "Account",
    "Transaction",
    "JournalEntry",
    "Budget",
    "SequenceCounter",
    ]
