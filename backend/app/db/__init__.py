"""
Database module exports.
"""
from backend.app.db.base import (
    SQLModel,
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
from backend.app.db.capabilities import StoreCapabilities, get_store_capabilities
from backend.app.db.session import get_sync_engine, get_async_engine, get_session_generator

__all__ = [
    "SQLModel",
    "get_sync_engine",  # For sync scripts (migrations, CLI checks)
    "get_async_engine",  # For async FastAPI app
    "get_session_generator",
    "StoreCapabilities",
    "get_store_capabilities",
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
