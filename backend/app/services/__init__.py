"""
Services package.
Business logic of the ledger engine.

- SequenceService: atomic document counters (account / transaction numbers)
- AccountService: chart of accounts, balance maintenance, adjustments
- TransactionService: double-entry posting and voiding
- BudgetService: spending limits and budget.exceeded alerts
- PostingDispatcher: post-commit budget updates and event publication
- Event publishers: logging, HTTP webhook, in-memory
"""
from backend.app.services.errors import (
    LedgerError,
    LedgerValidationError,
    ConflictError,
    NotFoundError,
    PartialWriteError,
    )
from backend.app.services.sequence_service import SequenceService
from backend.app.services.event_publisher import (
    EventPublisher,
    LoggingEventPublisher,
    HttpEventPublisher,
    InMemoryEventPublisher,
    get_event_publisher,
    publish_safely,
    )
from backend.app.services.account_service import AccountService
from backend.app.services.budget_service import BudgetService
from backend.app.services.ledger_dispatcher import PostingDispatcher
from backend.app.services.transaction_service import TransactionService

__all__ = [
    "LedgerError",
    "LedgerValidationError",
    "ConflictError",
    "NotFoundError",
    "PartialWriteError",
    "SequenceService",
    "EventPublisher",
    "LoggingEventPublisher",
    "HttpEventPublisher",
    "InMemoryEventPublisher",
    "get_event_publisher",
    "publish_safely",
    "AccountService",
    "BudgetService",
    "PostingDispatcher",
    "TransactionService",
    ]
