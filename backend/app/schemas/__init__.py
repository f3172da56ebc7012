"""
Pydantic schemas for LedgerCore.

Used across multiple subsystems (API, Services, event publishers) to validate
data structures and standardize data exchange between components.

**Organization by Domain**:
- common.py: Shared schemas (Currency, DateRangeModel, PageParams)
- accounts.py: Chart of accounts schemas (AC prefix)
- transactions.py: Posting / void / read schemas (TX prefix)
- budgets.py: Budget schemas (BG prefix)
- events.py: Outbound event payloads (EV prefix)

**Design Notes**:
- All models use Pydantic v2 with extra="forbid"
- Schemas separated from API layer (no inline definitions)
"""
from backend.app.schemas.common import (
    Currency,
    DateRangeModel,
    PageParams,
    validate_amount,
    )
from backend.app.schemas.accounts import (
    ACCreateItem,
    ACUpdateItem,
    ACAdjustBalanceItem,
    ACReadItem,
    ACBalanceRead,
    )
from backend.app.schemas.transactions import (
    TXEntryItem,
    TXCreateItem,
    TXEntryReadItem,
    TXReadItem,
    )
from backend.app.schemas.budgets import (
    BGCreateItem,
    BGUpdateItem,
    BGReadItem,
    )
from backend.app.schemas.events import (
    EVBaseEvent,
    EVAccountDelta,
    EVTransactionPosted,
    EVTransactionVoided,
    EVBalanceAdjusted,
    EVBudgetExceeded,
    )

__all__ = [
    # Common
    "Currency",
    "DateRangeModel",
    "PageParams",
    "validate_amount",
    # Accounts
    "ACCreateItem",
    "ACUpdateItem",
    "ACAdjustBalanceItem",
    "ACReadItem",
    "ACBalanceRead",
    # Transactions
    "TXEntryItem",
    "TXCreateItem",
    "TXEntryReadItem",
    "TXReadItem",
    # Budgets
    "BGCreateItem",
    "BGUpdateItem",
    "BGReadItem",
    # Events
    "EVBaseEvent",
    "EVAccountDelta",
    "EVTransactionPosted",
    "EVTransactionVoided",
    "EVBalanceAdjusted",
    "EVBudgetExceeded",
    ]
