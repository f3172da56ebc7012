"""
Outbound event payloads.

Every event is a pydantic model with a fixed event_type string, an event_id
and occurred_at. Publishers serialize them with model_dump(mode="json"), so
Decimal amounts travel as strings.

**Naming Convention**:
- EV prefix: event schemas
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional, List, Literal
from uuid import uuid4

from pydantic import BaseModel, Field, ConfigDict

from backend.app.db.models import TransactionType
from backend.app.utils.datetime_utils import utcnow


class EVBaseEvent(BaseModel):
    """Fields shared by every event."""
    model_config = ConfigDict(extra="forbid")

    event_type: str
    event_id: str = Field(default_factory=lambda: str(uuid4()))
    occurred_at: datetime = Field(default_factory=utcnow)


class EVAccountDelta(BaseModel):
    """Net balance change applied to one account by a posting or void."""
    model_config = ConfigDict(extra="forbid")

    account_id: int
    delta: Decimal


class EVTransactionPosted(EVBaseEvent):
    event_type: Literal["transaction.posted"] = "transaction.posted"

    transaction_id: int
    transaction_number: str
    date: datetime
    description: str
    type: TransactionType
    amount: Decimal
    account_deltas: List[EVAccountDelta]
    reference_id: Optional[str] = None
    reference_type: Optional[str] = None
    created_by: str
    created_at: datetime


class EVTransactionVoided(EVBaseEvent):
    event_type: Literal["transaction.voided"] = "transaction.voided"

    transaction_id: int
    transaction_number: str
    amount: Decimal
    account_deltas: List[EVAccountDelta]
    voided_by: str
    voided_at: datetime


class EVBalanceAdjusted(EVBaseEvent):
    """Privileged single-sided balance override (no journal entry exists for it)."""
    event_type: Literal["balance.adjusted"] = "balance.adjusted"

    account_id: int
    account_number: str
    amount: Decimal
    new_balance: Decimal
    actor: str
    reason: Optional[str] = None


class EVBudgetExceeded(EVBaseEvent):
    event_type: Literal["budget.exceeded"] = "budget.exceeded"

    budget_id: int
    budget_name: str
    account_id: int
    budget_amount: Decimal
    spent: Decimal
    exceeded_by: Decimal
    percentage_used: Decimal
    detected_at: datetime
