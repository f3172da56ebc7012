"""
Tests for outbound event publishers and the post-commit dispatcher.

Reference: backend/app/services/event_publisher.py
           backend/app/services/ledger_dispatcher.py
"""
import json
import sys
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path

import httpx
import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent.parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

# Setup test database BEFORE importing app modules
from backend.test_scripts.test_db_config import setup_test_database

setup_test_database()

from backend.app.config import get_settings
from backend.app.db.models import TransactionType
from backend.app.schemas.events import (
    EVAccountDelta,
    EVBalanceAdjusted,
    EVTransactionPosted,
    EVTransactionVoided,
    )
from backend.app.services.event_publisher import (
    EventPublisher,
    HttpEventPublisher,
    InMemoryEventPublisher,
    LoggingEventPublisher,
    get_event_publisher,
    publish_safely,
    )
from backend.app.services.ledger_dispatcher import PostingDispatcher

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def posted_event(**overrides) -> EVTransactionPosted:
    data = dict(
        transaction_id=1,
        transaction_number="TXN-20261019-000001",
        date=NOW,
        description="Order #1",
        type=TransactionType.SALE,
        amount=Decimal("100.50"),
        account_deltas=[EVAccountDelta(account_id=1, delta=Decimal("100.50"))],
        created_by="u1",
        created_at=NOW,
        )
    data.update(overrides)
    return EVTransactionPosted(**data)


class FailingPublisher(EventPublisher):
    async def publish(self, event):
        raise RuntimeError("broker down")


# ============================================================================
# EVENT MODELS
# ============================================================================

class TestEventModels:

    def test_event_envelope(self):
        """EV-U-001: Every event carries its type, a unique id and a timestamp."""
        a, b = posted_event(), posted_event()
        assert a.event_type == "transaction.posted"
        assert a.event_id != b.event_id
        assert a.occurred_at.tzinfo is not None

    def test_json_dump_keeps_decimal_precision(self):
        """EV-U-002: Amounts serialize as strings, not floats."""
        payload = posted_event().model_dump(mode="json")
        assert payload["amount"] == "100.50"
        assert payload["type"] == "SALE"
        assert payload["account_deltas"] == [{"account_id": 1, "delta": "100.50"}]


# ============================================================================
# PUBLISHERS
# ============================================================================

class TestPublishers:

    @pytest.mark.asyncio
    async def test_in_memory_publisher(self):
        """EV-U-010: Events are kept in order and filterable by type."""
        publisher = InMemoryEventPublisher()
        adjusted = EVBalanceAdjusted(account_id=1, account_number="10001", amount=Decimal("5"), new_balance=Decimal("5"), actor="admin")
        await publisher.publish(posted_event())
        await publisher.publish(adjusted)

        assert len(publisher.events) == 2
        assert publisher.of_type(EVBalanceAdjusted) == [adjusted]
        publisher.clear()
        assert publisher.events == []

    @pytest.mark.asyncio
    async def test_publish_safely_swallows_failures(self):
        """EV-U-011: Publisher errors are logged and reported as False."""
        assert await publish_safely(FailingPublisher(), posted_event()) is False
        assert await publish_safely(None, posted_event()) is False
        assert await publish_safely(InMemoryEventPublisher(), posted_event()) is True

    @pytest.mark.asyncio
    async def test_logging_publisher(self):
        """EV-U-012: The default publisher never raises."""
        assert await publish_safely(LoggingEventPublisher(), posted_event()) is True

    @pytest.mark.asyncio
    async def test_http_publisher_posts_json(self):
        """EV-U-013: Webhook receives the JSON payload and X-Event-Type header."""
        received = []

        def handler(request: httpx.Request) -> httpx.Response:
            received.append(request)
            return httpx.Response(202)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            publisher = HttpEventPublisher("http://hooks.test/ledger", client=client)
            await publisher.publish(posted_event())

        assert len(received) == 1
        request = received[0]
        assert request.method == "POST"
        assert str(request.url) == "http://hooks.test/ledger"
        assert request.headers["X-Event-Type"] == "transaction.posted"
        body = json.loads(request.content)
        assert body["transaction_number"] == "TXN-20261019-000001"

    @pytest.mark.asyncio
    async def test_http_publisher_error_status(self):
        """EV-U-014: Non-2xx responses raise, and publish_safely absorbs them."""
        transport = httpx.MockTransport(lambda request: httpx.Response(503))
        async with httpx.AsyncClient(transport=transport) as client:
            publisher = HttpEventPublisher("http://hooks.test/ledger", client=client)
            with pytest.raises(httpx.HTTPStatusError):
                await publisher.publish(posted_event())
            assert await publish_safely(publisher, posted_event()) is False

    def test_get_event_publisher_from_settings(self):
        """EV-U-015: EVENTS_WEBHOOK_URL selects the HTTP publisher."""
        settings = get_settings()
        settings.EVENTS_WEBHOOK_URL = None
        assert isinstance(get_event_publisher(settings), LoggingEventPublisher)

        settings.EVENTS_WEBHOOK_URL = "http://hooks.test/ledger"
        publisher = get_event_publisher(settings)
        assert isinstance(publisher, HttpEventPublisher)
        assert publisher.url == "http://hooks.test/ledger"


# ============================================================================
# DISPATCHER
# ============================================================================

class TestDispatcher:

    @pytest.mark.asyncio
    async def test_zero_deltas_skip_budget_session(self):
        """EV-U-020: No moved account means no budget session is opened."""

        def no_sessions():
            raise AssertionError("session factory must not be called")

        publisher = InMemoryEventPublisher()
        dispatcher = PostingDispatcher(no_sessions, publisher=publisher)
        await dispatcher.transaction_posted(posted_event(), {1: Decimal("0")})
        assert len(publisher.of_type(EVTransactionPosted)) == 1

    @pytest.mark.asyncio
    async def test_voided_only_publishes(self):
        """EV-U-021: Voids are published and never reach budgets."""
        publisher = InMemoryEventPublisher()
        dispatcher = PostingDispatcher(None, publisher=publisher)
        event = EVTransactionVoided(
            transaction_id=1,
            transaction_number="TXN-20261019-000001",
            amount=Decimal("10"),
            account_deltas=[],
            voided_by="admin",
            voided_at=NOW,
            )
        await dispatcher.transaction_voided(event)
        assert publisher.events == [event]
