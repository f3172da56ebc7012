"""
Transaction API Tests.

Tests for the journal endpoints:
- POST /transactions (201, 409 unbalanced, 400 unknown type/account, 403 viewer)
- GET lookups and listings
- POST /transactions/{id}/void (ADMIN only, 409 on second void)
- Background side effects: transaction.posted / transaction.voided events

Reference: backend/app/api/v1/transactions.py
"""
import sys
from datetime import timedelta
from decimal import Decimal
from pathlib import Path

import pytest
import pytest_asyncio

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent.parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

# Setup test database BEFORE importing app modules
from backend.test_scripts.test_db_config import setup_test_database, create_test_engine

setup_test_database()

from backend.app.schemas.events import EVTransactionPosted, EVTransactionVoided
from backend.app.services.event_publisher import InMemoryEventPublisher
from backend.app.utils.datetime_utils import today_date
from backend.test_scripts.test_server_helper import ADMIN, MANAGER, VIEWER, TEST_API_PREFIX, _TestingAppClient

API = f"{TEST_API_PREFIX}/transactions"
ACCOUNTS_API = f"{TEST_API_PREFIX}/accounts"


# ============================================================================
# PYTEST FIXTURES
# ============================================================================

@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = await create_test_engine(tmp_path / "ledger.db")
    yield engine
    await engine.dispose()


@pytest.fixture
def publisher() -> InMemoryEventPublisher:
    return InMemoryEventPublisher()


@pytest_asyncio.fixture
async def client(engine, publisher):
    async with _TestingAppClient(engine, publisher) as client:
        yield client


@pytest_asyncio.fixture
async def accounts(client) -> dict:
    """Cash (ASSET) and Sales (REVENUE) accounts, keyed by role."""
    created = {}
    for key, name, type, category in [
        ("cash", "Cash", "ASSET", "CURRENT_ASSETS"),
        ("sales", "Sales", "REVENUE", "OPERATING_REVENUE"),
        ]:
        response = await client.post(ACCOUNTS_API, json={"name": name, "type": type, "category": category}, headers=MANAGER)
        assert response.status_code == 201, response.text
        created[key] = response.json()
    return created


def sale_body(accounts: dict, amount="100.00", credit=None, **extra) -> dict:
    return {
        "description": "Counter sale",
        "type": "SALE",
        "entries": [
            {"account_id": accounts["cash"]["id"], "debit": amount},
            {"account_id": accounts["sales"]["id"], "credit": credit if credit is not None else amount},
            ],
        **extra,
        }


async def balance_of(client, account: dict) -> Decimal:
    response = await client.get(f"{ACCOUNTS_API}/{account['id']}/balance", headers=VIEWER)
    return Decimal(response.json()["balance"])


# ============================================================================
# POSTING
# ============================================================================

class TestPostTransaction:

    @pytest.mark.asyncio
    async def test_post_sale(self, client, accounts, publisher):
        """API-TX-001: Balanced posting returns 201, moves balances and publishes."""
        response = await client.post(API, json=sale_body(accounts, reference_id="order-7", reference_type="ORDER"), headers=MANAGER)
        assert response.status_code == 201, response.text
        tx = response.json()

        assert tx["status"] == "POSTED"
        assert tx["created_by"] == "manager"
        assert tx["transaction_number"].startswith("TXN-")
        assert tx["transaction_number"].endswith("-000001")
        assert Decimal(tx["total_amount"]) == Decimal("100.00")
        assert [e["line_no"] for e in tx["entries"]] == [1, 2]

        assert await balance_of(client, accounts["cash"]) == Decimal("100.00")
        assert await balance_of(client, accounts["sales"]) == Decimal("100.00")

        posted = publisher.of_type(EVTransactionPosted)
        assert len(posted) == 1
        assert posted[0].transaction_number == tx["transaction_number"]
        assert posted[0].reference_id == "order-7"

    @pytest.mark.asyncio
    async def test_unbalanced_is_409(self, client, accounts, publisher):
        """API-TX-002: Debits != credits is a conflict; nothing is written."""
        response = await client.post(API, json=sale_body(accounts, credit="99.99"), headers=MANAGER)
        assert response.status_code == 409
        assert response.json()["error"] == "ConflictError"

        assert await balance_of(client, accounts["cash"]) == Decimal("0")
        assert (await client.get(API, headers=VIEWER)).json() == []
        assert publisher.events == []

    @pytest.mark.asyncio
    async def test_unknown_type_is_400(self, client, accounts):
        """API-TX-003: Transaction type is parsed case-insensitively, unknown is 400."""
        assert (await client.post(API, json={**sale_body(accounts), "type": "sale"}, headers=MANAGER)).status_code == 201

        response = await client.post(API, json={**sale_body(accounts), "type": "GIFT"}, headers=MANAGER)
        assert response.status_code == 400
        assert response.json()["error"] == "LedgerValidationError"

    @pytest.mark.asyncio
    async def test_unknown_account_is_400(self, client, accounts):
        """API-TX-004: Lines must reference existing accounts."""
        body = sale_body(accounts)
        body["entries"][1]["account_id"] = 999
        response = await client.post(API, json=body, headers=MANAGER)
        assert response.status_code == 400
        assert await balance_of(client, accounts["cash"]) == Decimal("0")

    @pytest.mark.asyncio
    async def test_viewer_cannot_post(self, client, accounts):
        """API-TX-005: Posting requires MANAGER or ADMIN."""
        response = await client.post(API, json=sale_body(accounts), headers=VIEWER)
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_created_by_from_body_rejected(self, client, accounts):
        """API-TX-006: created_by cannot be supplied by the client."""
        response = await client.post(API, json=sale_body(accounts, created_by="mallory"), headers=MANAGER)
        assert response.status_code == 422

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", ["1e30", "1e15"])
    async def test_out_of_range_amount_is_400(self, client, accounts, publisher, amount):
        """API-TX-007: Amounts the money columns cannot hold are rejected as invalid input."""
        response = await client.post(API, json=sale_body(accounts, amount=amount), headers=MANAGER)
        assert response.status_code == 400
        assert response.json()["error"] == "LedgerValidationError"
        assert "out of range" in response.json()["detail"]

        assert await balance_of(client, accounts["cash"]) == Decimal("0")
        assert publisher.events == []


# ============================================================================
# READS
# ============================================================================

class TestReadTransactions:

    @pytest.mark.asyncio
    async def test_lookups(self, client, accounts):
        """API-TX-010: By id, by number, by account and by date range."""
        tx = (await client.post(API, json=sale_body(accounts), headers=MANAGER)).json()

        by_id = await client.get(f"{API}/{tx['id']}", headers=VIEWER)
        by_number = await client.get(f"{API}/number/{tx['transaction_number']}", headers=VIEWER)
        by_account = await client.get(f"{API}/account/{accounts['cash']['id']}", headers=VIEWER)

        today = today_date()
        in_range = await client.get(
            f"{API}/date-range",
            params={"start_date": today.isoformat(), "end_date": today.isoformat()},
            headers=VIEWER,
            )
        out_of_range = await client.get(
            f"{API}/date-range",
            params={"start_date": (today + timedelta(days=1)).isoformat(), "end_date": (today + timedelta(days=2)).isoformat()},
            headers=VIEWER,
            )

        assert by_id.json()["id"] == tx["id"]
        assert by_number.json()["id"] == tx["id"]
        assert [t["id"] for t in by_account.json()] == [tx["id"]]
        assert [t["id"] for t in in_range.json()] == [tx["id"]]
        assert out_of_range.json() == []

    @pytest.mark.asyncio
    async def test_reversed_date_range_is_400(self, client):
        """API-TX-011: end_date before start_date."""
        response = await client.get(
            f"{API}/date-range",
            params={"start_date": "2026-03-02", "end_date": "2026-03-01"},
            headers=VIEWER,
            )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_not_found(self, client):
        """API-TX-012: Unknown id and number are 404."""
        assert (await client.get(f"{API}/999", headers=VIEWER)).status_code == 404
        assert (await client.get(f"{API}/number/TXN-20260101-999999", headers=VIEWER)).status_code == 404

    @pytest.mark.asyncio
    async def test_list_newest_first(self, client, accounts):
        """API-TX-013: Listing is ordered newest first."""
        first = (await client.post(API, json=sale_body(accounts, amount="1"), headers=MANAGER)).json()
        second = (await client.post(API, json=sale_body(accounts, amount="2"), headers=MANAGER)).json()

        listing = (await client.get(API, headers=VIEWER)).json()
        assert [t["id"] for t in listing] == [second["id"], first["id"]]


# ============================================================================
# VOID
# ============================================================================

class TestVoidTransaction:

    @pytest.mark.asyncio
    async def test_void_requires_admin(self, client, accounts):
        """API-TX-020: MANAGER cannot void."""
        tx = (await client.post(API, json=sale_body(accounts), headers=MANAGER)).json()
        response = await client.post(f"{API}/{tx['id']}/void", headers=MANAGER)
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_void_reverses_and_publishes(self, client, accounts, publisher):
        """API-TX-021: Void restores balances, keeps the lines and publishes."""
        tx = (await client.post(API, json=sale_body(accounts), headers=MANAGER)).json()

        response = await client.post(f"{API}/{tx['id']}/void", headers=ADMIN)
        assert response.status_code == 200, response.text
        voided = response.json()
        assert voided["status"] == "VOIDED"
        assert voided["voided_at"] is not None
        assert len(voided["entries"]) == 2

        assert await balance_of(client, accounts["cash"]) == Decimal("0")
        assert await balance_of(client, accounts["sales"]) == Decimal("0")
        assert (await client.get(API, headers=VIEWER)).json() == []

        events = publisher.of_type(EVTransactionVoided)
        assert len(events) == 1
        assert events[0].voided_by == "admin"

    @pytest.mark.asyncio
    async def test_double_void_is_409(self, client, accounts):
        """API-TX-022: A voided transaction cannot be voided again."""
        tx = (await client.post(API, json=sale_body(accounts), headers=MANAGER)).json()
        assert (await client.post(f"{API}/{tx['id']}/void", headers=ADMIN)).status_code == 200

        response = await client.post(f"{API}/{tx['id']}/void", headers=ADMIN)
        assert response.status_code == 409
        assert await balance_of(client, accounts["cash"]) == Decimal("0")

    @pytest.mark.asyncio
    async def test_void_unknown_is_404(self, client):
        """API-TX-023: Voiding a missing transaction."""
        response = await client.post(f"{API}/999/void", headers=ADMIN)
        assert response.status_code == 404
        assert response.json()["error"] == "NotFoundError"
