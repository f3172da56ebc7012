"""
Budget API Tests.

Tests for the budget endpoints and the spend tracking fed by postings:
- POST/GET/PATCH/DELETE /budgets
- Posting to a budgeted account updates spent/remaining after the response
- budget.exceeded events

Reference: backend/app/api/v1/budgets.py, backend/app/services/ledger_dispatcher.py
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

from backend.app.schemas.events import EVBudgetExceeded
from backend.app.services.event_publisher import InMemoryEventPublisher
from backend.app.utils.datetime_utils import today_date
from backend.test_scripts.test_server_helper import ADMIN, MANAGER, VIEWER, TEST_API_PREFIX, _TestingAppClient

API = f"{TEST_API_PREFIX}/budgets"
ACCOUNTS_API = f"{TEST_API_PREFIX}/accounts"
TRANSACTIONS_API = f"{TEST_API_PREFIX}/transactions"


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
    """Cash (ASSET) and Supplies (EXPENSE) accounts."""
    created = {}
    for key, name, type, category in [
        ("cash", "Cash", "ASSET", "CURRENT_ASSETS"),
        ("supplies", "Supplies", "EXPENSE", "OPERATING_EXPENSES"),
        ]:
        response = await client.post(ACCOUNTS_API, json={"name": name, "type": type, "category": category}, headers=MANAGER)
        assert response.status_code == 201, response.text
        created[key] = response.json()
    return created


def budget_body(account: dict, amount="500", **overrides) -> dict:
    today = today_date()
    body = {
        "name": "Supplies this month",
        "account_id": account["id"],
        "period": "MONTHLY",
        "start_date": (today - timedelta(days=1)).isoformat(),
        "end_date": (today + timedelta(days=29)).isoformat(),
        "amount": amount,
        }
    body.update(overrides)
    return body


async def buy_supplies(client, accounts: dict, amount: str):
    response = await client.post(
        TRANSACTIONS_API,
        json={
            "description": "Office supplies",
            "type": "PURCHASE",
            "entries": [
                {"account_id": accounts["supplies"]["id"], "debit": amount},
                {"account_id": accounts["cash"]["id"], "credit": amount},
                ],
            },
        headers=MANAGER,
        )
    assert response.status_code == 201, response.text
    return response.json()


# ============================================================================
# CRUD
# ============================================================================

class TestBudgetsApi:

    @pytest.mark.asyncio
    async def test_create_and_read(self, client, accounts):
        """API-BG-001: New budget starts with spent 0 and remaining = amount."""
        response = await client.post(API, json=budget_body(accounts["supplies"]), headers=MANAGER)
        assert response.status_code == 201, response.text
        budget = response.json()
        assert Decimal(budget["spent"]) == Decimal("0")
        assert Decimal(budget["remaining"]) == Decimal("500")
        assert budget["is_exceeded"] is False

        by_id = await client.get(f"{API}/{budget['id']}", headers=VIEWER)
        by_account = await client.get(f"{API}/account/{accounts['supplies']['id']}", headers=VIEWER)
        active = await client.get(f"{API}/active", headers=VIEWER)
        listing = await client.get(API, headers=VIEWER)

        assert by_id.json()["id"] == budget["id"]
        assert [b["id"] for b in by_account.json()] == [budget["id"]]
        assert [b["id"] for b in active.json()] == [budget["id"]]
        assert [b["id"] for b in listing.json()] == [budget["id"]]

    @pytest.mark.asyncio
    async def test_validation(self, client, accounts):
        """API-BG-002: Unknown period and reversed window are 400, unknown account 404."""
        supplies = accounts["supplies"]

        response = await client.post(API, json=budget_body(supplies, period="WEEKLY"), headers=MANAGER)
        assert response.status_code == 400
        assert "MONTHLY" in response.json()["detail"]

        response = await client.post(API, json=budget_body(supplies, start_date="2026-02-01", end_date="2026-01-01"), headers=MANAGER)
        assert response.status_code == 400

        response = await client.post(API, json=budget_body({"id": 999}), headers=MANAGER)
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_viewer_cannot_create(self, client, accounts):
        """API-BG-003: Budget writes require MANAGER or ADMIN."""
        response = await client.post(API, json=budget_body(accounts["supplies"]), headers=VIEWER)
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_patch_amount_recomputes_remaining(self, client, accounts):
        """API-BG-004: New amount keeps spent and recomputes remaining."""
        budget = (await client.post(API, json=budget_body(accounts["supplies"]), headers=MANAGER)).json()
        await buy_supplies(client, accounts, "200")

        response = await client.patch(f"{API}/{budget['id']}", json={"amount": "150"}, headers=MANAGER)
        assert response.status_code == 200, response.text
        updated = response.json()
        assert Decimal(updated["spent"]) == Decimal("200")
        assert Decimal(updated["remaining"]) == Decimal("-50")
        assert updated["is_exceeded"] is True

    @pytest.mark.asyncio
    async def test_deactivate(self, client, accounts):
        """API-BG-005: DELETE is ADMIN-only; inactive budgets stop tracking."""
        budget = (await client.post(API, json=budget_body(accounts["supplies"]), headers=MANAGER)).json()
        url = f"{API}/{budget['id']}"

        assert (await client.delete(url, headers=MANAGER)).status_code == 403
        response = await client.delete(url, headers=ADMIN)
        assert response.status_code == 200
        assert response.json()["is_active"] is False

        await buy_supplies(client, accounts, "50")
        assert Decimal((await client.get(url, headers=VIEWER)).json()["spent"]) == Decimal("0")
        assert (await client.get(f"{API}/active", headers=VIEWER)).json() == []

    @pytest.mark.asyncio
    async def test_not_found(self, client):
        """API-BG-006: Unknown budget id."""
        assert (await client.get(f"{API}/999", headers=VIEWER)).status_code == 404
        assert (await client.patch(f"{API}/999", json={"name": "x"}, headers=MANAGER)).status_code == 404


# ============================================================================
# SPEND TRACKING
# ============================================================================

class TestBudgetSpend:

    @pytest.mark.asyncio
    async def test_postings_update_spend_and_alert(self, client, accounts, publisher):
        """API-BG-010: 500 budget, two 300 purchases -> spent 600, remaining -100, one alert."""
        budget = (await client.post(API, json=budget_body(accounts["supplies"]), headers=MANAGER)).json()

        await buy_supplies(client, accounts, "300")
        await buy_supplies(client, accounts, "300")

        current = (await client.get(f"{API}/{budget['id']}", headers=VIEWER)).json()
        assert Decimal(current["spent"]) == Decimal("600")
        assert Decimal(current["remaining"]) == Decimal("-100")
        assert current["is_exceeded"] is True
        assert Decimal(current["percentage_used"]) == Decimal("120.00")

        alerts = publisher.of_type(EVBudgetExceeded)
        assert len(alerts) == 1
        assert alerts[0].budget_id == budget["id"]
        assert alerts[0].exceeded_by == Decimal("100")

    @pytest.mark.asyncio
    async def test_asset_budget_tracks_net_movement(self, client, accounts):
        """API-BG-011: A budget on cash tracks the cash movement (negative when paid out)."""
        budget = (await client.post(API, json=budget_body(accounts["cash"], name="Cash out"), headers=MANAGER)).json()

        await buy_supplies(client, accounts, "40")

        current = (await client.get(f"{API}/{budget['id']}", headers=VIEWER)).json()
        assert Decimal(current["spent"]) == Decimal("-40")
        assert current["is_exceeded"] is False

    @pytest.mark.asyncio
    async def test_void_keeps_spend(self, client, accounts):
        """API-BG-012: Voiding a posting does not give the budget back."""
        budget = (await client.post(API, json=budget_body(accounts["supplies"]), headers=MANAGER)).json()
        tx = await buy_supplies(client, accounts, "120")

        assert (await client.post(f"{TRANSACTIONS_API}/{tx['id']}/void", headers=ADMIN)).status_code == 200

        current = (await client.get(f"{API}/{budget['id']}", headers=VIEWER)).json()
        assert Decimal(current["spent"]) == Decimal("120")
