"""
Tests for SequenceService.

Account and transaction numbers are generated from counters advanced with a
single UPDATE ... RETURNING; these tests check formats, per-scope
independence and that concurrent callers never share a value.

Reference: backend/app/services/sequence_service.py
"""
import sys
from datetime import date
from pathlib import Path

import pytest
import pytest_asyncio

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent.parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

# Setup test database BEFORE importing app modules
from backend.test_scripts.test_db_config import setup_test_database, create_test_engine

setup_test_database()

from backend.app.db.models import AccountType
from backend.app.db.session import make_session_factory
from backend.app.services.sequence_service import SequenceService
from backend.app.utils.datetime_utils import utcnow, day_stamp


# ============================================================================
# PYTEST FIXTURES
# ============================================================================

@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = await create_test_engine(tmp_path / "ledger.db")
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return make_session_factory(engine)


# ============================================================================
# TESTS
# ============================================================================

class TestSequenceValues:
    """Raw counter behaviour."""

    @pytest.mark.asyncio
    async def test_first_value_is_one(self, session_factory):
        """SQ-U-001: A new scope starts at 1 and increments by one."""
        async with session_factory() as session:
            seq = SequenceService(session)
            assert await seq.next_value("demo") == 1
            assert await seq.next_value("demo") == 2
            assert await seq.next_value("demo") == 3
            await session.commit()

    @pytest.mark.asyncio
    async def test_scopes_are_independent(self, session_factory):
        """SQ-U-002: Each scope has its own counter."""
        async with session_factory() as session:
            seq = SequenceService(session)
            assert await seq.next_value("a") == 1
            assert await seq.next_value("b") == 1
            assert await seq.next_value("a") == 2
            await session.commit()

    @pytest.mark.asyncio
    async def test_rollback_returns_the_number(self, session_factory):
        """SQ-U-003: A rolled-back increment is not consumed."""
        async with session_factory() as session:
            seq = SequenceService(session)
            assert await seq.next_value("demo") == 1
            await session.commit()

            assert await seq.next_value("demo") == 2
            await session.rollback()

            assert await seq.next_value("demo") == 2
            await session.commit()

    @pytest.mark.asyncio
    async def test_separate_sessions_never_share_a_value(self, session_factory):
        """SQ-U-004: Callers on separate sessions see each other's increments."""
        values = []
        async with session_factory() as first, session_factory() as second:
            for _ in range(3):
                values.append(await SequenceService(first).next_value("shared"))
                await first.commit()
                values.append(await SequenceService(second).next_value("shared"))
                await second.commit()
        assert values == [1, 2, 3, 4, 5, 6]


class TestDocumentNumbers:
    """Formatted account and transaction numbers."""

    @pytest.mark.asyncio
    async def test_account_numbers_use_type_prefix(self, session_factory):
        """SQ-U-010: <prefix><4 digits>, counted per account type."""
        async with session_factory() as session:
            seq = SequenceService(session)
            assert await seq.next_account_number(AccountType.ASSET) == "10001"
            assert await seq.next_account_number(AccountType.ASSET) == "10002"
            assert await seq.next_account_number(AccountType.LIABILITY) == "20001"
            assert await seq.next_account_number(AccountType.EQUITY) == "30001"
            assert await seq.next_account_number(AccountType.REVENUE) == "40001"
            assert await seq.next_account_number(AccountType.EXPENSE) == "50001"
            await session.commit()

    @pytest.mark.asyncio
    async def test_transaction_numbers_restart_per_day(self, session_factory):
        """SQ-U-011: TXN-YYYYMMDD-NNNNNN with a counter per day."""
        async with session_factory() as session:
            seq = SequenceService(session)
            assert await seq.next_transaction_number(date(2026, 1, 31)) == "TXN-20260131-000001"
            assert await seq.next_transaction_number(date(2026, 1, 31)) == "TXN-20260131-000002"
            assert await seq.next_transaction_number(date(2026, 2, 1)) == "TXN-20260201-000001"
            await session.commit()

    @pytest.mark.asyncio
    async def test_transaction_number_defaults_to_today(self, session_factory):
        """SQ-U-012: Without a day the current UTC day is used."""
        async with session_factory() as session:
            number = await SequenceService(session).next_transaction_number()
            await session.commit()
        assert number == f"TXN-{day_stamp(utcnow())}-000001"
