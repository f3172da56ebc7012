"""
Sequence Service for LedgerCore.

Hands out document numbers:
- account numbers: "<type prefix><NNNN>" (10001, 20001, ...)
- transaction numbers: "TXN-YYYYMMDD-NNNNNN", restarting every UTC day

Design Notes:
- Each scope is a row in sequence_counters advanced with one
  UPDATE ... SET value = value + 1 RETURNING value statement, so two
  concurrent callers can never read the same value
- The first use of a scope seeds the row with INSERT ... ON CONFLICT DO
  NOTHING and increments again; on dialects without ON CONFLICT a plain
  insert is used and a lost race surfaces as IntegrityError, which is
  handled by incrementing the row the winner created
- The increment runs in the caller's session, so a rolled-back posting also
  rolls back its number (no gaps in atomic mode)
"""
from __future__ import annotations

from datetime import date as date_type, datetime
from typing import Optional, Union

from sqlalchemy import update, insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.db.models import SequenceCounter, AccountType, ACCOUNT_NUMBER_PREFIX
from backend.app.utils.datetime_utils import utcnow, day_stamp


class SequenceService:
    """
    Atomic named counters.

    All methods are async and expect an AsyncSession.
    The caller is responsible for commit/rollback.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _increment(self, scope: str) -> Optional[int]:
        stmt = (
            update(SequenceCounter)
            .where(SequenceCounter.scope == scope)
            .values(value=SequenceCounter.value + 1, updated_at=utcnow())
            .returning(SequenceCounter.value)
            .execution_options(synchronize_session=False)
            )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    def _seed_statement(self, scope: str):
        dialect = self.session.get_bind().dialect.name
        values = dict(scope=scope, value=0, updated_at=utcnow())

        if dialect == "sqlite":
            from sqlalchemy.dialects.sqlite import insert as sqlite_insert
            return sqlite_insert(SequenceCounter).values(**values).on_conflict_do_nothing(index_elements=["scope"])
        if dialect == "postgresql":
            from sqlalchemy.dialects.postgresql import insert as pg_insert
            return pg_insert(SequenceCounter).values(**values).on_conflict_do_nothing(index_elements=["scope"])
        return insert(SequenceCounter).values(**values)

    async def next_value(self, scope: str) -> int:
        """
        Advance scope and return the new value (1 on first use).

        Args:
            scope: Counter name, e.g. "account:ASSET"
        """
        value = await self._increment(scope)
        if value is not None:
            return value

        seed = self._seed_statement(scope)
        if self.session.get_bind().dialect.name in ("sqlite", "postgresql"):
            await self.session.execute(seed)
        else:
            try:
                # Savepoint keeps the caller's transaction usable after a lost race
                async with self.session.begin_nested():
                    await self.session.execute(seed)
            except IntegrityError:
                # Another writer created the row first; it exists now either way
                pass

        value = await self._increment(scope)
        if value is None:
            raise RuntimeError(f"Sequence scope '{scope}' could not be initialised")
        return value

    async def next_account_number(self, account_type: AccountType) -> str:
        """
        Next account number for account_type.

        Example:
            First ASSET account -> "10001", second -> "10002"
        """
        n = await self.next_value(f"account:{account_type.value}")
        return f"{ACCOUNT_NUMBER_PREFIX[account_type]}{n:04d}"

    async def next_transaction_number(self, day: Optional[Union[date_type, datetime]] = None) -> str:
        """
        Next transaction number for day (default: today, UTC).

        Example:
            "TXN-20261019-000001"
        """
        stamp = day_stamp(day or utcnow())
        n = await self.next_value(f"transaction:{stamp}")
        return f"TXN-{stamp}-{n:06d}"
