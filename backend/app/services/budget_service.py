"""
Budget Service for LedgerCore.

Tracks spending limits per account:
- CRUD (create, partial update, soft deactivation)
- apply_spend(): called after each committed posting with the net balance
  movement of the account, increments spent on every active budget whose
  window contains the posting day and emits budget.exceeded events

Design Notes:
- spent, remaining and is_exceeded change in a single UPDATE statement per
  call, so remaining == amount - spent holds under concurrent postings
- The previous over-budget state is derived from the returned spent value
  (spent_before = spent - amount), which keeps ON_TRANSITION alerting exact
  without a read-before-write
- Negative spend (refund-like postings) is applied as given
"""
from __future__ import annotations

from datetime import date as date_type, datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select, update, case
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.config import BudgetAlertMode, Settings, get_settings
from backend.app.db.models import Account, Budget, BudgetPeriod
from backend.app.logging_config import get_logger
from backend.app.schemas.budgets import BGReadItem
from backend.app.schemas.events import EVBudgetExceeded
from backend.app.services.errors import LedgerValidationError, NotFoundError
from backend.app.services.event_publisher import EventPublisher, get_event_publisher, publish_safely
from backend.app.utils.datetime_utils import today_date, utcnow, parse_ISO_date, ensure_utc
from backend.app.utils.decimal_utils import to_decimal, truncate_to_db_precision, percentage
from backend.app.utils.validation_utils import parse_enum

logger = get_logger(__name__)

ZERO = Decimal("0")


class BudgetService:
    """
    Service for managing budgets.

    All methods are async and expect an AsyncSession. Write operations commit
    their own unit of work.
    """

    def __init__(
        self,
        session: AsyncSession,
        publisher: Optional[EventPublisher] = None,
        settings: Optional[Settings] = None,
        ):
        self.session = session
        self.settings = settings or get_settings()
        self.publisher = publisher or get_event_publisher(self.settings)

    # =========================================================================
    # CREATE OPERATIONS
    # =========================================================================

    async def create_budget(
        self,
        name: str,
        account_id: int,
        period,
        start_date,
        end_date,
        amount,
        ) -> BGReadItem:
        """
        Create a budget with spent=0 and remaining=amount.

        Raises:
            NotFoundError: account absent
            LedgerValidationError: bad period, dates, amount or name
        """
        budget_period = self._parse_period(period)
        if not name or not name.strip():
            raise LedgerValidationError("Budget name cannot be empty")

        try:
            start = parse_ISO_date(start_date)
            end = parse_ISO_date(end_date)
        except (ValueError, TypeError) as e:
            raise LedgerValidationError(str(e)) from e
        if end < start:
            raise LedgerValidationError(f"end_date ({end}) must be >= start_date ({start})")

        limit = self._parse_amount(amount)
        if limit < ZERO:
            raise LedgerValidationError("Budget amount must be >= 0")

        if await self.session.get(Account, account_id) is None:
            raise NotFoundError(f"Account {account_id} not found", account_id=account_id)

        budget = Budget(
            name=name.strip(),
            account_id=account_id,
            period=budget_period,
            start_date=start,
            end_date=end,
            amount=limit,
            spent=ZERO,
            remaining=limit,
            is_exceeded=False,
            is_active=True,
            created_at=utcnow(),
            updated_at=utcnow(),
            )
        self.session.add(budget)
        await self.session.flush()
        read = BGReadItem.from_db_model(budget)
        await self.session.commit()

        logger.info("Budget created", budget_id=read.id, account_id=account_id, amount=limit)
        return read

    # =========================================================================
    # SPEND
    # =========================================================================

    async def apply_spend(self, account_id: int, amount, at=None) -> List[EVBudgetExceeded]:
        """
        Add amount to every active budget of account_id whose window contains at.

        Args:
            account_id: Account that moved
            amount: Net movement to add to spent (may be negative)
            at: Day (or timestamp) of the posting; default today (UTC)

        Returns:
            The budget.exceeded events emitted (already published)
        """
        spend = self._parse_amount(amount)
        day = self._as_day(at)
        new_spent = Budget.spent + spend

        stmt = (
            update(Budget)
            .where(
                Budget.account_id == account_id,
                Budget.is_active == True,  # noqa: E712
                Budget.start_date <= day,
                Budget.end_date >= day,
                )
            .values(
                spent=new_spent,
                remaining=Budget.amount - new_spent,
                is_exceeded=case((new_spent > Budget.amount, True), else_=False),
                updated_at=utcnow(),
                )
            .returning(Budget.id, Budget.name, Budget.amount, Budget.spent)
            .execution_options(synchronize_session=False)
            )
        rows = (await self.session.execute(stmt)).all()
        await self.session.commit()

        if not rows:
            return []

        logger.debug("Budget spend applied", account_id=account_id, amount=spend, budgets=len(rows))

        events: List[EVBudgetExceeded] = []
        for budget_id, budget_name, budget_amount, spent in rows:
            budget_amount = Decimal(budget_amount)
            spent = Decimal(spent)
            if spent <= budget_amount:
                continue
            was_exceeded = (spent - spend) > budget_amount
            if self.settings.BUDGET_ALERT_MODE == BudgetAlertMode.ON_TRANSITION and was_exceeded:
                continue

            event = EVBudgetExceeded(
                budget_id=budget_id,
                budget_name=budget_name,
                account_id=account_id,
                budget_amount=budget_amount,
                spent=spent,
                exceeded_by=spent - budget_amount,
                percentage_used=percentage(spent, budget_amount),
                detected_at=utcnow(),
                )
            logger.warning(
                "Budget exceeded",
                budget_id=budget_id,
                account_id=account_id,
                amount=budget_amount,
                spent=spent,
                exceeded_by=event.exceeded_by,
                )
            await publish_safely(self.publisher, event)
            events.append(event)
        return events

    # =========================================================================
    # UPDATE OPERATIONS
    # =========================================================================

    async def update_budget(
        self,
        budget_id: int,
        name: Optional[str] = None,
        amount=None,
        is_active: Optional[bool] = None,
        ) -> BGReadItem:
        """
        Partial update. A new amount recomputes remaining and is_exceeded
        against the stored spent in the same statement.

        Raises:
            NotFoundError: budget absent
            LedgerValidationError: empty name or bad amount
        """
        budget = await self._get_model(budget_id)
        if budget is None:
            raise NotFoundError(f"Budget {budget_id} not found", budget_id=budget_id)

        values = {}
        if name is not None:
            if not name.strip():
                raise LedgerValidationError("Budget name cannot be empty")
            values["name"] = name.strip()
        if amount is not None:
            limit = self._parse_amount(amount)
            if limit < ZERO:
                raise LedgerValidationError("Budget amount must be >= 0")
            values["amount"] = limit
            values["remaining"] = limit - Budget.spent
            values["is_exceeded"] = case((Budget.spent > limit, True), else_=False)
        if is_active is not None:
            values["is_active"] = is_active

        if values:
            values["updated_at"] = utcnow()
            stmt = (
                update(Budget)
                .where(Budget.id == budget_id)
                .values(**values)
                .execution_options(synchronize_session=False)
                )
            await self.session.execute(stmt)
            await self.session.refresh(budget)

        read = BGReadItem.from_db_model(budget)
        await self.session.commit()
        logger.info("Budget updated", budget_id=budget_id, fields=sorted(k for k in values if k != "updated_at"))
        return read

    async def deactivate_budget(self, budget_id: int) -> BGReadItem:
        """
        Soft-deactivate a budget; it stops receiving spend.

        Raises:
            NotFoundError: budget absent
        """
        return await self.update_budget(budget_id, is_active=False)

    # =========================================================================
    # READ OPERATIONS
    # =========================================================================

    async def _get_model(self, budget_id: int) -> Optional[Budget]:
        return await self.session.get(Budget, budget_id, populate_existing=True)

    async def get_by_id(self, budget_id: int) -> Optional[BGReadItem]:
        """Get budget by ID."""
        budget = await self._get_model(budget_id)
        return BGReadItem.from_db_model(budget) if budget else None

    async def list_budgets(self, skip: int = 0, limit: int = 50) -> List[BGReadItem]:
        """All budgets (active or not), newest first."""
        stmt = select(Budget).order_by(Budget.start_date.desc(), Budget.id.desc()).offset(skip).limit(limit)
        result = await self.session.execute(stmt.execution_options(populate_existing=True))
        return [BGReadItem.from_db_model(b) for b in result.scalars().all()]

    async def list_active(self, at=None) -> List[BGReadItem]:
        """Active budgets whose window contains at (default today)."""
        day = self._as_day(at)
        stmt = (
            select(Budget)
            .where(
                Budget.is_active == True,  # noqa: E712
                Budget.start_date <= day,
                Budget.end_date >= day,
                )
            .order_by(Budget.end_date, Budget.id)
            )
        result = await self.session.execute(stmt.execution_options(populate_existing=True))
        return [BGReadItem.from_db_model(b) for b in result.scalars().all()]

    async def list_by_account(self, account_id: int) -> List[BGReadItem]:
        """Every budget of one account, newest window first."""
        stmt = (
            select(Budget)
            .where(Budget.account_id == account_id)
            .order_by(Budget.start_date.desc(), Budget.id.desc())
            )
        result = await self.session.execute(stmt.execution_options(populate_existing=True))
        return [BGReadItem.from_db_model(b) for b in result.scalars().all()]

    # =========================================================================
    # HELPERS
    # =========================================================================

    @staticmethod
    def _parse_period(value) -> BudgetPeriod:
        try:
            return parse_enum(BudgetPeriod, value, "budget period")
        except ValueError as e:
            raise LedgerValidationError(str(e), field="period") from e

    @staticmethod
    def _parse_amount(value) -> Decimal:
        try:
            return truncate_to_db_precision(to_decimal(value), Budget, "amount")
        except ValueError as e:
            raise LedgerValidationError(str(e), field="amount") from e

    @staticmethod
    def _as_day(at) -> date_type:
        if at is None:
            return today_date()
        if isinstance(at, datetime):
            return ensure_utc(at).date()
        return parse_ISO_date(at)
