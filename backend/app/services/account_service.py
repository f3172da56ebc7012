"""
Account Service for LedgerCore.

Centralizes the chart-of-accounts logic:
- Account creation with generated numbers and one-active-account-per-user
- Read paths (by id, number, user, type)
- Soft deactivation (refused while the balance is non-zero)
- Balance maintenance: the sign convention and the atomic increment used by
  postings, voids and administrative adjustments

Design Notes:
- Balances are only ever changed with UPDATE ... SET balance = balance + :delta
  keyed by account id. No code path reads a balance, adds to it in Python
  and writes it back
- apply_entry() does not commit: it runs inside the posting's write path
- Everything else commits its own unit of work and publishes afterwards
- Reads use populate_existing so a balance changed by an increment is never
  served from a stale identity map
"""
from __future__ import annotations

from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.config import AssetSignConvention, Settings, get_settings
from backend.app.db.models import Account, AccountType, AccountCategory
from backend.app.logging_config import get_logger, get_audit_logger
from backend.app.schemas.accounts import ACReadItem, ACBalanceRead
from backend.app.schemas.common import Currency
from backend.app.schemas.events import EVBalanceAdjusted
from backend.app.services.errors import LedgerValidationError, ConflictError, NotFoundError
from backend.app.services.event_publisher import EventPublisher, get_event_publisher, publish_safely
from backend.app.services.sequence_service import SequenceService
from backend.app.utils.datetime_utils import utcnow
from backend.app.utils.decimal_utils import to_decimal, truncate_to_db_precision
from backend.app.utils.validation_utils import parse_enum

logger = get_logger(__name__)
audit_logger = get_audit_logger(__name__)

ZERO = Decimal("0")


class AccountService:
    """
    Service for managing ledger accounts.

    All methods are async and expect an AsyncSession.
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
        self.sequences = SequenceService(session)

    # =========================================================================
    # SIGN CONVENTION
    # =========================================================================

    def balance_delta(self, account_type: AccountType, debit: Decimal, credit: Decimal) -> Decimal:
        """
        Signed balance change of one journal line on an account of account_type.

        - EXPENSE: debit - credit
        - LIABILITY, EQUITY, REVENUE: credit - debit
        - ASSET: debit - credit (STANDARD) or credit - debit (LEGACY)
        """
        debit = Decimal(debit)
        credit = Decimal(credit)

        if account_type == AccountType.EXPENSE:
            return debit - credit
        if account_type == AccountType.ASSET:
            if self.settings.ASSET_SIGN_CONVENTION == AssetSignConvention.LEGACY:
                return credit - debit
            return debit - credit
        return credit - debit

    # =========================================================================
    # CREATE OPERATIONS
    # =========================================================================

    async def create_account(
        self,
        name: str,
        type,
        category,
        currency: Optional[str] = None,
        parent_account_id: Optional[int] = None,
        user_id: Optional[str] = None,
        description: Optional[str] = None,
        ) -> ACReadItem:
        """
        Create an account with a generated number and zero balance.

        Args:
            name: Display name
            type: AccountType or any accepted spelling ("Asset", "ASSET")
            category: AccountCategory or any accepted spelling
            currency: ISO 4217 code (default: settings.DEFAULT_CURRENCY)
            parent_account_id: Optional parent, must exist
            user_id: Optional external user binding (one active account per user)
            description: Free text

        Raises:
            LedgerValidationError: bad enum, currency, name or parent
            ConflictError: user_id already has an active account
        """
        account_type = self._parse(AccountType, type, "account type")
        account_category = self._parse(AccountCategory, category, "account category")

        if not name or not name.strip():
            raise LedgerValidationError("Account name cannot be empty")

        try:
            currency_code = Currency.validate_code(currency or self.settings.DEFAULT_CURRENCY)
        except ValueError as e:
            raise LedgerValidationError(str(e), field="currency") from e

        if parent_account_id is not None and await self._get_model(parent_account_id) is None:
            raise LedgerValidationError(f"Parent account {parent_account_id} not found", parent_account_id=parent_account_id)

        if user_id is not None:
            existing = await self._get_active_for_user(user_id)
            if existing is not None:
                raise ConflictError(
                    f"User '{user_id}' already has an active account ({existing.account_number})",
                    user_id=user_id,
                    )

        account_number = await self.sequences.next_account_number(account_type)
        account = Account(
            account_number=account_number,
            name=name.strip(),
            type=account_type,
            category=account_category,
            balance=ZERO,
            currency=currency_code,
            parent_account_id=parent_account_id,
            user_id=user_id,
            description=description,
            is_active=True,
            created_at=utcnow(),
            updated_at=utcnow(),
            )

        try:
            self.session.add(account)
            await self.session.flush()
        except IntegrityError as e:
            # Lost a race on the active-user index
            await self.session.rollback()
            raise ConflictError(f"Account could not be created: {e.orig}", user_id=user_id) from e

        read = ACReadItem.model_validate(account)
        await self.session.commit()

        logger.info(
            "Account created",
            account_id=read.id,
            account_number=read.account_number,
            type=read.type.value,
            user_id=user_id,
            )
        return read

    async def ensure_default_revenue_account(self) -> ACReadItem:
        """
        Return the default revenue account, creating it on first use.

        Upstream order processing posts sales against it.
        """
        existing = await self.get_default_revenue_account()
        if existing is not None:
            return existing

        account = await self.create_account(
            name=self.settings.DEFAULT_REVENUE_ACCOUNT_NAME,
            type=AccountType.REVENUE,
            category=AccountCategory.OPERATING_REVENUE,
            currency=self.settings.DEFAULT_CURRENCY,
            description="Default account for product sales",
            )
        logger.info("Default revenue account created", account_number=account.account_number)
        return account

    # =========================================================================
    # READ OPERATIONS
    # =========================================================================

    async def _get_model(self, account_id: int) -> Optional[Account]:
        return await self.session.get(Account, account_id, populate_existing=True)

    async def _get_active_for_user(self, user_id: str) -> Optional[Account]:
        stmt = select(Account).where(Account.user_id == user_id, Account.is_active == True)  # noqa: E712
        result = await self.session.execute(stmt.execution_options(populate_existing=True))
        return result.scalars().first()

    async def get_by_id(self, account_id: int) -> Optional[ACReadItem]:
        """Get account by ID (active or not)."""
        account = await self._get_model(account_id)
        return ACReadItem.model_validate(account) if account else None

    async def get_by_number(self, account_number: str) -> Optional[ACReadItem]:
        """Get account by its account number."""
        stmt = select(Account).where(Account.account_number == account_number)
        result = await self.session.execute(stmt.execution_options(populate_existing=True))
        account = result.scalar_one_or_none()
        return ACReadItem.model_validate(account) if account else None

    async def get_by_user(self, user_id: str) -> Optional[ACReadItem]:
        """Get the active account bound to user_id."""
        account = await self._get_active_for_user(user_id)
        return ACReadItem.model_validate(account) if account else None

    async def get_default_revenue_account(self) -> Optional[ACReadItem]:
        """Active REVENUE account named settings.DEFAULT_REVENUE_ACCOUNT_NAME, if any."""
        stmt = (
            select(Account)
            .where(
                Account.name == self.settings.DEFAULT_REVENUE_ACCOUNT_NAME,
                Account.type == AccountType.REVENUE,
                Account.is_active == True,  # noqa: E712
                )
            .order_by(Account.account_number)
            )
        result = await self.session.execute(stmt.execution_options(populate_existing=True))
        account = result.scalars().first()
        return ACReadItem.model_validate(account) if account else None

    async def list_accounts(self, skip: int = 0, limit: int = 50) -> List[ACReadItem]:
        """Active accounts ordered by account number."""
        stmt = (
            select(Account)
            .where(Account.is_active == True)  # noqa: E712
            .order_by(Account.account_number)
            .offset(skip)
            .limit(limit)
            )
        result = await self.session.execute(stmt.execution_options(populate_existing=True))
        return [ACReadItem.model_validate(a) for a in result.scalars().all()]

    async def list_by_type(self, type, skip: int = 0, limit: int = 50) -> List[ACReadItem]:
        """Active accounts of one type ordered by account number."""
        account_type = self._parse(AccountType, type, "account type")
        stmt = (
            select(Account)
            .where(Account.type == account_type, Account.is_active == True)  # noqa: E712
            .order_by(Account.account_number)
            .offset(skip)
            .limit(limit)
            )
        result = await self.session.execute(stmt.execution_options(populate_existing=True))
        return [ACReadItem.model_validate(a) for a in result.scalars().all()]

    async def get_balance(self, account_id: int) -> Optional[ACBalanceRead]:
        """Current balance of an account, None if absent."""
        account = await self._get_model(account_id)
        if account is None:
            return None
        return ACBalanceRead(
            account_id=account.id,
            account_number=account.account_number,
            balance=account.balance,
            currency=account.currency,
            )

    async def resolve_accounts(self, account_ids: Iterable[int], active_only: bool = True) -> Dict[int, Account]:
        """
        Load accounts by id for a posting or void.

        Returns only the accounts found (and active, when active_only); the
        caller decides what a missing id means.
        """
        ids = set(account_ids)
        if not ids:
            return {}
        stmt = select(Account).where(Account.id.in_(ids))
        if active_only:
            stmt = stmt.where(Account.is_active == True)  # noqa: E712
        result = await self.session.execute(stmt.execution_options(populate_existing=True))
        return {a.id: a for a in result.scalars().all()}

    # =========================================================================
    # UPDATE OPERATIONS
    # =========================================================================

    async def update_account(
        self,
        account_id: int,
        name: Optional[str] = None,
        category=None,
        description: Optional[str] = None,
        is_active: Optional[bool] = None,
        ) -> ACReadItem:
        """
        Partial update; never touches the balance.

        Raises:
            NotFoundError: account absent
            LedgerValidationError: empty name or bad category
            ConflictError: deactivating with a non-zero balance, or
                reactivating while the user already has another active account
        """
        account = await self._get_model(account_id)
        if account is None:
            raise NotFoundError(f"Account {account_id} not found", account_id=account_id)

        if name is not None:
            if not name.strip():
                raise LedgerValidationError("Account name cannot be empty")
            account.name = name.strip()
        if category is not None:
            account.category = self._parse(AccountCategory, category, "account category")
        if description is not None:
            account.description = description
        if is_active is not None and is_active != account.is_active:
            if not is_active and Decimal(account.balance) != ZERO:
                raise ConflictError(
                    f"Account {account.account_number} has a non-zero balance ({account.balance})",
                    account_id=account_id,
                    )
            if is_active and account.user_id is not None and await self._get_active_for_user(account.user_id) is not None:
                raise ConflictError(f"User '{account.user_id}' already has an active account", account_id=account_id)
            account.is_active = is_active

        try:
            await self.session.flush()
        except IntegrityError as e:
            await self.session.rollback()
            raise ConflictError(f"Account {account_id} could not be updated: {e.orig}", account_id=account_id) from e

        read = ACReadItem.model_validate(account)
        await self.session.commit()
        logger.info("Account updated", account_id=account_id)
        return read

    async def deactivate_account(self, account_id: int) -> ACReadItem:
        """
        Soft-delete an account.

        Raises:
            NotFoundError: account absent
            ConflictError: balance is not zero
        """
        account = await self._get_model(account_id)
        if account is None:
            raise NotFoundError(f"Account {account_id} not found", account_id=account_id)
        if Decimal(account.balance) != ZERO:
            raise ConflictError(
                f"Cannot deactivate account {account.account_number} with non-zero balance ({account.balance})",
                account_id=account_id,
                balance=account.balance,
                )

        account.is_active = False
        await self.session.flush()
        read = ACReadItem.model_validate(account)
        await self.session.commit()

        logger.info("Account deactivated", account_id=account_id, account_number=account.account_number)
        return read

    # =========================================================================
    # BALANCE OPERATIONS
    # =========================================================================

    async def _increment_balance(self, account_id: int, delta: Decimal) -> None:
        stmt = (
            update(Account)
            .where(Account.id == account_id)
            .values(balance=Account.balance + delta, updated_at=utcnow())
            .execution_options(synchronize_session=False)
            )
        result = await self.session.execute(stmt)
        if result.rowcount == 0:
            raise NotFoundError(f"Account {account_id} not found", account_id=account_id)

    async def apply_entry(
        self,
        account_id: int,
        debit: Decimal,
        credit: Decimal,
        account_type: Optional[AccountType] = None,
        ) -> Decimal:
        """
        Apply one journal line to an account balance.

        Does not commit. account_type saves a read when the caller already
        loaded the account.

        Returns:
            The signed delta applied
        """
        if account_type is None:
            account = await self._get_model(account_id)
            if account is None:
                raise NotFoundError(f"Account {account_id} not found", account_id=account_id)
            account_type = account.type

        delta = self.balance_delta(account_type, debit, credit)
        if delta != ZERO:
            await self._increment_balance(account_id, delta)
        return delta

    async def adjust_balance(
        self,
        account_id: int,
        amount,
        actor: str,
        reason: Optional[str] = None,
        ) -> ACReadItem:
        """
        Privileged single-sided balance override.

        amount is added to the balance as given. No journal entry is written
        and no other account is offset, so the operation is audit-logged and
        published as a balance.adjusted event.

        Raises:
            LedgerValidationError: amount not numeric, zero, or no actor
            NotFoundError: account absent
        """
        try:
            amount = truncate_to_db_precision(to_decimal(amount), Account, "balance")
        except ValueError as e:
            raise LedgerValidationError(str(e), field="amount") from e
        if amount == ZERO:
            raise LedgerValidationError("Adjustment amount must be non-zero")
        if not actor:
            raise LedgerValidationError("Balance adjustments require an actor")

        account = await self._get_model(account_id)
        if account is None:
            raise NotFoundError(f"Account {account_id} not found", account_id=account_id)

        await self._increment_balance(account_id, amount)
        await self.session.refresh(account)
        read = ACReadItem.model_validate(account)
        await self.session.commit()

        audit_logger.warning(
            "Balance adjusted outside the journal",
            account_id=account_id,
            account_number=read.account_number,
            amount=amount,
            new_balance=read.balance,
            actor=actor,
            reason=reason,
            )
        await publish_safely(self.publisher, EVBalanceAdjusted(
            account_id=read.id,
            account_number=read.account_number,
            amount=amount,
            new_balance=read.balance,
            actor=actor,
            reason=reason,
            ))
        return read

    # =========================================================================
    # HELPERS
    # =========================================================================

    @staticmethod
    def _parse(enum_cls, value, field_name: str):
        try:
            return parse_enum(enum_cls, value, field_name)
        except ValueError as e:
            raise LedgerValidationError(str(e), field=field_name) from e
