"""
Transaction Service for LedgerCore.

Centralizes the double-entry posting logic:
- Validation (type, amounts, debit/credit equality, account resolution)
- Posting and voiding with the write discipline chosen by the store
  capabilities
- Post-commit hand-off to the dispatcher (budget spend + events)
- Read paths

Write discipline:
- atomic store: header, lines and every balance increment are written in
  one database transaction; any failure rolls everything back and the
  original error is re-raised
- non-atomic store: the same steps are committed one by one after logging
  atomic_writes_unavailable. A failure after the first committed step is
  logged as partial_posting_failure with the steps already applied and
  raised as PartialWriteError. There is no compensation: the ledger needs
  manual reconciliation

Design Notes:
- Every validation runs before the first write
- Voids flip the status with a conditional UPDATE (status = POSTED), so two
  concurrent voids cannot both reverse the balances
- Voids never touch budgets
"""
from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date as date_type, datetime
from decimal import Decimal
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.config import Settings, get_settings
from backend.app.db.capabilities import StoreCapabilities
from backend.app.db.models import (
    Account,
    JournalEntry,
    Transaction,
    TransactionStatus,
    TransactionType,
    )
from backend.app.logging_config import get_logger, get_audit_logger
from backend.app.schemas.common import DateRangeModel
from backend.app.schemas.events import EVAccountDelta, EVTransactionPosted, EVTransactionVoided
from backend.app.schemas.transactions import TXReadItem
from backend.app.services.account_service import AccountService
from backend.app.services.errors import (
    ConflictError,
    LedgerValidationError,
    NotFoundError,
    PartialWriteError,
    )
from backend.app.services.sequence_service import SequenceService
from backend.app.utils.datetime_utils import ensure_utc, utcnow
from backend.app.utils.decimal_utils import to_decimal, truncate_to_db_precision
from backend.app.utils.validation_utils import parse_enum

logger = get_logger(__name__)
audit_logger = get_audit_logger(__name__)

ZERO = Decimal("0")


@dataclass
class _Line:
    """Validated journal line, before it is bound to a transaction."""
    line_no: int
    account_id: int
    debit: Decimal
    credit: Decimal
    memo: Optional[str] = None


class TransactionService:
    """
    Service for posting, voiding and reading journal transactions.

    Args:
        session: AsyncSession used for every read and write
        capabilities: Probed store capabilities (selects the write path)
        dispatcher: Post-commit side effects (PostingDispatcher); None disables them
        schedule: If given, dispatcher calls are handed to schedule(fn, *args)
            instead of being awaited inline (FastAPI BackgroundTasks.add_task)
        settings: Application settings (default: get_settings())
    """

    def __init__(
        self,
        session: AsyncSession,
        capabilities: StoreCapabilities,
        dispatcher=None,
        schedule: Optional[Callable[..., Any]] = None,
        settings: Optional[Settings] = None,
        ):
        self.session = session
        self.capabilities = capabilities
        self.dispatcher = dispatcher
        self.schedule = schedule
        self.settings = settings or get_settings()
        self.accounts = AccountService(session, settings=self.settings)
        self.sequences = SequenceService(session)

    # =========================================================================
    # POST
    # =========================================================================

    async def post_transaction(
        self,
        description: str,
        entries: Sequence[Any],
        type,
        actor: str,
        date: Optional[datetime] = None,
        reference_id: Optional[str] = None,
        reference_type: Optional[str] = None,
        ) -> TXReadItem:
        """
        Validate and post a balanced transaction.

        Args:
            description: Free text
            entries: TXEntryItem objects or mappings with account_id, debit,
                credit and optional memo
            type: TransactionType or any accepted spelling ("Sale")
            actor: Identity of the caller, stored as created_by
            date: Business timestamp (default: now, UTC)
            reference_id / reference_type: Upstream document

        Raises:
            LedgerValidationError: bad type, malformed amounts, fewer than two
                lines, or an account that is missing or inactive
            ConflictError: debits != credits
            PartialWriteError: non-atomic store failed after a committed step
        """
        tx_type = self._parse_type(type)
        if not description or not description.strip():
            raise LedgerValidationError("Transaction description cannot be empty")
        if not actor:
            raise LedgerValidationError("Transactions require an actor (created_by)")

        lines = self._validate_lines(entries)
        accounts = await self.accounts.resolve_accounts(line.account_id for line in lines)
        missing = sorted({line.account_id for line in lines} - set(accounts))
        if missing:
            raise LedgerValidationError(
                f"Accounts not found or inactive: {', '.join(str(i) for i in missing)}",
                account_ids=missing,
                )

        tx = Transaction(
            transaction_number="",
            date=ensure_utc(date) if date else utcnow(),
            description=description.strip(),
            type=tx_type,
            status=TransactionStatus.POSTED,
            reference_id=reference_id,
            reference_type=reference_type,
            created_by=actor,
            created_at=utcnow(),
            updated_at=utcnow(),
            )
        journal = [
            JournalEntry(
                transaction_id=0,
                line_no=line.line_no,
                account_id=line.account_id,
                account_name=accounts[line.account_id].name,
                debit=line.debit,
                credit=line.credit,
                memo=line.memo,
                )
            for line in lines
            ]

        if self.capabilities.atomic_writes:
            read, deltas = await self._post_atomic(tx, journal, accounts)
        else:
            read, deltas = await self._post_degraded(tx, journal, accounts)

        logger.info(
            "Transaction posted",
            transaction_id=read.id,
            transaction_number=read.transaction_number,
            type=read.type.value,
            amount=read.total_amount,
            created_by=actor,
            )

        event = EVTransactionPosted(
            transaction_id=read.id,
            transaction_number=read.transaction_number,
            date=read.date,
            description=read.description,
            type=read.type,
            amount=read.total_amount,
            account_deltas=[EVAccountDelta(account_id=k, delta=v) for k, v in deltas.items()],
            reference_id=read.reference_id,
            reference_type=read.reference_type,
            created_by=read.created_by,
            created_at=read.created_at,
            )
        await self._dispatch("transaction_posted", event, dict(deltas))
        return read

    async def _insert_header_and_lines(self, tx: Transaction, journal: List[JournalEntry]) -> None:
        tx.transaction_number = await self.sequences.next_transaction_number()
        self.session.add(tx)
        await self.session.flush()
        for entry in journal:
            entry.transaction_id = tx.id
            self.session.add(entry)
        await self.session.flush()

    async def _apply_line(self, entry: JournalEntry, account: Account, reverse: bool = False) -> Decimal:
        debit, credit = (entry.credit, entry.debit) if reverse else (entry.debit, entry.credit)
        return await self.accounts.apply_entry(entry.account_id, debit, credit, account_type=account.type)

    async def _post_atomic(self, tx, journal, accounts):
        deltas: Dict[int, Decimal] = defaultdict(Decimal)
        try:
            await self._insert_header_and_lines(tx, journal)
            for entry in journal:
                deltas[entry.account_id] += await self._apply_line(entry, accounts[entry.account_id])
            read = TXReadItem.from_db_model(tx, journal)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        return read, deltas

    async def _post_degraded(self, tx, journal, accounts):
        logger.warning(
            "atomic_writes_unavailable",
            operation="post_transaction",
            dialect=self.capabilities.dialect,
            detail=self.capabilities.detail,
            )
        deltas: Dict[int, Decimal] = defaultdict(Decimal)
        applied: List[str] = []
        try:
            await self._insert_header_and_lines(tx, journal)
            read = TXReadItem.from_db_model(tx, journal)
            await self.session.commit()
            applied.append(f"insert {tx.transaction_number}")

            for entry in journal:
                deltas[entry.account_id] += await self._apply_line(entry, accounts[entry.account_id])
                await self.session.commit()
                applied.append(f"line {entry.line_no} -> account {entry.account_id}")
        except Exception as e:
            await self.session.rollback()
            if not applied:
                raise
            logger.error(
                "partial_posting_failure",
                operation="post_transaction",
                transaction_number=tx.transaction_number,
                applied_steps=applied,
                error=str(e),
                )
            raise PartialWriteError(
                f"Posting of {tx.transaction_number} failed after {len(applied)} committed step(s); manual reconciliation required",
                applied_steps=applied,
                transaction_number=tx.transaction_number,
                ) from e
        return read, deltas

    # =========================================================================
    # VOID
    # =========================================================================

    async def void_transaction(self, transaction_id: int, actor: str) -> TXReadItem:
        """
        Void a posted transaction by reversing every line.

        Raises:
            NotFoundError: transaction absent
            ConflictError: already voided
            PartialWriteError: non-atomic store failed after a committed step
        """
        if not actor:
            raise LedgerValidationError("Voids require an actor")

        tx = await self._get_model(transaction_id)
        if tx is None:
            raise NotFoundError(f"Transaction {transaction_id} not found", transaction_id=transaction_id)
        if tx.status == TransactionStatus.VOIDED:
            raise ConflictError(f"Transaction {tx.transaction_number} is already voided", transaction_id=transaction_id)

        journal = await self._load_entries([tx.id])
        journal = journal.get(tx.id, [])
        # A void must reverse exactly what was posted, even on accounts deactivated since
        accounts = await self.accounts.resolve_accounts((e.account_id for e in journal), active_only=False)

        if self.capabilities.atomic_writes:
            read, deltas = await self._void_atomic(tx, journal, accounts)
        else:
            read, deltas = await self._void_degraded(tx, journal, accounts)

        audit_logger.warning(
            "Transaction voided",
            transaction_id=read.id,
            transaction_number=read.transaction_number,
            amount=read.total_amount,
            actor=actor,
            )

        event = EVTransactionVoided(
            transaction_id=read.id,
            transaction_number=read.transaction_number,
            amount=read.total_amount,
            account_deltas=[EVAccountDelta(account_id=k, delta=v) for k, v in deltas.items()],
            voided_by=actor,
            voided_at=read.voided_at or utcnow(),
            )
        await self._dispatch("transaction_voided", event)
        return read

    async def _mark_voided(self, tx: Transaction) -> None:
        now = utcnow()
        stmt = (
            update(Transaction)
            .where(Transaction.id == tx.id, Transaction.status == TransactionStatus.POSTED)
            .values(status=TransactionStatus.VOIDED, voided_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
            )
        result = await self.session.execute(stmt)
        if result.rowcount == 0:
            raise ConflictError(f"Transaction {tx.transaction_number} is already voided", transaction_id=tx.id)
        await self.session.refresh(tx)

    async def _void_atomic(self, tx, journal, accounts):
        deltas: Dict[int, Decimal] = defaultdict(Decimal)
        try:
            await self._mark_voided(tx)
            for entry in journal:
                deltas[entry.account_id] += await self._apply_line(entry, accounts[entry.account_id], reverse=True)
            read = TXReadItem.from_db_model(tx, journal)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        return read, deltas

    async def _void_degraded(self, tx, journal, accounts):
        logger.warning(
            "atomic_writes_unavailable",
            operation="void_transaction",
            dialect=self.capabilities.dialect,
            detail=self.capabilities.detail,
            )
        deltas: Dict[int, Decimal] = defaultdict(Decimal)
        applied: List[str] = []
        try:
            # Status first: a crash half-way leaves a VOIDED transaction that
            # cannot be voided (and reversed) a second time
            await self._mark_voided(tx)
            read = TXReadItem.from_db_model(tx, journal)
            await self.session.commit()
            applied.append(f"void {tx.transaction_number}")

            for entry in journal:
                deltas[entry.account_id] += await self._apply_line(entry, accounts[entry.account_id], reverse=True)
                await self.session.commit()
                applied.append(f"reverse line {entry.line_no} -> account {entry.account_id}")
        except Exception as e:
            await self.session.rollback()
            if not applied:
                raise
            logger.error(
                "partial_posting_failure",
                operation="void_transaction",
                transaction_number=tx.transaction_number,
                applied_steps=applied,
                error=str(e),
                )
            raise PartialWriteError(
                f"Void of {tx.transaction_number} failed after {len(applied)} committed step(s); manual reconciliation required",
                applied_steps=applied,
                transaction_number=tx.transaction_number,
                ) from e
        return read, deltas

    # =========================================================================
    # READ OPERATIONS
    # =========================================================================

    async def _get_model(self, transaction_id: int) -> Optional[Transaction]:
        return await self.session.get(Transaction, transaction_id, populate_existing=True)

    async def _load_entries(self, transaction_ids: Sequence[int]) -> Dict[int, List[JournalEntry]]:
        if not transaction_ids:
            return {}
        stmt = (
            select(JournalEntry)
            .where(JournalEntry.transaction_id.in_(transaction_ids))
            .order_by(JournalEntry.transaction_id, JournalEntry.line_no)
            )
        result = await self.session.execute(stmt)
        grouped: Dict[int, List[JournalEntry]] = defaultdict(list)
        for entry in result.scalars().all():
            grouped[entry.transaction_id].append(entry)
        return grouped

    async def _to_read_items(self, transactions: Sequence[Transaction]) -> List[TXReadItem]:
        entries = await self._load_entries([tx.id for tx in transactions])
        return [TXReadItem.from_db_model(tx, entries.get(tx.id, [])) for tx in transactions]

    def _posted_newest_first(self):
        return (
            select(Transaction)
            .where(Transaction.status == TransactionStatus.POSTED)
            .order_by(Transaction.date.desc(), Transaction.id.desc())
            )

    async def get_by_id(self, transaction_id: int) -> Optional[TXReadItem]:
        """Get transaction by ID (posted or voided)."""
        tx = await self._get_model(transaction_id)
        if tx is None:
            return None
        return (await self._to_read_items([tx]))[0]

    async def get_by_number(self, transaction_number: str) -> Optional[TXReadItem]:
        """Get transaction by its TXN-... number."""
        stmt = select(Transaction).where(Transaction.transaction_number == transaction_number)
        result = await self.session.execute(stmt.execution_options(populate_existing=True))
        tx = result.scalar_one_or_none()
        if tx is None:
            return None
        return (await self._to_read_items([tx]))[0]

    async def list_transactions(self, skip: int = 0, limit: int = 50) -> List[TXReadItem]:
        """Posted transactions, newest first."""
        stmt = self._posted_newest_first().offset(skip).limit(limit)
        result = await self.session.execute(stmt.execution_options(populate_existing=True))
        return await self._to_read_items(result.scalars().all())

    async def list_by_account(self, account_id: int, skip: int = 0, limit: int = 50) -> List[TXReadItem]:
        """Posted transactions with at least one line on account_id, newest first."""
        touching = select(JournalEntry.transaction_id).where(JournalEntry.account_id == account_id)
        stmt = self._posted_newest_first().where(Transaction.id.in_(touching)).offset(skip).limit(limit)
        result = await self.session.execute(stmt.execution_options(populate_existing=True))
        return await self._to_read_items(result.scalars().all())

    async def list_by_date_range(
        self,
        start: date_type,
        end: date_type,
        skip: int = 0,
        limit: int = 50,
        ) -> List[TXReadItem]:
        """
        Posted transactions whose date falls on a day in [start, end], newest first.

        Raises:
            LedgerValidationError: end before start
        """
        if isinstance(start, datetime):
            start = start.date()
        if isinstance(end, datetime):
            end = end.date()
        try:
            lower, upper = DateRangeModel(start=start, end=end).as_datetime_bounds()
        except ValueError as e:
            raise LedgerValidationError(str(e)) from e

        stmt = (
            self._posted_newest_first()
            .where(Transaction.date >= lower, Transaction.date < upper)
            .offset(skip)
            .limit(limit)
            )
        result = await self.session.execute(stmt.execution_options(populate_existing=True))
        return await self._to_read_items(result.scalars().all())

    # =========================================================================
    # HELPERS
    # =========================================================================

    @staticmethod
    def _parse_type(value) -> TransactionType:
        try:
            return parse_enum(TransactionType, value, "transaction type")
        except ValueError as e:
            raise LedgerValidationError(str(e), field="type") from e

    @staticmethod
    def _validate_lines(entries: Sequence[Any]) -> List[_Line]:
        """
        Normalize and check journal lines.

        Raises:
            LedgerValidationError: malformed line or amount, fewer than two lines,
                nothing to post
            ConflictError: debits != credits
        """
        if entries is None or len(entries) < 2:
            raise LedgerValidationError("A transaction needs at least two journal entries")

        lines: List[_Line] = []
        for line_no, raw in enumerate(entries, start=1):
            data = raw if isinstance(raw, Mapping) else raw.model_dump()
            account_id = data.get("account_id")
            if not isinstance(account_id, int) or isinstance(account_id, bool) or account_id <= 0:
                raise LedgerValidationError(f"Entry {line_no}: invalid account_id '{account_id}'")
            try:
                debit = truncate_to_db_precision(to_decimal(data.get("debit", ZERO) or ZERO), JournalEntry, "debit")
                credit = truncate_to_db_precision(to_decimal(data.get("credit", ZERO) or ZERO), JournalEntry, "credit")
            except ValueError as e:
                raise LedgerValidationError(f"Entry {line_no}: {e}") from e
            if debit < ZERO or credit < ZERO:
                raise LedgerValidationError(f"Entry {line_no}: debit and credit must be >= 0")
            lines.append(_Line(line_no, account_id, debit, credit, data.get("memo")))

        total_debit = sum((line.debit for line in lines), ZERO)
        total_credit = sum((line.credit for line in lines), ZERO)
        if total_debit != total_credit:
            raise ConflictError(
                f"Transaction is unbalanced: debits {total_debit} != credits {total_credit}",
                total_debit=total_debit,
                total_credit=total_credit,
                )
        if total_debit == ZERO:
            raise LedgerValidationError("Transaction amount must be greater than zero")
        return lines

    async def _dispatch(self, method: str, *args) -> None:
        """Hand post-commit work to the dispatcher; failures are logged, never raised."""
        if self.dispatcher is None:
            return
        handler = getattr(self.dispatcher, method)

        async def run() -> None:
            try:
                await handler(*args)
            except Exception as e:
                logger.error("Post-commit dispatch failed", handler=method, error=str(e))

        if self.schedule is not None:
            self.schedule(run)
            return
        await run()
