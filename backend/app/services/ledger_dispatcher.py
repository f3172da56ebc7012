"""
Post-commit side effects of ledger writes.

After a posting is committed the dispatcher:
1. feeds each affected account's net movement to BudgetService.apply_spend
2. publishes transaction.posted

Both steps run on their own session (the request session may already be
closed when the dispatcher runs as a background task) and neither can undo
or fail the posting: every error is logged and dropped.
"""
from decimal import Decimal
from typing import Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backend.app.config import Settings, get_settings
from backend.app.logging_config import get_logger
from backend.app.schemas.events import EVTransactionPosted, EVTransactionVoided
from backend.app.services.budget_service import BudgetService
from backend.app.services.event_publisher import EventPublisher, get_event_publisher, publish_safely

logger = get_logger(__name__)


class PostingDispatcher:
    """
    Runs budget updates and event publication after commit.

    Args:
        session_factory: Creates the sessions used for budget updates
        publisher: Event destination (default from settings)
        settings: Application settings
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        publisher: Optional[EventPublisher] = None,
        settings: Optional[Settings] = None,
        ):
        self.session_factory = session_factory
        self.settings = settings or get_settings()
        self.publisher = publisher or get_event_publisher(self.settings)

    async def transaction_posted(self, event: EVTransactionPosted, deltas: Dict[int, Decimal]) -> None:
        """Apply budget spend for every moved account, then publish the posting."""
        moved = {account_id: delta for account_id, delta in deltas.items() if delta != Decimal("0")}

        if moved:
            async with self.session_factory() as session:
                budgets = BudgetService(session, publisher=self.publisher, settings=self.settings)
                for account_id, delta in moved.items():
                    try:
                        await budgets.apply_spend(account_id, delta)
                    except Exception as e:
                        await session.rollback()
                        logger.error(
                            "Budget spend update failed",
                            transaction_number=event.transaction_number,
                            account_id=account_id,
                            amount=delta,
                            error=str(e),
                            )

        await publish_safely(self.publisher, event)

    async def transaction_voided(self, event: EVTransactionVoided) -> None:
        """Publish the void. Budgets keep the spend of voided postings."""
        await publish_safely(self.publisher, event)
