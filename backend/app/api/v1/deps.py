"""
Shared FastAPI dependencies for the v1 API.

Caller identity:
Authentication happens upstream. The gateway forwards the authenticated
user in X-User-Id and its roles in X-User-Roles (comma separated UserRole
values). A request without X-User-Id is rejected with 401; a request whose
roles do not include any of the roles an endpoint needs gets 403.

Service wiring:
Services are built per request on the request session. The event publisher,
the post-commit dispatcher and the store capabilities come from app.state
(set by the lifespan) and fall back to defaults when the lifespan did not
run (tests with ASGITransport).
"""
from dataclasses import dataclass
from typing import Callable, FrozenSet, Optional

from fastapi import BackgroundTasks, Depends, Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.db.capabilities import StoreCapabilities, get_store_capabilities
from backend.app.db.models import UserRole
from backend.app.db.session import async_session_factory, get_session_generator
from backend.app.logging_config import get_logger
from backend.app.services.account_service import AccountService
from backend.app.services.budget_service import BudgetService
from backend.app.services.event_publisher import EventPublisher, get_event_publisher
from backend.app.services.ledger_dispatcher import PostingDispatcher
from backend.app.services.transaction_service import TransactionService
from backend.app.utils.validation_utils import parse_enum

logger = get_logger(__name__)


# =============================================================================
# IDENTITY
# =============================================================================

@dataclass(frozen=True)
class Actor:
    """Authenticated caller as forwarded by the gateway."""
    user_id: str
    roles: FrozenSet[UserRole]

    def has_any(self, *roles: UserRole) -> bool:
        return bool(self.roles.intersection(roles))


def parse_roles(header_value: Optional[str]) -> FrozenSet[UserRole]:
    """Parse "MANAGER, admin" into {MANAGER, ADMIN}; unknown roles are ignored."""
    roles = set()
    for token in (header_value or "").split(","):
        if not token.strip():
            continue
        try:
            roles.add(parse_enum(UserRole, token, "role"))
        except ValueError:
            logger.warning("Ignoring unknown role", role=token.strip())
    return frozenset(roles)


async def get_actor(
    x_user_id: Optional[str] = Header(default=None),
    x_user_roles: Optional[str] = Header(default=None),
    ) -> Actor:
    """Resolve the caller from the gateway headers (401 when missing)."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Missing caller identity (X-User-Id)")
    return Actor(user_id=x_user_id.strip(), roles=parse_roles(x_user_roles))


def require_roles(*roles: UserRole) -> Callable:
    """
    Dependency factory: the caller must hold at least one of roles.

    Usage:
        actor: Actor = Depends(require_roles(UserRole.ADMIN))
    """

    async def _dependency(actor: Actor = Depends(get_actor)) -> Actor:
        if not actor.has_any(*roles):
            raise HTTPException(
                status_code=403,
                detail=f"Requires one of the roles: {', '.join(r.value for r in roles)}",
                )
        return actor

    return _dependency


# =============================================================================
# INFRASTRUCTURE
# =============================================================================

def get_publisher(request: Request) -> EventPublisher:
    publisher = getattr(request.app.state, "event_publisher", None)
    return publisher or get_event_publisher()


def get_dispatcher(request: Request, publisher: EventPublisher = Depends(get_publisher)) -> PostingDispatcher:
    dispatcher = getattr(request.app.state, "dispatcher", None)
    return dispatcher or PostingDispatcher(async_session_factory, publisher=publisher)


async def get_capabilities(
    request: Request,
    session: AsyncSession = Depends(get_session_generator),
    ) -> StoreCapabilities:
    capabilities = getattr(request.app.state, "store_capabilities", None)
    if capabilities is not None:
        return capabilities
    return await get_store_capabilities(session.bind)


# =============================================================================
# SERVICES
# =============================================================================

def get_account_service(
    session: AsyncSession = Depends(get_session_generator),
    publisher: EventPublisher = Depends(get_publisher),
    ) -> AccountService:
    return AccountService(session, publisher=publisher)


def get_budget_service(
    session: AsyncSession = Depends(get_session_generator),
    publisher: EventPublisher = Depends(get_publisher),
    ) -> BudgetService:
    return BudgetService(session, publisher=publisher)


def get_transaction_service(
    background_tasks: BackgroundTasks,
    session: AsyncSession = Depends(get_session_generator),
    capabilities: StoreCapabilities = Depends(get_capabilities),
    dispatcher: PostingDispatcher = Depends(get_dispatcher),
    ) -> TransactionService:
    """Post-commit work runs as a background task after the response is sent."""
    return TransactionService(
        session,
        capabilities=capabilities,
        dispatcher=dispatcher,
        schedule=background_tasks.add_task,
        )
