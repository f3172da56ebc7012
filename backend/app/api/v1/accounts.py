"""
Account API endpoints for LedgerCore.

Provides RESTful endpoints for the chart of accounts:
- POST /accounts: Create account (MANAGER, ADMIN)
- GET /accounts: List active accounts
- GET /accounts/default-revenue: Default revenue account
- GET /accounts/number/{n}, /accounts/user/{u}, /accounts/type/{t}: Lookups
- GET /accounts/{id}, /accounts/{id}/balance: Account and balance
- PATCH /accounts/{id}: Partial update (MANAGER, ADMIN)
- POST /accounts/{id}/adjust-balance: Balance override (ADMIN, audited)
- DELETE /accounts/{id}: Soft deactivation (ADMIN)

Ledger errors raised by the service are mapped to HTTP statuses by the
exception handlers registered in main.py.
"""
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query

from backend.app.api.v1.deps import Actor, get_actor, require_roles, get_account_service
from backend.app.db.models import UserRole
from backend.app.logging_config import get_logger
from backend.app.schemas.accounts import (
    ACCreateItem,
    ACUpdateItem,
    ACAdjustBalanceItem,
    ACReadItem,
    ACBalanceRead,
    )
from backend.app.services.account_service import AccountService

logger = get_logger(__name__)

account_router = APIRouter(prefix="/accounts", tags=["accounts"])

_writers = require_roles(UserRole.MANAGER, UserRole.ADMIN)
_admins = require_roles(UserRole.ADMIN)


# =============================================================================
# CREATE
# =============================================================================

@account_router.post("", response_model=ACReadItem, status_code=201)
async def create_account(
    item: ACCreateItem,
    actor: Actor = Depends(_writers),
    service: AccountService = Depends(get_account_service),
    ) -> ACReadItem:
    """
    Create an account.

    The account number is generated from the type (ASSET -> 1xxxx, ...).

    Raises:
        400: Unknown type/category, bad currency
        409: user_id already bound to an active account
    """
    logger.info("Creating account", name=item.name, type=item.type, actor=actor.user_id)
    return await service.create_account(**item.model_dump())


# =============================================================================
# READ
# =============================================================================

@account_router.get("", response_model=List[ACReadItem])
async def list_accounts(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
    actor: Actor = Depends(get_actor),
    service: AccountService = Depends(get_account_service),
    ) -> List[ACReadItem]:
    """List active accounts ordered by account number."""
    return await service.list_accounts(skip=skip, limit=limit)


@account_router.get("/default-revenue", response_model=ACReadItem)
async def get_default_revenue_account(
    actor: Actor = Depends(get_actor),
    service: AccountService = Depends(get_account_service),
    ) -> ACReadItem:
    """
    Default revenue account used for product sales.

    Raises:
        HTTPException 404: Not created yet (created at startup)
    """
    result = await service.get_default_revenue_account()
    if not result:
        raise HTTPException(status_code=404, detail="Default revenue account not found")
    return result


@account_router.get("/number/{account_number}", response_model=ACReadItem)
async def get_account_by_number(
    account_number: str,
    actor: Actor = Depends(get_actor),
    service: AccountService = Depends(get_account_service),
    ) -> ACReadItem:
    """Get an account by its number (e.g. 10001)."""
    result = await service.get_by_number(account_number)
    if not result:
        raise HTTPException(status_code=404, detail=f"Account {account_number} not found")
    return result


@account_router.get("/user/{user_id}", response_model=ACReadItem)
async def get_account_by_user(
    user_id: str,
    actor: Actor = Depends(get_actor),
    service: AccountService = Depends(get_account_service),
    ) -> ACReadItem:
    """Get the active account bound to an external user."""
    result = await service.get_by_user(user_id)
    if not result:
        raise HTTPException(status_code=404, detail=f"No active account for user '{user_id}'")
    return result


@account_router.get("/type/{account_type}", response_model=List[ACReadItem])
async def list_accounts_by_type(
    account_type: str,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
    actor: Actor = Depends(get_actor),
    service: AccountService = Depends(get_account_service),
    ) -> List[ACReadItem]:
    """
    List active accounts of one type.

    Raises:
        400: Unknown account type
    """
    return await service.list_by_type(account_type, skip=skip, limit=limit)


@account_router.get("/{account_id}", response_model=ACReadItem)
async def get_account(
    account_id: int,
    actor: Actor = Depends(get_actor),
    service: AccountService = Depends(get_account_service),
    ) -> ACReadItem:
    """
    Get a single account by ID.

    Raises:
        HTTPException 404: If account not found
    """
    result = await service.get_by_id(account_id)
    if not result:
        raise HTTPException(status_code=404, detail=f"Account {account_id} not found")
    return result


@account_router.get("/{account_id}/balance", response_model=ACBalanceRead)
async def get_account_balance(
    account_id: int,
    actor: Actor = Depends(get_actor),
    service: AccountService = Depends(get_account_service),
    ) -> ACBalanceRead:
    """Current balance of an account."""
    result = await service.get_balance(account_id)
    if not result:
        raise HTTPException(status_code=404, detail=f"Account {account_id} not found")
    return result


# =============================================================================
# UPDATE
# =============================================================================

@account_router.patch("/{account_id}", response_model=ACReadItem)
async def update_account(
    account_id: int,
    item: ACUpdateItem,
    actor: Actor = Depends(_writers),
    service: AccountService = Depends(get_account_service),
    ) -> ACReadItem:
    """
    Partially update an account (name, category, description, is_active).

    Raises:
        404: Account not found
        409: Deactivating with a non-zero balance
    """
    logger.info("Updating account", account_id=account_id, actor=actor.user_id)
    return await service.update_account(account_id, **item.model_dump(exclude_unset=True))


@account_router.post("/{account_id}/adjust-balance", response_model=ACReadItem)
async def adjust_account_balance(
    account_id: int,
    item: ACAdjustBalanceItem,
    actor: Actor = Depends(_admins),
    service: AccountService = Depends(get_account_service),
    ) -> ACReadItem:
    """
    Add a signed amount to the balance without a journal entry.

    Privileged and audited: logged with the caller and reason, and published
    as a balance.adjusted event.
    """
    return await service.adjust_balance(account_id, item.amount, actor=actor.user_id, reason=item.reason)


# =============================================================================
# DELETE
# =============================================================================

@account_router.delete("/{account_id}", response_model=ACReadItem)
async def deactivate_account(
    account_id: int,
    actor: Actor = Depends(_admins),
    service: AccountService = Depends(get_account_service),
    ) -> ACReadItem:
    """
    Soft-delete an account (is_active=False).

    Raises:
        404: Account not found
        409: Balance is not zero
    """
    logger.info("Deactivating account", account_id=account_id, actor=actor.user_id)
    return await service.deactivate_account(account_id)
