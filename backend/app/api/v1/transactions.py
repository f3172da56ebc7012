"""
Transaction API endpoints for LedgerCore.

Provides RESTful endpoints for journal transactions:
- POST /transactions: Post a balanced transaction (MANAGER, ADMIN)
- GET /transactions: List posted transactions, newest first
- GET /transactions/account/{id}: Posted transactions touching an account
- GET /transactions/date-range: Posted transactions in [start_date, end_date]
- GET /transactions/number/{n}: Lookup by transaction number
- GET /transactions/{id}: Get a transaction (posted or voided)
- POST /transactions/{id}/void: Void a transaction (ADMIN)

Budget updates and outbound events run as background tasks after the
response; their failures never change the response.
"""
from datetime import date as date_type
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query

from backend.app.api.v1.deps import Actor, get_actor, require_roles, get_transaction_service
from backend.app.db.models import UserRole
from backend.app.logging_config import get_logger
from backend.app.schemas.transactions import TXCreateItem, TXReadItem
from backend.app.services.transaction_service import TransactionService

logger = get_logger(__name__)

transaction_router = APIRouter(prefix="/transactions", tags=["transactions"])


# =============================================================================
# CREATE
# =============================================================================

@transaction_router.post("", response_model=TXReadItem, status_code=201)
async def post_transaction(
    item: TXCreateItem,
    actor: Actor = Depends(require_roles(UserRole.MANAGER, UserRole.ADMIN)),
    service: TransactionService = Depends(get_transaction_service),
    ) -> TXReadItem:
    """
    Post a double-entry transaction.

    created_by is the caller's X-User-Id.

    Raises:
        400: Unknown type, malformed amounts, unknown or inactive account
        409: Debits and credits differ
        500: Partial write on a store without multi-record atomicity
    """
    logger.info("Posting transaction", type=item.type, entries=len(item.entries), actor=actor.user_id)
    return await service.post_transaction(
        description=item.description,
        entries=item.entries,
        type=item.type,
        actor=actor.user_id,
        date=item.date,
        reference_id=item.reference_id,
        reference_type=item.reference_type,
        )


# =============================================================================
# READ
# =============================================================================

@transaction_router.get("", response_model=List[TXReadItem])
async def list_transactions(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
    actor: Actor = Depends(get_actor),
    service: TransactionService = Depends(get_transaction_service),
    ) -> List[TXReadItem]:
    """List posted transactions, newest first."""
    return await service.list_transactions(skip=skip, limit=limit)


@transaction_router.get("/account/{account_id}", response_model=List[TXReadItem])
async def list_transactions_by_account(
    account_id: int,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
    actor: Actor = Depends(get_actor),
    service: TransactionService = Depends(get_transaction_service),
    ) -> List[TXReadItem]:
    """List posted transactions with at least one line on the account."""
    return await service.list_by_account(account_id, skip=skip, limit=limit)


@transaction_router.get("/date-range", response_model=List[TXReadItem])
async def list_transactions_by_date_range(
    start_date: date_type = Query(..., description="First day (inclusive)"),
    end_date: date_type = Query(..., description="Last day (inclusive)"),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
    actor: Actor = Depends(get_actor),
    service: TransactionService = Depends(get_transaction_service),
    ) -> List[TXReadItem]:
    """
    List posted transactions dated within [start_date, end_date].

    Raises:
        400: end_date before start_date
    """
    return await service.list_by_date_range(start_date, end_date, skip=skip, limit=limit)


@transaction_router.get("/number/{transaction_number}", response_model=TXReadItem)
async def get_transaction_by_number(
    transaction_number: str,
    actor: Actor = Depends(get_actor),
    service: TransactionService = Depends(get_transaction_service),
    ) -> TXReadItem:
    """Get a transaction by its TXN-YYYYMMDD-NNNNNN number."""
    result = await service.get_by_number(transaction_number)
    if not result:
        raise HTTPException(status_code=404, detail=f"Transaction {transaction_number} not found")
    return result


@transaction_router.get("/{transaction_id}", response_model=TXReadItem)
async def get_transaction(
    transaction_id: int,
    actor: Actor = Depends(get_actor),
    service: TransactionService = Depends(get_transaction_service),
    ) -> TXReadItem:
    """
    Get a single transaction by ID.

    Raises:
        HTTPException 404: If transaction not found
    """
    result = await service.get_by_id(transaction_id)
    if not result:
        raise HTTPException(status_code=404, detail=f"Transaction {transaction_id} not found")
    return result


# =============================================================================
# VOID
# =============================================================================

@transaction_router.post("/{transaction_id}/void", response_model=TXReadItem)
async def void_transaction(
    transaction_id: int,
    actor: Actor = Depends(require_roles(UserRole.ADMIN)),
    service: TransactionService = Depends(get_transaction_service),
    ) -> TXReadItem:
    """
    Void a posted transaction, reversing every line.

    Raises:
        404: Transaction not found
        409: Already voided
    """
    logger.info("Voiding transaction", transaction_id=transaction_id, actor=actor.user_id)
    return await service.void_transaction(transaction_id, actor=actor.user_id)
