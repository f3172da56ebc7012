"""
Budget API endpoints for LedgerCore.

- POST /budgets: Create budget (MANAGER, ADMIN)
- GET /budgets: List budgets
- GET /budgets/active: Active budgets whose window contains today
- GET /budgets/account/{id}: Budgets of an account
- GET /budgets/{id}: Get budget
- PATCH /budgets/{id}: Partial update (MANAGER, ADMIN)
- DELETE /budgets/{id}: Soft deactivation (ADMIN)
"""
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query

from backend.app.api.v1.deps import Actor, get_actor, require_roles, get_budget_service
from backend.app.db.models import UserRole
from backend.app.logging_config import get_logger
from backend.app.schemas.budgets import BGCreateItem, BGUpdateItem, BGReadItem
from backend.app.services.budget_service import BudgetService

logger = get_logger(__name__)

budget_router = APIRouter(prefix="/budgets", tags=["budgets"])

_writers = require_roles(UserRole.MANAGER, UserRole.ADMIN)


@budget_router.post("", response_model=BGReadItem, status_code=201)
async def create_budget(
    item: BGCreateItem,
    actor: Actor = Depends(_writers),
    service: BudgetService = Depends(get_budget_service),
    ) -> BGReadItem:
    """
    Create a budget on an account.

    Raises:
        400: Unknown period or end_date before start_date
        404: Account not found
    """
    logger.info("Creating budget", name=item.name, account_id=item.account_id, actor=actor.user_id)
    return await service.create_budget(**item.model_dump())


@budget_router.get("", response_model=List[BGReadItem])
async def list_budgets(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
    actor: Actor = Depends(get_actor),
    service: BudgetService = Depends(get_budget_service),
    ) -> List[BGReadItem]:
    """List all budgets, newest window first."""
    return await service.list_budgets(skip=skip, limit=limit)


@budget_router.get("/active", response_model=List[BGReadItem])
async def list_active_budgets(
    actor: Actor = Depends(get_actor),
    service: BudgetService = Depends(get_budget_service),
    ) -> List[BGReadItem]:
    """Active budgets whose window contains today (UTC)."""
    return await service.list_active()


@budget_router.get("/account/{account_id}", response_model=List[BGReadItem])
async def list_budgets_by_account(
    account_id: int,
    actor: Actor = Depends(get_actor),
    service: BudgetService = Depends(get_budget_service),
    ) -> List[BGReadItem]:
    return await service.list_by_account(account_id)


@budget_router.get("/{budget_id}", response_model=BGReadItem)
async def get_budget(
    budget_id: int,
    actor: Actor = Depends(get_actor),
    service: BudgetService = Depends(get_budget_service),
    ) -> BGReadItem:
    """
    Get a single budget by ID.

    Raises:
        HTTPException 404: If budget not found
    """
    result = await service.get_by_id(budget_id)
    if not result:
        raise HTTPException(status_code=404, detail=f"Budget {budget_id} not found")
    return result


@budget_router.patch("/{budget_id}", response_model=BGReadItem)
async def update_budget(
    budget_id: int,
    item: BGUpdateItem,
    actor: Actor = Depends(_writers),
    service: BudgetService = Depends(get_budget_service),
    ) -> BGReadItem:
    """Partially update a budget; a new amount recomputes remaining."""
    return await service.update_budget(budget_id, **item.model_dump(exclude_unset=True))


@budget_router.delete("/{budget_id}", response_model=BGReadItem)
async def deactivate_budget(
    budget_id: int,
    actor: Actor = Depends(require_roles(UserRole.ADMIN)),
    service: BudgetService = Depends(get_budget_service),
    ) -> BGReadItem:
    """Deactivate a budget; it stops tracking spend."""
    logger.info("Deactivating budget", budget_id=budget_id, actor=actor.user_id)
    return await service.deactivate_budget(budget_id)
