"""
API v1 router.
Aggregates all v1 endpoints.
"""
from fastapi import APIRouter, Depends

from backend.app.api.v1.accounts import account_router
from backend.app.api.v1.budgets import budget_router
from backend.app.api.v1.deps import get_capabilities
from backend.app.api.v1.transactions import transaction_router
from backend.app.db.capabilities import StoreCapabilities
from backend.app.logging_config import get_logger

logger = get_logger(__name__)

router = APIRouter()

# Include sub-routers
router.include_router(account_router)
router.include_router(transaction_router)
router.include_router(budget_router)


@router.get("/health")
async def health_check(capabilities: StoreCapabilities = Depends(get_capabilities)):
    """
    Health check endpoint.
    Returns service status and the write mode in use.

    Returns:
        dict: Status and store capabilities
    """
    logger.info("Health check requested")
    return {
        "status": "ok",
        "store": {
            "dialect": capabilities.dialect,
            "atomic_writes": capabilities.atomic_writes,
            "source": capabilities.source,
            "detail": capabilities.detail,
            },
        }
