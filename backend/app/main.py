"""
LedgerCore FastAPI application.
Main entry point for the backend API.
"""
import subprocess
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError

from backend.app.api.v1.router import router as api_v1_router
from backend.app.config import get_settings, set_test_mode, is_test_mode
from backend.app.db.capabilities import get_store_capabilities
from backend.app.db.session import async_engine, async_session_factory, get_sync_engine
from backend.app.logging_config import configure_logging, get_logger
from backend.app.services.account_service import AccountService
from backend.app.services.errors import LedgerError
from backend.app.services.event_publisher import get_event_publisher
from backend.app.services.ledger_dispatcher import PostingDispatcher

# Check for --test flag in command line arguments
# This must be done before any imports that might use settings
if "--test" in sys.argv:
    set_test_mode(True)
    print("[LedgerCore] Test mode enabled (--test flag detected)")
    sys.argv.remove("--test")  # Remove flag so uvicorn doesn't complain

# Get settings after test mode is set
settings = get_settings()

# Configure logging with settings
configure_logging(settings.LOG_LEVEL, enable_file_logging=settings.LOG_TO_FILE)
logger = get_logger(__name__)

PROJECT_ROOT = Path(__file__).parent.parent.parent
REQUIRED_TABLES = {"accounts", "ledger_transactions", "journal_entries", "budgets", "sequence_counters"}


def ensure_database_exists():
    """
    Ensure the database exists and is migrated.
    If any ledger table is missing, run Alembic migrations automatically.

    This function is used by:
    - Backend server on startup (via lifespan)
    - ledger_cli.py init-defaults
    """
    # Get settings at call time to respect test mode
    settings = get_settings()

    needs_migration = False
    engine = get_sync_engine(settings.DATABASE_URL)
    try:
        existing = set(inspect(engine).get_table_names())
        missing = REQUIRED_TABLES - existing
        if missing:
            logger.warning("Database schema incomplete, running migrations", missing_tables=sorted(missing))
            needs_migration = True
        else:
            logger.info(f"Database initialized with {len(existing)} tables")
    except SQLAlchemyError as e:
        logger.warning(f"Database could not be inspected, running migrations: {e}")
        needs_migration = True
    finally:
        engine.dispose()

    if needs_migration:
        # Run Alembic migrations
        try:
            alembic_ini = PROJECT_ROOT / "backend" / "alembic.ini"

            logger.info("Running Alembic migrations...")
            result = subprocess.run(
                ["alembic", "-c", str(alembic_ini), "upgrade", "head"],
                cwd=PROJECT_ROOT,
                capture_output=True,
                text=True,
                )

            if result.returncode == 0:
                logger.info("Database created and migrated successfully")
            else:
                logger.error(
                    "Failed to create database",
                    stderr=result.stderr
                    )
                sys.exit(1)

        except OSError as e:
            logger.error("Error creating database", error=str(e))
            sys.exit(1)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan context manager.

    Startup:
    1. Migrate the database if needed
    2. Probe the store once and cache its capabilities
    3. Build the event publisher and post-commit dispatcher
    4. Make sure the default revenue account exists
    """
    # Startup
    logger.info(
        "Starting LedgerCore",
        version=settings.VERSION,
        database_url=settings.DATABASE_URL.split("///")[-1],  # Hide full path in logs
        test_mode=is_test_mode(),
        )

    ensure_database_exists()

    app.state.store_capabilities = await get_store_capabilities(async_engine, settings.ATOMIC_WRITES)
    app.state.event_publisher = get_event_publisher(settings)
    app.state.dispatcher = PostingDispatcher(async_session_factory, publisher=app.state.event_publisher, settings=settings)

    async with async_session_factory() as session:
        revenue = await AccountService(session, publisher=app.state.event_publisher, settings=settings).ensure_default_revenue_account()
    logger.info("Default revenue account ready", account_number=revenue.account_number)

    yield
    # Shutdown
    await async_engine.dispose()
    logger.info("Shutting down LedgerCore")


# Create FastAPI app
app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
    docs_url=f"{settings.API_V1_PREFIX}/docs",
    redoc_url=f"{settings.API_V1_PREFIX}/redoc",
    lifespan=lifespan,
    )

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    )


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    """Map ledger errors to {"detail", "error"} responses with the error's status code."""
    if exc.status_code >= 500:
        logger.error("Ledger error", path=request.url.path, error=type(exc).__name__, detail=exc.message)
    else:
        logger.info("Request rejected", path=request.url.path, error=type(exc).__name__, detail=exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "error": type(exc).__name__},
        )


# Mount API v1 router
app.include_router(api_v1_router, prefix=settings.API_V1_PREFIX)


@app.get("/")
async def root():
    """
    Root endpoint.
    Provides basic API information.
    """
    return {
        "name": settings.PROJECT_NAME,
        "version": settings.VERSION,
        "docs": f"{settings.API_V1_PREFIX}/docs",
        }
