"""
Test Database Configuration

Manages test database setup for the ledger test suites.

Two kinds of databases are used:
- TEST_DATABASE_URL: the file the application itself points at in test
  mode (ledger_cli.py --test, main.py --test, test_runner.py db create)
- one throw-away SQLite file per test (create_test_engine), so account and
  transaction numbers always start from 1 and tests never see each other's rows
"""
import os
from pathlib import Path

from sqlalchemy.ext.asyncio import AsyncEngine

# Default test database URL (relative to project root)
DEFAULT_TEST_DATABASE_URL = "sqlite:///./backend/data/sqlite/test_ledger.db"

# Use environment override if present (allows CI or user to change path)
TEST_DATABASE_URL = os.environ.get("TEST_DATABASE_URL", DEFAULT_TEST_DATABASE_URL)

# Extract path from URL for file operations
# Handle both sqlite:///./path and sqlite:////absolute/path
if TEST_DATABASE_URL.startswith("sqlite:///"):
    db_path_str = TEST_DATABASE_URL.replace("sqlite:///./", "").replace("sqlite:///", "/")
else:
    db_path_str = TEST_DATABASE_URL

TEST_DB_PATH = Path(db_path_str)

# Project root and database directory
PROJECT_ROOT = Path(__file__).parent.parent.parent
DB_DIR = TEST_DB_PATH.parent


def setup_test_database():
    """
    Configure environment to use test database.
    Must be called BEFORE importing any app modules that read settings.

    Returns:
        Path: Path to test database
    """
    DB_DIR.mkdir(parents=True, exist_ok=True)

    # Mirrors the --test flag: get_settings() returns TEST_DATABASE_URL
    os.environ["LEDGERCORE_TEST_MODE"] = "1"
    os.environ["DATABASE_URL"] = TEST_DATABASE_URL
    os.environ["TEST_DATABASE_URL"] = TEST_DATABASE_URL

    # Test runs log to stdout only
    os.environ["LOG_TO_FILE"] = "false"

    return TEST_DB_PATH


def cleanup_test_database():
    """
    Remove test database after tests complete.
    """
    if TEST_DB_PATH.exists():
        TEST_DB_PATH.unlink()


def get_test_db_path() -> Path:
    """Get the path to test database."""
    return TEST_DB_PATH


async def create_test_engine(db_file: Path) -> AsyncEngine:
    """
    Async engine on a fresh SQLite file with every ledger table created.

    Args:
        db_file: Database file (normally under pytest's tmp_path)
    """
    from sqlmodel import SQLModel

    import backend.app.db.base  # noqa: F401  (registers the tables on SQLModel.metadata)
    from backend.app.db.session import get_async_engine

    engine = get_async_engine(f"sqlite:///{db_file}")
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    return engine
