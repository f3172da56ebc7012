"""
Application configuration module.
Loads environment variables and provides application-wide settings.
"""
import os
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import ConfigDict
from pydantic_settings import BaseSettings

# Get project root (two levels up from this file)
PROJECT_ROOT = Path(__file__).parent.parent.parent

# Global flag to indicate test mode (set via --test flag or LEDGERCORE_TEST_MODE env var)
_test_mode = os.environ.get("LEDGERCORE_TEST_MODE", "").lower() in ("1", "true", "yes")


def set_test_mode(enabled: bool = True):
    """
    Enable/disable test mode globally.
    When enabled, DATABASE_URL will automatically use TEST_DATABASE_URL.

    Args:
        enabled: True to enable test mode, False to disable
    """
    global _test_mode
    _test_mode = enabled
    os.environ["LEDGERCORE_TEST_MODE"] = "1" if enabled else "0"


def is_test_mode() -> bool:
    """Check if test mode is enabled."""
    return _test_mode


class AssetSignConvention(str, Enum):
    """
    How debits and credits move the balance of ASSET accounts.

    - STANDARD: debit increases, credit decreases (debit - credit)
    - LEGACY: credit - debit, the same formula used for LIABILITY/EQUITY/REVENUE.
      Kept for deployments migrating balances computed that way.
    """
    STANDARD = "STANDARD"
    LEGACY = "LEGACY"


class AtomicWritesMode(str, Enum):
    """
    Multi-record atomicity policy for postings and voids.

    - AUTO: probe the store once and cache the answer
    - ON / OFF: skip the probe and force the answer
    """
    AUTO = "auto"
    ON = "on"
    OFF = "off"


class BudgetAlertMode(str, Enum):
    """
    When a "budget exceeded" event is emitted.

    - EVERY_POSTING: on every spend that leaves spent > amount
    - ON_TRANSITION: only when the budget goes from within-limit to exceeded
    """
    EVERY_POSTING = "EVERY_POSTING"
    ON_TRANSITION = "ON_TRANSITION"


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables or .env file.
    (Note: Environment variables take precedence over .env file)
    """
    # Database
    DATABASE_URL: str = "sqlite:///./backend/data/sqlite/ledger.db"
    TEST_DATABASE_URL: str = "sqlite:///./backend/data/sqlite/test_ledger.db"

    # API
    API_V1_PREFIX: str = "/api/v1"
    PROJECT_NAME: str = "LedgerCore"
    VERSION: str = "0.1.0"

    # Server
    PORT: int = 8000
    TEST_PORT: int = 8001

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_TO_FILE: bool = True

    # CORS (for frontend development)
    BACKEND_CORS_ORIGINS: list[str] = ["http://localhost:3000", "http://localhost:5173"]

    # Ledger behaviour
    DEFAULT_CURRENCY: str = "USD"  # ISO 4217 currency code
    ASSET_SIGN_CONVENTION: AssetSignConvention = AssetSignConvention.STANDARD
    ATOMIC_WRITES: AtomicWritesMode = AtomicWritesMode.AUTO
    BUDGET_ALERT_MODE: BudgetAlertMode = BudgetAlertMode.EVERY_POSTING
    DEFAULT_REVENUE_ACCOUNT_NAME: str = "Product Sales Revenue"

    # Outbound events (None = log only)
    EVENTS_WEBHOOK_URL: Optional[str] = None
    EVENTS_TIMEOUT_SECONDS: float = 5.0

    model_config = ConfigDict(
        env_file=str(PROJECT_ROOT / ".env"),
        case_sensitive=True,
        env_file_encoding='utf-8',
        extra="ignore",
        )


def get_settings() -> Settings:
    """
    Get settings instance.

    In test mode, DATABASE_URL is automatically overridden with TEST_DATABASE_URL.

    Returns:
        Settings: Application settings
    """
    settings = Settings()

    # Override DATABASE_URL if in test mode
    if is_test_mode():
        settings.DATABASE_URL = settings.TEST_DATABASE_URL

    return settings
