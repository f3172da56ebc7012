"""
Store capability detection.

Postings and voids touch several rows (transaction header, journal lines,
account balances). Whether those writes can be grouped into one
all-or-nothing unit depends on how the store is deployed, not just on the
driver:

- SQLite: atomic unless the journal is disabled (PRAGMA journal_mode=OFF),
  in which case ROLLBACK is undefined
- MySQL/MariaDB: only when the default storage engine is transactional (InnoDB)
- PostgreSQL: always

The probe runs once per engine (at startup, or on first use) and the result
is cached. ATOMIC_WRITES=on/off skips the probe entirely. Services never
probe by themselves: they receive a StoreCapabilities and branch on it.
"""
from dataclasses import dataclass
from typing import Optional, Tuple
from weakref import WeakKeyDictionary

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from backend.app.config import AtomicWritesMode, get_settings
from backend.app.logging_config import get_logger

logger = get_logger(__name__)

_TRANSACTIONAL_MYSQL_ENGINES = {"innodb", "ndbcluster"}


@dataclass(frozen=True)
class StoreCapabilities:
    """
    Result of the capability probe.

    Attributes:
        atomic_writes: Multi-record writes can be committed or rolled back as one unit
        dialect: SQLAlchemy dialect name of the store
        source: "probe" or "config" (forced via ATOMIC_WRITES)
        detail: Human-readable reason (journal mode, storage engine, probe error)
    """
    atomic_writes: bool
    dialect: str
    source: str
    detail: Optional[str] = None


_cache: "WeakKeyDictionary[object, StoreCapabilities]" = WeakKeyDictionary()


async def detect_atomic_writes(conn: AsyncConnection) -> Tuple[bool, str]:
    """
    Ask the store whether it can group writes atomically.

    Returns:
        (atomic_writes, detail)
    """
    dialect = conn.dialect.name

    if dialect == "sqlite":
        journal_mode = (await conn.execute(text("PRAGMA journal_mode"))).scalar()
        journal_mode = str(journal_mode).lower()
        return journal_mode != "off", f"journal_mode={journal_mode}"

    if dialect in ("mysql", "mariadb"):
        storage_engine = (await conn.execute(text("SELECT @@default_storage_engine"))).scalar()
        storage_engine = str(storage_engine).lower()
        return storage_engine in _TRANSACTIONAL_MYSQL_ENGINES, f"storage_engine={storage_engine}"

    if dialect == "postgresql":
        return True, "postgresql"

    return False, f"unknown dialect '{dialect}'"


async def probe_store_capabilities(
    engine: AsyncEngine,
    mode: Optional[AtomicWritesMode] = None,
    ) -> StoreCapabilities:
    """
    Probe engine without caching the answer.

    A failing probe is not fatal: the store is treated as non-atomic and the
    failure is logged.
    """
    mode = mode or get_settings().ATOMIC_WRITES
    dialect = engine.dialect.name

    if mode == AtomicWritesMode.ON:
        return StoreCapabilities(atomic_writes=True, dialect=dialect, source="config", detail="ATOMIC_WRITES=on")
    if mode == AtomicWritesMode.OFF:
        return StoreCapabilities(atomic_writes=False, dialect=dialect, source="config", detail="ATOMIC_WRITES=off")

    try:
        async with engine.connect() as conn:
            atomic, detail = await detect_atomic_writes(conn)
    except SQLAlchemyError as e:
        logger.warning("Store capability probe failed, assuming no multi-record atomicity", dialect=dialect, error=str(e))
        return StoreCapabilities(atomic_writes=False, dialect=dialect, source="probe", detail=f"probe failed: {e}")

    return StoreCapabilities(atomic_writes=atomic, dialect=dialect, source="probe", detail=detail)


async def get_store_capabilities(
    engine: AsyncEngine,
    mode: Optional[AtomicWritesMode] = None,
    refresh: bool = False,
    ) -> StoreCapabilities:
    """
    Cached capability lookup for engine.

    Args:
        engine: Async engine to probe
        mode: Override of settings.ATOMIC_WRITES
        refresh: Drop the cached answer and probe again
    """
    key = engine.sync_engine
    if not refresh and key in _cache:
        return _cache[key]

    capabilities = await probe_store_capabilities(engine, mode)
    _cache[key] = capabilities

    log = logger.info if capabilities.atomic_writes else logger.warning
    log(
        "Store capabilities detected",
        dialect=capabilities.dialect,
        atomic_writes=capabilities.atomic_writes,
        source=capabilities.source,
        detail=capabilities.detail,
        )
    return capabilities
