import sys
from logging.config import fileConfig
from pathlib import Path

from alembic import context
from sqlalchemy import engine_from_config
from sqlalchemy import pool

# Add the project root to sys.path so "backend.app" is importable
sys.path.insert(0, str(Path(__file__).resolve().parent.parent.parent))

# Import SQLModel base (registers every ledger table) and config
from backend.app.db.base import SQLModel
from backend.app.config import get_settings

config = context.config


def _url_from_x_args():
    """sqlalchemy.url passed as: alembic -x sqlalchemy.url=... upgrade head"""
    x_args = getattr(getattr(config, "cmd_opts", None), "x", None) or []
    for x_arg in x_args:
        if x_arg.startswith("sqlalchemy.url="):
            return x_arg.split("=", 1)[1]
    return None


db_url = _url_from_x_args()
if db_url:
    # Use URL passed from command line (e.g., for tests)
    print(f"[Alembic env.py] Using DATABASE_URL from -x parameter: {db_url}")
else:
    # Use URL from config.py (reads from environment/env file, honours test mode)
    db_url = get_settings().DATABASE_URL
    print(f"[Alembic env.py] Using DATABASE_URL from config: {db_url}")

# Migrations always run on the sync driver
config.set_main_option("sqlalchemy.url", db_url.replace("sqlite+aiosqlite://", "sqlite://"))

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = SQLModel.metadata


def run_migrations_offline() -> None:
    """Emit the migration SQL without connecting (alembic upgrade --sql)."""
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        render_as_batch=True,  # Enable batch mode for SQLite
        )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations against a live connection."""
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
        )

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            render_as_batch=True,  # Enable batch mode for SQLite
            compare_type=True,
            )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
