"""
Alembic environment for the resume schema.
The database URL comes from jobtracker settings (DATABASE_URL / .env), not alembic.ini.
"""
import sys
from logging.config import fileConfig
from pathlib import Path

# Repository root (parent of jobtracker/) must be importable when alembic runs from jobtracker/
sys.path.insert(0, str(Path(__file__).resolve().parents[2]))

from alembic import context
from sqlalchemy import create_engine, pool

from jobtracker.app.core.config import settings
from jobtracker.app.db.base import Base

# Register users, resumes, job_applications on Base.metadata
import jobtracker.app.models  # noqa: F401

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata
database_url = settings.database_url
is_sqlite = database_url.startswith("sqlite")


def _context_options() -> dict:
    return {
        "target_metadata": target_metadata,
        "compare_type": True,
        # SQLite cannot ALTER constraints in place
        "render_as_batch": is_sqlite,
    }


def run_migrations_offline() -> None:
    """Emit SQL for the configured database without connecting."""
    context.configure(
        url=database_url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_context_options(),
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connect_args = {"check_same_thread": False} if is_sqlite else {}
    connectable = create_engine(database_url, poolclass=pool.NullPool, connect_args=connect_args)
    with connectable.connect() as connection:
        context.configure(connection=connection, **_context_options())
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
