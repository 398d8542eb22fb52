"""Alembic environment for the hub schema.

Migrations run on the same engine the application builds, so SQLite gets
foreign keys and WAL exactly as at runtime. On SQLite, ALTERs go through
batch mode since the dialect cannot alter constraints in place.
"""
from logging.config import fileConfig
from alembic import context

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from hub.config import settings
from hub.database import Base, build_engine

# Registers every table on Base.metadata for autogenerate
import hub.models  # noqa: F401

config = context.config
database_url = config.get_main_option("sqlalchemy.url") or settings.DATABASE_URL

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata
is_sqlite = database_url.startswith("sqlite")


def run_migrations_offline() -> None:
    """Emit the migration SQL for DATABASE_URL without connecting."""
    context.configure(
        url=database_url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        render_as_batch=is_sqlite,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    engine = build_engine(database_url)
    try:
        with engine.connect() as connection:
            context.configure(
                connection=connection,
                target_metadata=target_metadata,
                compare_type=True,
                render_as_batch=is_sqlite,
            )
            with context.begin_transaction():
                context.run_migrations()
    finally:
        engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
