"""Alembic environment for the santa_draw schema."""

from __future__ import annotations

import os

from alembic import context
from dotenv import find_dotenv, load_dotenv
from sqlalchemy import create_engine, pool

from santa_draw.db import Base

load_dotenv(find_dotenv(usecwd=True))

target_metadata = Base.metadata


def _database_url() -> str:
    url = os.getenv("DATABASE_URL") or context.config.get_main_option("sqlalchemy.url")
    if not url:
        raise ValueError("DATABASE_URL is required. Set it in the environment or .env file.")
    return url


def run_migrations_offline() -> None:
    context.configure(
        url=_database_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = create_engine(_database_url(), poolclass=pool.NullPool)

    with connectable.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
