# migrations/env.py
import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

from snapybara.core.config import get_settings
from snapybara.models import Base  # registers every table on Base.metadata

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata

_ASYNC_OR_LEGACY_SCHEMES = (
    "postgresql+asyncpg://",
    "postgresql+psycopg2://",
    "postgresql://",
    "postgres://",
)


def _migration_url() -> str:
    """ALEMBIC_DATABASE_URL wins; otherwise the app's own DATABASE_URL setting."""
    url = os.getenv("ALEMBIC_DATABASE_URL") or get_settings().database_url
    # Migrations run synchronously through psycopg
    for scheme in _ASYNC_OR_LEGACY_SCHEMES:
        if url.startswith(scheme):
            return url.replace(scheme, "postgresql+psycopg://", 1)
    return url


def _configure(**kwargs) -> None:
    context.configure(
        target_metadata=target_metadata,
        compare_type=True,
        compare_server_default=True,
        **kwargs,
    )


def run_migrations_offline():
    _configure(url=_migration_url(), literal_binds=True)
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online():
    section = config.get_section(config.config_ini_section) or {}
    section["sqlalchemy.url"] = _migration_url()
    connectable = engine_from_config(section, prefix="sqlalchemy.", poolclass=pool.NullPool)

    with connectable.connect() as connection:
        _configure(connection=connection)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
