"""Alembic migrations for the provisioning database.

The URL comes from ``-x sqlalchemy.url=...``, then alembic.ini, then
``GTM_INFRA_DB_URL`` via :class:`InfraSettings`. Async driver names are
swapped for their sync counterparts because migrations run synchronously.
"""

import sys
from logging.config import fileConfig
from pathlib import Path

from alembic import context
from sqlalchemy import create_engine, pool
from sqlalchemy.engine import make_url

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from gtm_infra.common.config import InfraSettings  # noqa: E402
from gtm_infra.common.database import ensure_sqlite_directory  # noqa: E402
from gtm_infra.common.models import Base  # noqa: E402
import gtm_infra.tiers.models  # noqa: E402,F401
import gtm_infra.provisions.models  # noqa: E402,F401

_SYNC_DRIVERS = {"sqlite+aiosqlite": "sqlite", "postgresql+asyncpg": "postgresql+psycopg2"}

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def migration_url() -> str:
    url = (
        context.get_x_argument(as_dictionary=True).get("sqlalchemy.url")
        or config.get_main_option("sqlalchemy.url")
        or InfraSettings().db_url
    )
    parsed = make_url(url)
    sync_driver = _SYNC_DRIVERS.get(parsed.drivername)
    if sync_driver:
        parsed = parsed.set(drivername=sync_driver)
    return parsed.render_as_string(hide_password=False)


def run_migrations_offline(url: str) -> None:
    context.configure(url=url, target_metadata=target_metadata, literal_binds=True)
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online(url: str) -> None:
    ensure_sqlite_directory(url)
    engine = create_engine(url, poolclass=pool.NullPool)
    with engine.connect() as connection:
        # SQLite cannot ALTER most columns in place.
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            render_as_batch=connection.dialect.name == "sqlite",
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline(migration_url())
else:
    run_migrations_online(migration_url())
