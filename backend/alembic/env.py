import asyncio
from logging.config import fileConfig

from sqlalchemy import pool
from sqlalchemy.ext.asyncio import async_engine_from_config

from alembic import context

from pulse.config import settings
from pulse.models.base import Base
from pulse.streams.models import DeliveryStream, TechStream, Repository, StatusMapping, Sprint, SprintSnapshot, PublicHoliday  # noqa: F401
from pulse.events.models import WorkItemEvent, DefectEvent, PrEvent, CicdEvent, DeploymentRecord, IncidentEvent  # noqa: F401
from pulse.queue.models import QueuedEvent  # noqa: F401
from pulse.metrics.models import WorkItemCycle, PrCycle  # noqa: F401
from pulse.forecast.models import ForecastSnapshot  # noqa: F401
from pulse.correlation.models import CrossStreamCorrelation  # noqa: F401
from pulse.platform_settings.models import PlatformSetting  # noqa: F401

config = context.config
config.set_main_option("sqlalchemy.url", settings.DATABASE_URL)

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        render_as_batch=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection):
    context.configure(connection=connection, target_metadata=target_metadata, render_as_batch=True)
    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations():
    connectable = async_engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)
    await connectable.dispose()


def run_migrations_online() -> None:
    asyncio.run(run_async_migrations())


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
