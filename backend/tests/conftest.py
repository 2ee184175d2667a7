from datetime import date

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from pulse.database import configure_sqlite, get_db
from pulse.main import create_app
from pulse.models.base import Base
from pulse.streams.models import DeliveryStream, Repository, Sprint, StatusMapping, TechStream

# Imported for their side effect of registering tables on Base.metadata
import pulse.correlation.models  # noqa: F401
import pulse.events.models  # noqa: F401
import pulse.forecast.models  # noqa: F401
import pulse.metrics.models  # noqa: F401
import pulse.platform_settings.models  # noqa: F401
import pulse.queue.models  # noqa: F401

STATUS_MAPPINGS = [
    # (status, stage, is_active_work)
    ("Backlog", "backlog", False),
    ("Analysis", "ba", True),
    ("In Progress", "dev", True),
    ("In Review", "code_review", False),
    ("QA", "qa", True),
    ("UAT", "uat", False),
    ("Done", "done", False),
]


@pytest_asyncio.fixture
async def engine(tmp_path):
    test_engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)
    configure_sqlite(test_engine)
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app = create_app()
    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c


@pytest_asyncio.fixture
async def streams(db: AsyncSession):
    """One delivery stream, one tech stream with a GitHub install, one repository, and status mappings for X and PAY."""
    payments = DeliveryStream(name="payments", display_name="Payments")
    platform = TechStream(name="platform", display_name="Platform", github_org="acme", github_install_id="1001")
    db.add_all([payments, platform])
    await db.flush()

    repo = Repository(
        tech_stream_id=platform.id,
        github_org="acme",
        github_repo_name="payments-api",
        full_name="acme/payments-api",
        deploy_target="payments-api",
    )
    db.add(repo)

    for project_key in ("X", "PAY"):
        for order, (status_name, stage, active) in enumerate(STATUS_MAPPINGS):
            db.add(
                StatusMapping(
                    project_key=project_key,
                    status_name=status_name,
                    pipeline_stage=stage,
                    is_active_work=active,
                    display_order=order,
                )
            )
    await db.commit()

    return {
        "delivery_stream_id": payments.id,
        "tech_stream_id": platform.id,
        "repo_id": repo.id,
    }


@pytest_asyncio.fixture
async def active_sprint(db: AsyncSession, streams: dict):
    sprint = Sprint(
        delivery_stream_id=streams["delivery_stream_id"],
        name="Sprint 42",
        state="active",
        start_date=date(2024, 5, 6),
        end_date=date(2024, 5, 17),
    )
    db.add(sprint)
    await db.commit()
    return sprint
