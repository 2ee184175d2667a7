import sqlalchemy.event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from pulse.config import settings


def configure_sqlite(async_engine: AsyncEngine) -> None:
    """WAL + busy timeout, and let SQLAlchemy own BEGIN so SAVEPOINTs behave."""

    @sqlalchemy.event.listens_for(async_engine.sync_engine, "connect")
    def _set_sqlite_pragmas(dbapi_conn, _connection_record):
        dbapi_conn.isolation_level = None
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA busy_timeout=5000")
        cursor.close()

    @sqlalchemy.event.listens_for(async_engine.sync_engine, "begin")
    def _begin(conn):
        conn.exec_driver_sql("BEGIN")


engine = create_async_engine(settings.DATABASE_URL, echo=False)
if engine.dialect.name == "sqlite":
    configure_sqlite(engine)

async_session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_db():
    async with async_session_factory() as session:
        yield session
