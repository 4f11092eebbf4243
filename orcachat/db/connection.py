from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine,async_sessionmaker,AsyncSession
from sqlalchemy.pool import NullPool
from sqlmodel import SQLModel
from orcachat.config.settings import config_settings
from orcachat.db.utils import SQLITE_BEGIN_OPTION, _normalize_db_url

DATABASE_URL=_normalize_db_url(config_settings.DATABASE_URL)


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        # one aiosqlite connection per session
        return {"poolclass": NullPool}
    return {"pool_pre_ping": True}


async_engine=create_async_engine(DATABASE_URL,echo=False,**_engine_kwargs(DATABASE_URL))

async_session=async_sessionmaker(bind=async_engine,class_=AsyncSession,expire_on_commit=False)


if DATABASE_URL.startswith("sqlite"):
    # The sqlite driver only emits BEGIN before the first write, so reads ahead of it run unlocked.
    # Transactions are begun here instead; a session can ask for BEGIN IMMEDIATE to hold the
    # write lock from its first statement. WAL keeps plain readers from blocking that writer.

    @event.listens_for(async_engine.sync_engine, "connect")
    def _sqlite_on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    @event.listens_for(async_engine.sync_engine, "begin")
    def _sqlite_on_begin(conn):
        mode = conn.get_execution_options().get(SQLITE_BEGIN_OPTION, "DEFERRED")
        conn.exec_driver_sql(f"BEGIN {mode}")


async def create_tables():
    # register every table on SQLModel.metadata before create_all
    import orcachat.schema.full_schema  # noqa: F401

    async with async_engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
