from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import DeclarativeBase

from app.cache import cache
from app.config import settings
from app.middleware import install_query_counter

# Module-level engine; the test suite builds its own SQLite engine and
# overrides ``get_db`` instead of patching this one.
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    pool_pre_ping=True,
)

install_query_counter(engine)

async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    pass


async def get_db():
    """
    Yield one session per request.  The whole request is one transaction:
    services only flush, the commit happens here once the handler returns.
    Cache invalidations recorded during the request are replayed after the
    commit.
    """
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            cache.discard_pending(session)
            await session.rollback()
            raise
        await cache.invalidate_committed(session)
