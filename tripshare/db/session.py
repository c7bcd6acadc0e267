"""
Async engine and session factory.

One request == one session == one transaction. `get_db` commits when the
route returns and rolls back if anything raised, so a failed transition
never leaves a partial write behind.

Work that must only happen once the data is durable (cache invalidation)
is queued with `on_commit` and run by `commit` after the COMMIT succeeds.
A rollback drops the queue.
"""

from typing import AsyncGenerator, Awaitable, Callable

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from tripshare.core.config import get_settings
from tripshare.core.logging import get_logger

logger = get_logger(__name__)
settings = get_settings()

engine = create_async_engine(
    settings.DATABASE_URL,
    pool_size=settings.DB_POOL_SIZE,
    max_overflow=settings.DB_MAX_OVERFLOW,
    pool_timeout=settings.DB_POOL_TIMEOUT,
    pool_recycle=settings.DB_POOL_RECYCLE,
    pool_pre_ping=True,
    echo=settings.DEBUG,
)

AsyncSessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

_AFTER_COMMIT = "after_commit"


def on_commit(session: AsyncSession, callback: Callable[[], Awaitable[object]]) -> None:
    """Queue `callback` to be awaited after the session's next successful commit."""
    session.info.setdefault(_AFTER_COMMIT, []).append(callback)


def discard_pending(session: AsyncSession) -> None:
    session.info.pop(_AFTER_COMMIT, None)


async def run_after_commit(session: AsyncSession) -> None:
    callbacks = session.info.pop(_AFTER_COMMIT, [])
    for callback in callbacks:
        try:
            await callback()
        except Exception as exc:
            # The transaction is already durable; a failed hook must not undo the response.
            logger.error("after_commit_hook_failed", callback=repr(callback), error=str(exc))


async def commit(session: AsyncSession) -> None:
    await session.commit()
    await run_after_commit(session)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await commit(session)
        except Exception:
            discard_pending(session)
            await session.rollback()
            raise
