# =============================================================================
# Database Engine & Session Management
# =============================================================================
#
# Async SQLAlchemy engine over asyncpg. All queries use `await`.
#
# SESSION PATTERNS:
#
# 1. Dependency-injected (get_async_session via Depends):
#    One session per request. Commits when the handler returns, rolls
#    back on exception. Used for context loading and API key lookup;
#    /multi-agent commits as soon as context is loaded so the connection
#    is not held through the LLM calls.
#
# 2. Self-managed (async_session_factory() directly):
#    Used by background tasks (agents.py _persist_workflow_run) that run
#    after the response is sent. These MUST commit explicitly.
# =============================================================================

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.config import settings

# ---------------------------------------------------------------------------
# Async Engine
# ---------------------------------------------------------------------------
# - echo=settings.debug: log every SQL statement in debug mode
# - pool_size / max_overflow: 5 persistent connections, 10 burst
# ---------------------------------------------------------------------------
async_engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_size=5,
    max_overflow=10,
)

# expire_on_commit=False: loaded objects stay readable after commit,
# which async sessions cannot lazily refresh.
async_session_factory = async_sessionmaker(
    bind=async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a database session per request.

    The session is automatically closed when the request completes.
    If an exception occurs, the transaction is rolled back.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def create_tables() -> None:
    """Create any missing tables (development convenience)."""
    from app.db.models import Base

    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
