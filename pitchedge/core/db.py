from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from .config import settings
from .logger import get_logger

log = get_logger("db")

REQUIRED_TABLES = ("immutable_predictions", "api_cache", "alembic_version")


def _engine_kwargs() -> dict:
    kwargs: dict = {"echo": False, "pool_pre_ping": True}
    # Test runs open a fresh event loop per case; pooled connections would outlive theirs.
    if (settings.app_env or "").strip().lower() == "test":
        kwargs["poolclass"] = NullPool
    return kwargs


engine = create_async_engine(settings.database_url, **_engine_kwargs())
SessionLocal = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


async def missing_tables(conn) -> list[str]:
    res = await conn.execute(
        text(
            """
            SELECT table_name
            FROM information_schema.tables
            WHERE table_schema='public' AND table_type='BASE TABLE'
            """
        )
    )
    present = {row.table_name for row in res}
    return [name for name in REQUIRED_TABLES if name not in present]


async def init_db() -> None:
    """Refuse to start against an unmigrated database (dev only warns)."""
    async with engine.connect() as conn:
        missing = await missing_tables(conn)
    if not missing:
        return
    msg = f"db schema incomplete, missing {', '.join(missing)}; run `alembic upgrade head`"
    if (settings.app_env or "").strip().lower() == "dev":
        log.warning(msg)
        return
    raise RuntimeError(msg)
