# holidayhouse/db/session.py
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Optional

from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from holidayhouse.core.config import settings  # NOTE: instance import, NOT class
from holidayhouse.core.errors import ConflictError


# Create engine using instance settings (NOT Settings.DATABASE_URL)
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=False,
    future=True,
)

# Session factory
AsyncSessionLocal = sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


# FastAPI dependency
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


SERIALIZABLE = "SERIALIZABLE"

# SQLSTATEs / MySQL error numbers meaning "another transaction got there first"
_WRITE_CONFLICT_SQLSTATES = {"40001", "40P01", "23P01"}
_WRITE_CONFLICT_MYSQL_ERRNOS = {1205, 1213}
SQLITE_BUSY = 5


def is_write_conflict(exc: DBAPIError) -> bool:
    orig = exc.orig
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if code in _WRITE_CONFLICT_SQLSTATES:
        return True
    if getattr(orig, "sqlite_errorcode", None) == SQLITE_BUSY:
        return True
    args = getattr(orig, "args", None) or ()
    return bool(args) and args[0] in _WRITE_CONFLICT_MYSQL_ERRNOS


@asynccontextmanager
async def unit_of_work(
    db: AsyncSession,
    *,
    isolation_level: Optional[str] = None,
) -> AsyncGenerator[AsyncSession, None]:
    """
    Run the enclosed reads and writes as one transaction.

    Commits on success, rolls back on any error. A serialization failure,
    deadlock or exclusion-constraint violation reported by the database is
    re-raised as ConflictError so callers see one error shape for
    overlapping bookings.
    """
    if db.in_transaction():
        # end the implicit read transaction opened while authenticating
        await db.commit()

    try:
        if isolation_level is not None:
            if db.get_bind().dialect.name == "sqlite":
                # pysqlite defers BEGIN to the first write; take the write lock before reading
                conn = await db.connection()
                await conn.exec_driver_sql("BEGIN IMMEDIATE")
            else:
                await db.connection(execution_options={"isolation_level": isolation_level})

        yield db
        await db.commit()
    except DBAPIError as exc:
        await db.rollback()
        if is_write_conflict(exc):
            raise ConflictError(
                "Booking dates were changed by a concurrent request; please try again"
            ) from exc
        raise
    except BaseException:
        await db.rollback()
        raise
