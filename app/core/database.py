import asyncio
import logging
from typing import Any, Awaitable, Dict, List, Mapping, Optional

from sqlalchemy import bindparam, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from app.core.config import settings
from app.core.exceptions import StatementFailed
from app.core.values import sql_type_for

logger = logging.getLogger(__name__)

Params = Mapping[str, Any]


def build_engine(database_url: Optional[str] = None) -> AsyncEngine:
    return create_async_engine(
        database_url or settings.DATABASE_URL, echo=settings.SQL_ECHO
    )


def build_sessionmaker(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # No refreshes after commit, rows stay readable once the transaction is closed
    return async_sessionmaker(bind=bind, class_=AsyncSession, expire_on_commit=False)


engine = build_engine()

AsyncSessionLocal = build_sessionmaker(engine)


# This is the "Bridge" that gives my routes access to the database
async def get_db():
    async with AsyncSessionLocal() as session:
        yield session


# All the models are "stored" in the Base class will be processed by the Engine
class Base(DeclarativeBase):
    pass




class StatementRunner:
    """
    Runs statements on a session.

    Every engine error comes back as StatementFailed with the engine's message,
    and every statement gets the same deadline.
    """

    def __init__(self, db: AsyncSession, timeout: Optional[float] = None):
        self.db = db
        self.timeout = timeout

    @property
    def dialect_name(self) -> str:
        return self.db.get_bind().dialect.name

    def _compile(self, sql: str, params: Optional[Params]):
        statement = text(sql)
        if not params:
            return statement
        return statement.bindparams(
            *[
                bindparam(name, value, type_=sql_type_for(value))
                for name, value in params.items()
            ]
        )

    async def guarded(self, awaitable: Awaitable, description: str = "Statement"):
        """
        Await one database call under the deadline.

        Raw SQL goes through here, and so do the registry's ORM and DDL calls.
        """
        try:
            return await asyncio.wait_for(awaitable, self.timeout)
        except asyncio.TimeoutError:
            logger.error(f"{description} timed out after {self.timeout}s")
            raise StatementFailed(
                f"{description} failed", f"timed out after {self.timeout} seconds"
            )
        except SQLAlchemyError as error:
            detail = str(getattr(error, "orig", None) or error)
            logger.error(f"{description} failed: {detail}")
            raise StatementFailed(f"{description} failed", detail) from error

    async def run(self, statement, description: str = "Statement"):
        return await self.guarded(self.db.execute(statement), description)

    async def execute(self, sql: str, params: Optional[Params] = None) -> None:
        await self.run(self._compile(sql, params))

    async def query(
        self, sql: str, params: Optional[Params] = None
    ) -> List[Dict[str, Any]]:
        result = await self.run(self._compile(sql, params))
        return [dict(row) for row in result.mappings().all()]
