import logging
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.schema import CreateTable

from app.core import models
from app.core.database import StatementRunner
from app.core.exceptions import DuplicateTable, StatementFailed

logger = logging.getLogger(__name__)


class OwnershipRegistry:
    """
    Who owns which managed table.

    The registry never commits (except when creating its own storage):
    register() joins the caller's transaction so the CREATE TABLE and its
    ownership row succeed or fail together. Engine failures surface as
    StatementFailed, like every other statement.
    """

    def __init__(self, db: AsyncSession, timeout: Optional[float] = None):
        self.db = db
        self.runner = StatementRunner(db, timeout=timeout)

    async def _create_store(self) -> None:
        conn = await self.db.connection()
        await conn.execute(
            CreateTable(models.ManagedTable.__table__, if_not_exists=True)
        )
        await self.db.commit()

    async def ensure_store_exists(self) -> None:
        """
        Create the registry table if it is missing.
        Safe to run on every start-up (CREATE TABLE IF NOT EXISTS).
        """
        await self.runner.guarded(self._create_store(), "Registry set-up")

    async def register(self, table_name: str, owner_id: int) -> models.ManagedTable:
        """
        Record a new table and its owner.

        Args:
            table_name: Unquoted, already validated name (used for later lookups).
            owner_id: The creating caller.

        Raises:
            DuplicateTable: the name is already registered.
            StatementFailed: any other engine error.
        """
        entry = models.ManagedTable(table_name=table_name, owner_user_id=owner_id)
        self.db.add(entry)
        try:
            await self.db.flush()
        except IntegrityError as error:
            logger.error(f"Failed to register table '{table_name}': {error.orig}")
            raise DuplicateTable(
                f"Table '{table_name}' is already registered", str(error.orig)
            ) from error
        except SQLAlchemyError as error:
            detail = str(getattr(error, "orig", None) or error)
            logger.error(f"Failed to register table '{table_name}': {detail}")
            raise StatementFailed("Registration failed", detail) from error

        await self.runner.guarded(self.db.refresh(entry), "Registration")
        return entry

    async def is_registered(self, table_name: str) -> bool:
        query = (
            select(func.count())
            .select_from(models.ManagedTable)
            .where(models.ManagedTable.table_name == table_name)
        )
        result = await self.runner.run(query, "Registry lookup")
        return result.scalar() > 0

    async def can_access(
        self, table_name: str, caller_id: int, is_privileged: bool
    ) -> bool:
        """
        Decide whether a caller may touch a table. Evaluated fresh on every call.

        - privileged callers can access anything, the registry table included
        - nobody else can ever address the registry table
        - otherwise the caller must be the registered owner
        """
        if is_privileged:
            return True

        if table_name.lower() == models.REGISTRY_TABLE.lower():
            return False

        query = (
            select(func.count())
            .select_from(models.ManagedTable)
            .where(
                models.ManagedTable.table_name == table_name,
                models.ManagedTable.owner_user_id == caller_id,
            )
        )
        result = await self.runner.run(query, "Access check")
        return result.scalar() > 0

    async def list_tables(
        self, caller_id: int, is_privileged: bool
    ) -> List[models.ManagedTable]:
        query = select(models.ManagedTable).order_by(
            models.ManagedTable.created_at, models.ManagedTable.table_id
        )
        if not is_privileged:
            query = query.where(models.ManagedTable.owner_user_id == caller_id)

        result = await self.runner.run(query, "Registry listing")
        return list(result.scalars().all())
