# app/core/orchestrator.py
"""
TABLE ORCHESTRATOR - The single entry point for dynamic tables

Three operations, each a short linear pipeline with no retry:

    create_table: validate names/types → build DDL → execute → register owner → commit
    insert_data:  authorize → validate names → bind typed values → execute → commit
    query_data:   authorize → validate name → SELECT * ... LIMIT n

Identifiers are spliced into SQL text only after app.core.sanitizer has quoted
them. Values are never spliced: they always travel as bind parameters.
"""

import logging
from typing import Dict, List, Mapping, NamedTuple, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from app.core import models
from app.core.config import Settings
from app.core.database import StatementRunner
from app.core.exceptions import (
    AccessDenied,
    DuplicateTable,
    DynamicoError,
    EmptyPayload,
    SchemaCreationFailed,
    StatementFailed,
)
from app.core.registry import OwnershipRegistry
from app.core.sanitizer import quote_identifier, validate_data_type
from app.core.values import CellValue, infer_cell_value

logger = logging.getLogger(__name__)

# Surrogate key injected as the first column of every managed table
SURROGATE_KEY_DDL = {
    "postgresql": "id SERIAL PRIMARY KEY",
    "sqlite": "id INTEGER PRIMARY KEY AUTOINCREMENT",
}
DEFAULT_SURROGATE_KEY_DDL = SURROGATE_KEY_DDL["postgresql"]


class ColumnSpec(NamedTuple):
    name: str
    data_type: str


def build_create_table_sql(
    table_name: str, columns: Sequence[ColumnSpec], dialect_name: str
) -> str:
    """
    Compose the CREATE TABLE statement from untrusted names and types.

    Raises the sanitizer's errors before anything is returned, so a bad column
    never produces a partial statement.
    """
    safe_table = quote_identifier(table_name)
    safe_columns = [
        f"{quote_identifier(name)} {validate_data_type(data_type)}"
        for name, data_type in columns
    ]
    surrogate_key = SURROGATE_KEY_DDL.get(dialect_name, DEFAULT_SURROGATE_KEY_DDL)
    return f"CREATE TABLE {safe_table} ({', '.join([surrogate_key, *safe_columns])})"


def build_insert_sql(table_name: str, column_names: Sequence[str]) -> str:
    safe_table = quote_identifier(table_name)
    safe_columns = [quote_identifier(name) for name in column_names]
    # Column names already passed the identifier grammar, safe as bind names too
    placeholders = [f":{name}" for name in column_names]
    return (
        f"INSERT INTO {safe_table} ({', '.join(safe_columns)}) "
        f"VALUES ({', '.join(placeholders)})"
    )


def build_select_sql(table_name: str) -> str:
    return f"SELECT * FROM {quote_identifier(table_name)} LIMIT :row_limit"


class TableOrchestrator:
    """
    Ties sanitization and ownership checks to statement execution.

    One instance per request/session. Holds no state between calls, every
    access decision is made again on each operation.
    """

    def __init__(self, db: AsyncSession, settings: Settings):
        self.db = db
        self.settings = settings
        self.registry = OwnershipRegistry(db, timeout=settings.STATEMENT_TIMEOUT_SECONDS)
        self.runner = StatementRunner(db, timeout=settings.STATEMENT_TIMEOUT_SECONDS)

    async def _authorize(
        self, table_name: str, caller_id: int, is_privileged: bool
    ) -> None:
        try:
            allowed = await self.registry.can_access(
                table_name, caller_id, is_privileged
            )
        except StatementFailed:
            await self.db.rollback()
            raise
        if not allowed:
            logger.warning(f"[User {caller_id}] denied access to table '{table_name}'")
            raise AccessDenied(table_name)

    async def create_table(
        self, table_name: str, columns: Sequence[ColumnSpec], caller_id: int
    ) -> models.ManagedTable:
        """
        Create a new table and make the caller its owner.

        Args:
            table_name: Raw table name from the caller.
            columns: (name, data_type) pairs; an "id" surrogate key is always added first.
            caller_id: Becomes the owner.

        Returns:
            The registry entry of the new table.

        Example:
            await orchestrator.create_table("contacts", [ColumnSpec("full_name", "VARCHAR(100)")], 2)
        """
        if not columns:
            raise EmptyPayload("No columns defined. Table creation cancelled.")

        sql = build_create_table_sql(table_name, columns, self.runner.dialect_name)

        if table_name.lower() == models.REGISTRY_TABLE.lower():
            raise AccessDenied(table_name, "The name is reserved for the table registry.")

        # DDL and registration share one transaction
        try:
            if await self.registry.is_registered(table_name):
                raise DuplicateTable(f"Table '{table_name}' is already registered")

            try:
                await self.runner.execute(sql)
            except StatementFailed as error:
                raise SchemaCreationFailed(
                    f"Failed to create table '{table_name}'", error.detail
                ) from error

            entry = await self.registry.register(table_name, caller_id)
            await self.runner.guarded(self.db.commit(), "Commit")
        except DynamicoError:
            await self.db.rollback()
            raise

        logger.info(
            f"[User {caller_id}] created table '{table_name}' with {len(columns)} columns"
        )
        return entry

    async def insert_data(
        self,
        table_name: str,
        data: Mapping[str, CellValue],
        caller_id: int,
        is_privileged: bool,
        infer_types: bool = True,
    ) -> int:
        """
        Insert one row into a managed table.

        String values are run through infer_cell_value() unless infer_types is
        False, so "42" binds as an integer and "true" as a boolean.

        Returns:
            Number of columns written.
        """
        await self._authorize(table_name, caller_id, is_privileged)

        if not data:
            raise EmptyPayload("No data provided. Insert cancelled.")

        column_names = list(data.keys())
        sql = build_insert_sql(table_name, column_names)

        params: Dict[str, CellValue] = {}
        for name, value in data.items():
            if infer_types and isinstance(value, str):
                value = infer_cell_value(value)
            params[name] = value

        try:
            await self.runner.execute(sql, params)
            await self.runner.guarded(self.db.commit(), "Commit")
        except DynamicoError:
            await self.db.rollback()
            raise

        logger.info(
            f"[User {caller_id}] inserted {len(params)} fields into '{table_name}'"
        )
        return len(params)

    async def query_data(
        self, table_name: str, caller_id: int, is_privileged: bool
    ) -> List[Dict[str, CellValue]]:
        """
        Read up to QUERY_ROW_LIMIT rows of a managed table.
        Returns an empty list when the table has no rows. Cells come back as
        the driver decodes them (Decimal for NUMERIC, date for DATE, ...).
        """
        await self._authorize(table_name, caller_id, is_privileged)

        sql = build_select_sql(table_name)
        try:
            rows = await self.runner.query(
                sql, {"row_limit": self.settings.QUERY_ROW_LIMIT}
            )
        except DynamicoError:
            await self.db.rollback()
            raise

        return rows

    async def list_tables(
        self, caller_id: int, is_privileged: bool
    ) -> List[models.ManagedTable]:
        return await self.registry.list_tables(caller_id, is_privileged)
