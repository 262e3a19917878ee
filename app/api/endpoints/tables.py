from typing import Annotated, List

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import schemas
from app.core.config import settings
from app.core.database import get_db
from app.core.orchestrator import ColumnSpec, TableOrchestrator
from app.core.security import get_current_caller

router = APIRouter(prefix="/tables", tags=["Tables"])

db_dep = Annotated[AsyncSession, Depends(get_db)]
caller_dep = Annotated[schemas.Caller, Depends(get_current_caller)]


def get_orchestrator(db: db_dep) -> TableOrchestrator:
    return TableOrchestrator(db, settings)


orchestrator_dep = Annotated[TableOrchestrator, Depends(get_orchestrator)]


# Create table
@router.post(
    "",
    response_model=schemas.TableResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_table(
    table: schemas.TableCreate, caller: caller_dep, orchestrator: orchestrator_dep
):
    columns = [ColumnSpec(column.name, column.data_type) for column in table.columns]
    return await orchestrator.create_table(table.name, columns, caller.user_id)


# Tables owned by the caller (all of them for privileged callers)
@router.get("", response_model=List[schemas.TableResponse])
async def list_tables(caller: caller_dep, orchestrator: orchestrator_dep):
    return await orchestrator.list_tables(caller.user_id, caller.is_privileged)


# Insert a row
@router.post(
    "/{table_name}/rows",
    response_model=schemas.RowInsertResponse,
    status_code=status.HTTP_201_CREATED,
)
async def insert_row(
    table_name: str,
    row: schemas.RowInsert,
    caller: caller_dep,
    orchestrator: orchestrator_dep,
):
    inserted = await orchestrator.insert_data(
        table_name,
        row.data,
        caller.user_id,
        caller.is_privileged,
        infer_types=row.infer_types,
    )
    return {"table_name": table_name, "inserted": inserted}


# Read rows (capped at QUERY_ROW_LIMIT)
@router.get("/{table_name}/rows", response_model=schemas.RowsResponse)
async def query_rows(
    table_name: str, caller: caller_dep, orchestrator: orchestrator_dep
):
    rows = await orchestrator.query_data(
        table_name, caller.user_id, caller.is_privileged
    )
    return {"table_name": table_name, "count": len(rows), "rows": rows}
