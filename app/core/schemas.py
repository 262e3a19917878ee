from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


# =========================
# CALLER
# =========================
class Caller(BaseModel):
    user_id: int
    is_privileged: bool = False


# =========================
# TABLE
# =========================
class ColumnDefinition(BaseModel):
    name: str
    data_type: str = Field(examples=["VARCHAR(100)", "INT", "TIMESTAMPTZ"])


class TableCreate(BaseModel):
    name: str
    # Emptiness is rejected by the orchestrator with a proper error message
    columns: List[ColumnDefinition] = []


class TableResponse(BaseModel):
    table_id: int
    table_name: str
    owner_user_id: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# =========================
# ROWS
# =========================
class RowInsert(BaseModel):
    data: Dict[str, Optional[Union[bool, int, float, str]]] = {}
    # Strings like "42" or "true" are converted before binding
    infer_types: bool = True


class RowInsertResponse(BaseModel):
    table_name: str
    inserted: int


class RowsResponse(BaseModel):
    table_name: str
    count: int
    rows: List[Dict[str, Any]]
