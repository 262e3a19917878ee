# app/core/values.py
"""
VALUE INFERENCE - Turn untyped text into typed cell values

Interactive channels (the console, form posts) hand us every value as text.
Before binding we guess a type with a fixed precedence:

    "42"          → 42                     (integer)
    "true"        → True                   (boolean)
    "2025-01-15"  → datetime(2025, 1, 15)  (date/time)
    anything else → unchanged string       (text)

The order matters: "1" is an integer, never a boolean.
"""

import re
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Optional, Union

from sqlalchemy import (
    BigInteger,
    Boolean,
    Date,
    DateTime,
    Float,
    Interval,
    LargeBinary,
    Numeric,
    String,
    Time,
)
from sqlalchemy.types import TypeEngine

# One cell of a managed table: what inference produces, plus what the engine
# hands back for NUMERIC, DATE, TIME, INTERVAL and binary columns
CellValue = Union[
    bool, int, float, Decimal, datetime, date, time, timedelta, bytes, str, None
]

# ASCII digits only, other Unicode digits stay text
INTEGER_PATTERN = re.compile(r"\s*[+-]?[0-9]+\s*")

# Tried after ISO-8601
DATETIME_FORMATS = [
    "%d.%m.%Y",  # 15.01.2025
    "%d/%m/%Y",  # 15/01/2025
    "%m/%d/%Y %H:%M:%S",  # 01/15/2025 13:45:00
    "%d %b %Y",  # 15 Jan 2025
    "%d %B %Y",  # 15 January 2025
]


def parse_integer(raw: str) -> Optional[int]:
    if INTEGER_PATTERN.fullmatch(raw):
        return int(raw)
    return None


def parse_boolean(raw: str) -> Optional[bool]:
    lowered = raw.strip().lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    return None


def parse_datetime(raw: str) -> Optional[datetime]:
    text = raw.strip()
    if not text:
        return None

    try:
        return datetime.fromisoformat(text)
    except ValueError:
        pass

    for fmt in DATETIME_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue

    return None


def infer_cell_value(raw: str) -> CellValue:
    """
    Infer a typed value from text: integer, then boolean, then date/time, then text.
    """
    integer = parse_integer(raw)
    if integer is not None:
        return integer

    boolean = parse_boolean(raw)
    if boolean is not None:
        return boolean

    moment = parse_datetime(raw)
    if moment is not None:
        return moment

    return raw


def sql_type_for(value: CellValue) -> Optional[TypeEngine]:
    """SQLAlchemy bind type for a cell value (None binds as an untyped NULL)."""
    # bool is a subclass of int, check it first
    if isinstance(value, bool):
        return Boolean()
    if isinstance(value, int):
        return BigInteger()
    if isinstance(value, float):
        return Float()
    if isinstance(value, Decimal):
        return Numeric()
    # datetime is a subclass of date, check it first
    if isinstance(value, datetime):
        return DateTime(timezone=value.tzinfo is not None)
    if isinstance(value, date):
        return Date()
    if isinstance(value, time):
        return Time()
    if isinstance(value, timedelta):
        return Interval()
    if isinstance(value, bytes):
        return LargeBinary()
    if isinstance(value, str):
        return String()
    return None
