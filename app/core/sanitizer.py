# app/core/sanitizer.py
"""
IDENTIFIER SANITIZER - Make untrusted names safe to splice into SQL text

Table and column names cannot be sent as bind parameters, so every name that
ends up in a CREATE / INSERT / SELECT statement goes through here first.

    raw name → grammar check → reserved-word check → "quoted name"
    raw type → allow-list check → TYPE (verbatim, never quoted)

The grammar is the real boundary: it admits only ASCII letters, digits and
underscores, so a name can never close the surrounding quotes, add whitespace
or end the statement. The reserved-word list only catches the obvious cases.
"""

import re

from app.core.exceptions import InvalidDataType, InvalidIdentifier, ReservedWord

# First char letter/underscore, then up to 50 letters/digits/underscores
IDENTIFIER_PATTERN = re.compile(r"[A-Za-z_][A-Za-z0-9_]{0,50}")
MAX_IDENTIFIER_LENGTH = 51

# Letters, digits and parentheses: INT, VARCHAR(100), TIMESTAMPTZ ...
DATA_TYPE_PATTERN = re.compile(r"[A-Za-z0-9()]+")

# Not exhaustive, only the most dangerous keywords
RESERVED_KEYWORDS = frozenset(
    {
        "SELECT",
        "INSERT",
        "UPDATE",
        "DELETE",
        "CREATE",
        "DROP",
        "TABLE",
        "ALTER",
        "WHERE",
        "FROM",
        "USER",
        "GRANT",
        "PUBLIC",
        "GROUP",
        "BY",
    }
)


def is_valid_identifier(raw: str) -> bool:
    return bool(raw) and IDENTIFIER_PATTERN.fullmatch(raw) is not None


def quote_identifier(raw: str) -> str:
    """
    Validate a table or column name and wrap it in double quotes.

    Raises:
        InvalidIdentifier: empty, too long, or contains anything outside [A-Za-z0-9_].
        ReservedWord: the name is a blocked SQL keyword (any case).

    Examples:
        "contacts"  → '"contacts"'
        "FullName"  → '"FullName"'   # case is preserved by the quotes
        "1st"       → InvalidIdentifier
        "select"    → ReservedWord
    """
    if raw is None or not raw.strip():
        raise InvalidIdentifier("Identifier cannot be null or empty.")

    if not is_valid_identifier(raw):
        raise InvalidIdentifier(
            f"Invalid identifier format: '{raw}'. Only letters, numbers, and "
            f"underscores are allowed (max {MAX_IDENTIFIER_LENGTH} characters), "
            "and it must not start with a number."
        )

    if raw.upper() in RESERVED_KEYWORDS:
        raise ReservedWord(f"Invalid identifier: '{raw}' is a reserved SQL keyword.")

    return f'"{raw}"'


def validate_data_type(raw: str) -> str:
    """
    Check a column type against a coarse allow-list and return it unchanged.

    This is weaker than identifier quoting: any word made of letters, digits and
    parentheses passes, whether or not the engine knows the type. An unknown
    type simply makes the CREATE TABLE fail on the engine side.
    """
    if raw is None or not raw.strip() or DATA_TYPE_PATTERN.fullmatch(raw) is None:
        raise InvalidDataType(f"Invalid data type: {raw}")

    return raw
