import pytest

from app.core.exceptions import (
    AccessDenied,
    DuplicateTable,
    EmptyPayload,
    InvalidDataType,
    InvalidIdentifier,
    ReservedWord,
    SchemaCreationFailed,
    StatementFailed,
)
from app.core.config import settings
from app.core.database import build_sessionmaker
from app.core.models import REGISTRY_TABLE
from app.core.orchestrator import (
    ColumnSpec,
    TableOrchestrator,
    build_create_table_sql,
    build_insert_sql,
    build_select_sql,
)

from conftest import OTHER_ID, OWNER_ID


def test_create_table_sql_injects_surrogate_key_first():
    sql = build_create_table_sql(
        "contacts",
        [ColumnSpec("full_name", "VARCHAR(100)"), ColumnSpec("age", "INT")],
        "postgresql",
    )
    assert sql == (
        'CREATE TABLE "contacts" '
        '(id SERIAL PRIMARY KEY, "full_name" VARCHAR(100), "age" INT)'
    )


def test_create_table_sql_uses_dialect_key():
    sql = build_create_table_sql("t1", [ColumnSpec("n", "INT")], "sqlite")
    assert "id INTEGER PRIMARY KEY AUTOINCREMENT" in sql


def test_insert_sql_binds_values():
    sql = build_insert_sql("contacts", ["full_name", "age"])
    assert sql == (
        'INSERT INTO "contacts" ("full_name", "age") VALUES (:full_name, :age)'
    )


def test_select_sql_is_capped():
    assert build_select_sql("contacts") == 'SELECT * FROM "contacts" LIMIT :row_limit'


@pytest.mark.asyncio
async def test_create_table_registers_owner(orchestrator, registry):
    entry = await orchestrator.create_table(
        "contacts", [ColumnSpec("full_name", "VARCHAR(100)")], OWNER_ID
    )

    assert entry.table_name == "contacts"
    assert entry.owner_user_id == OWNER_ID
    assert await registry.can_access("contacts", OWNER_ID, False) is True
    assert await registry.can_access("contacts", OTHER_ID, False) is False


@pytest.mark.asyncio
async def test_create_table_accepts_plain_tuples(orchestrator, registry):
    await orchestrator.create_table("contacts", [("full_name", "VARCHAR(100)")], OWNER_ID)
    assert await registry.is_registered("contacts") is True


@pytest.mark.asyncio
async def test_insert_then_query_binds_integer(orchestrator):
    await orchestrator.create_table("t1", [ColumnSpec("n", "INT")], 5)

    inserted = await orchestrator.insert_data("t1", {"n": "42"}, 5, False)
    rows = await orchestrator.query_data("t1", 5, False)

    assert inserted == 1
    assert len(rows) == 1
    assert rows[0]["n"] == 42
    assert type(rows[0]["n"]) is int
    assert rows[0]["id"] == 1


@pytest.mark.asyncio
async def test_insert_infers_every_kind(orchestrator):
    await orchestrator.create_table(
        "events",
        [
            ColumnSpec("title", "TEXT"),
            ColumnSpec("active", "BOOLEAN"),
            ColumnSpec("happened_at", "TIMESTAMP"),
            ColumnSpec("note", "TEXT"),
        ],
        OWNER_ID,
    )

    await orchestrator.insert_data(
        "events",
        {"title": "launch day", "active": "true", "happened_at": "2025-01-15", "note": None},
        OWNER_ID,
        False,
    )
    (row,) = await orchestrator.query_data("events", OWNER_ID, False)

    assert row["title"] == "launch day"
    assert row["active"] == 1
    assert str(row["happened_at"]).startswith("2025-01-15")
    assert row["note"] is None


@pytest.mark.asyncio
async def test_insert_without_inference_keeps_text(orchestrator):
    await orchestrator.create_table("codes", [ColumnSpec("code", "TEXT")], OWNER_ID)

    await orchestrator.insert_data("codes", {"code": "007"}, OWNER_ID, False, infer_types=False)
    (row,) = await orchestrator.query_data("codes", OWNER_ID, False)

    assert row["code"] == "007"


@pytest.mark.asyncio
async def test_non_owner_cannot_insert(orchestrator):
    await orchestrator.create_table("t1", [ColumnSpec("n", "INT")], 5)

    with pytest.raises(AccessDenied):
        await orchestrator.insert_data("t1", {"n": "1"}, 6, False)

    assert await orchestrator.query_data("t1", 5, False) == []


@pytest.mark.asyncio
async def test_non_owner_cannot_query(orchestrator):
    await orchestrator.create_table("t1", [ColumnSpec("n", "INT")], 5)

    with pytest.raises(AccessDenied):
        await orchestrator.query_data("t1", 6, False)


@pytest.mark.asyncio
async def test_privileged_caller_reads_any_table(orchestrator):
    await orchestrator.create_table("t1", [ColumnSpec("n", "INT")], 5)
    await orchestrator.insert_data("t1", {"n": 7}, 5, False)

    rows = await orchestrator.query_data("t1", 6, True)
    assert rows[0]["n"] == 7

    registry_rows = await orchestrator.query_data(REGISTRY_TABLE, 6, True)
    assert [row["table_name"] for row in registry_rows] == ["t1"]


@pytest.mark.asyncio
async def test_query_of_empty_table(orchestrator):
    await orchestrator.create_table("t1", [ColumnSpec("n", "INT")], OWNER_ID)
    assert await orchestrator.query_data("t1", OWNER_ID, False) == []


@pytest.mark.asyncio
async def test_query_is_capped_at_row_limit(orchestrator):
    await orchestrator.create_table("t1", [ColumnSpec("n", "INT")], OWNER_ID)
    for n in range(12):
        await orchestrator.insert_data("t1", {"n": n}, OWNER_ID, False)

    rows = await orchestrator.query_data("t1", OWNER_ID, False)
    assert len(rows) == orchestrator.settings.QUERY_ROW_LIMIT


@pytest.mark.asyncio
async def test_create_table_without_columns(orchestrator, registry):
    with pytest.raises(EmptyPayload):
        await orchestrator.create_table("contacts", [], OWNER_ID)
    assert await registry.is_registered("contacts") is False


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "name, columns, error",
    [
        ("bad name", [ColumnSpec("a", "INT")], InvalidIdentifier),
        ("select", [ColumnSpec("a", "INT")], ReservedWord),
        ("contacts", [ColumnSpec("a;", "INT")], InvalidIdentifier),
        ("contacts", [ColumnSpec("a", "INT"), ColumnSpec("from", "INT")], ReservedWord),
        ("contacts", [ColumnSpec("a", "INT); DROP TABLE x; --")], InvalidDataType),
    ],
)
async def test_bad_input_aborts_before_any_write(orchestrator, registry, name, columns, error):
    with pytest.raises(error):
        await orchestrator.create_table(name, columns, OWNER_ID)

    assert await registry.list_tables(OWNER_ID, True) == []


@pytest.mark.asyncio
@pytest.mark.parametrize("name", [REGISTRY_TABLE, "APP_MANAGED_TABLES"])
async def test_registry_name_cannot_be_created(orchestrator, registry, name):
    with pytest.raises(AccessDenied):
        await orchestrator.create_table(name, [ColumnSpec("a", "INT")], OWNER_ID)

    assert await registry.can_access(REGISTRY_TABLE, OWNER_ID, False) is False


@pytest.mark.asyncio
async def test_duplicate_table_is_rejected(orchestrator, registry):
    await orchestrator.create_table("contacts", [ColumnSpec("a", "INT")], OWNER_ID)

    with pytest.raises(DuplicateTable):
        await orchestrator.create_table("contacts", [ColumnSpec("b", "INT")], OTHER_ID)

    assert await registry.can_access("contacts", OTHER_ID, False) is False


@pytest.mark.asyncio
async def test_engine_error_on_create_leaves_no_registration(orchestrator, registry):
    with pytest.raises(SchemaCreationFailed) as excinfo:
        await orchestrator.create_table(
            "contacts", [ColumnSpec("a", "INT"), ColumnSpec("a", "INT")], OWNER_ID
        )

    assert "duplicate column" in str(excinfo.value)
    assert await registry.is_registered("contacts") is False


@pytest.mark.asyncio
async def test_insert_into_unknown_column_fails(orchestrator):
    await orchestrator.create_table("t1", [ColumnSpec("n", "INT")], OWNER_ID)

    with pytest.raises(StatementFailed) as excinfo:
        await orchestrator.insert_data("t1", {"missing": 1}, OWNER_ID, False)
    assert excinfo.value.detail

    # The session is usable again for the next request
    await orchestrator.insert_data("t1", {"n": 1}, OWNER_ID, False)
    assert len(await orchestrator.query_data("t1", OWNER_ID, False)) == 1


@pytest.mark.asyncio
async def test_insert_with_empty_payload(orchestrator):
    await orchestrator.create_table("t1", [ColumnSpec("n", "INT")], OWNER_ID)

    with pytest.raises(EmptyPayload):
        await orchestrator.insert_data("t1", {}, OWNER_ID, False)


@pytest.mark.asyncio
async def test_insert_rejects_bad_column_names(orchestrator):
    await orchestrator.create_table("t1", [ColumnSpec("n", "INT")], OWNER_ID)

    with pytest.raises(InvalidIdentifier):
        await orchestrator.insert_data("t1", {'n" = 1; --': 1}, OWNER_ID, False)


@pytest.mark.asyncio
async def test_authorization_comes_before_validation(orchestrator):
    """An unauthorized caller learns nothing about the name's validity"""
    with pytest.raises(AccessDenied):
        await orchestrator.insert_data("bad name;", {"n": 1}, OWNER_ID, False)


@pytest.mark.asyncio
async def test_missing_registry_fails_cleanly(test_engine):
    """Access checks against a database without a registry report the engine error"""
    async with build_sessionmaker(test_engine)() as session:
        orchestrator = TableOrchestrator(session, settings)

        with pytest.raises(StatementFailed):
            await orchestrator.query_data("contacts", OWNER_ID, False)
        with pytest.raises(StatementFailed):
            await orchestrator.insert_data("contacts", {"a": "1"}, OWNER_ID, False)
