"""Console front-end for dynamic tables: every value arrives as text."""

import asyncio
from contextlib import asynccontextmanager
from typing import Dict, List, Optional

import typer
from rich.console import Console
from rich.table import Table

from app.core.config import settings
from app.core.database import build_engine, build_sessionmaker
from app.core.exceptions import DynamicoError
from app.core.orchestrator import ColumnSpec, TableOrchestrator
from app.core.registry import OwnershipRegistry
from app.core.security import ADMIN_ROLE, create_access_token, is_privileged

console = Console()

cli = typer.Typer(
    help="dynamico – create, fill and query tables at runtime",
    no_args_is_help=True,
)

UserIdOpt = typer.Option(..., "--user-id", "-u", help="Caller identity")
AdminOpt = typer.Option(False, "--admin", help="Act as a privileged caller")
DatabaseUrlOpt = typer.Option(
    None, "--database-url", help="Overrides DATABASE_URL from the environment"
)


@asynccontextmanager
async def open_orchestrator(database_url: Optional[str]):
    engine = build_engine(database_url)
    try:
        async with build_sessionmaker(engine)() as session:
            await OwnershipRegistry(session).ensure_store_exists()
            yield TableOrchestrator(session, settings)
    finally:
        await engine.dispose()


def run(coro):
    """Run one request, report a failure and leave with exit code 1."""
    try:
        return asyncio.run(coro)
    except DynamicoError as error:
        console.print(f"\nERROR: {error}", style="bold red", markup=False)
        raise typer.Exit(1)


def parse_column(raw: str) -> ColumnSpec:
    name, sep, data_type = raw.partition(":")
    if not sep or not data_type.strip():
        raise typer.BadParameter(f"Expected name:TYPE, got '{raw}'")
    return ColumnSpec(name, data_type)


def parse_pair(raw: str) -> Dict[str, str]:
    key, sep, value = raw.partition("=")
    if not sep:
        raise typer.BadParameter(f"Expected column=value, got '{raw}'")
    return {key: value}


@cli.command("init")
def init(database_url: Optional[str] = DatabaseUrlOpt):
    """Create the table registry if it does not exist yet."""

    async def _init():
        async with open_orchestrator(database_url):
            pass

    run(_init())
    console.print("Table registry is ready.")


@cli.command("create-table")
def create_table(
    name: str = typer.Argument(..., help="New table name, e.g. contacts"),
    columns: List[str] = typer.Argument(
        None, help="Columns as name:TYPE, e.g. full_name:VARCHAR(100)"
    ),
    user_id: int = UserIdOpt,
    database_url: Optional[str] = DatabaseUrlOpt,
):
    """Create a table owned by the caller (an id column is always added)."""
    specs = [parse_column(column) for column in columns or []]

    async def _create():
        async with open_orchestrator(database_url) as orchestrator:
            return await orchestrator.create_table(name, specs, user_id)

    console.print(f"Creating table '{name}' with {len(specs)} columns...")
    run(_create())
    console.print(f"Table '{name}' created successfully.", style="bold green")


@cli.command("insert")
def insert(
    table_name: str = typer.Argument(..., help="Table to insert into"),
    pairs: List[str] = typer.Argument(None, help="Values as column=value"),
    user_id: int = UserIdOpt,
    admin: bool = AdminOpt,
    database_url: Optional[str] = DatabaseUrlOpt,
):
    """Insert one row. Values are typed as integer, boolean, date/time or text."""
    data: Dict[str, str] = {}
    for pair in pairs or []:
        parsed = parse_pair(pair)
        for key in parsed:
            if key in data:
                raise typer.BadParameter(f"Column '{key}' given more than once")
        data.update(parsed)

    role = ADMIN_ROLE if admin else None

    async def _insert():
        async with open_orchestrator(database_url) as orchestrator:
            return await orchestrator.insert_data(
                table_name, data, user_id, is_privileged(user_id, role)
            )

    console.print(f"Inserting {len(data)} fields into '{table_name}'...")
    run(_insert())
    console.print(f"Data inserted into '{table_name}'.", style="bold green")


@cli.command("query")
def query(
    table_name: str = typer.Argument(..., help="Table to read"),
    user_id: int = UserIdOpt,
    admin: bool = AdminOpt,
    database_url: Optional[str] = DatabaseUrlOpt,
):
    """Show the first rows of a table."""
    role = ADMIN_ROLE if admin else None

    async def _query():
        async with open_orchestrator(database_url) as orchestrator:
            return await orchestrator.query_data(
                table_name, user_id, is_privileged(user_id, role)
            )

    rows = run(_query())
    if not rows:
        console.print("(No data found or table is empty)")
        return

    table = Table(title=f"Query Results for '{table_name}'")
    for column in rows[0].keys():
        table.add_column(column)
    for row in rows:
        table.add_row(*["" if value is None else str(value) for value in row.values()])
    console.print(table)


@cli.command("tables")
def tables(
    user_id: int = UserIdOpt,
    admin: bool = AdminOpt,
    database_url: Optional[str] = DatabaseUrlOpt,
):
    """List the tables the caller can see."""
    role = ADMIN_ROLE if admin else None

    async def _tables():
        async with open_orchestrator(database_url) as orchestrator:
            return await orchestrator.list_tables(user_id, is_privileged(user_id, role))

    entries = run(_tables())
    if not entries:
        console.print("(No tables)")
        return

    table = Table(title="Managed tables")
    table.add_column("table")
    table.add_column("owner")
    table.add_column("created at")
    for entry in entries:
        table.add_row(entry.table_name, str(entry.owner_user_id), str(entry.created_at))
    console.print(table)


@cli.command("token")
def token(user_id: int = UserIdOpt, admin: bool = AdminOpt):
    """Print a bearer token for the HTTP API."""
    claims = {"user_id": user_id}
    if admin:
        claims["role"] = ADMIN_ROLE
    typer.echo(create_access_token(claims))


if __name__ == "__main__":
    cli()
