"""modelstore CLI: operator console for inspecting and managing record stores."""

from __future__ import annotations

from typing import Optional

import typer

from modelstore.cli import export_cmd, import_cmd, info, query, records

app = typer.Typer(
    name="modelstore",
    help="modelstore CLI, operator console for inspecting and managing record stores.",
    no_args_is_help=True,
)


class _State:
    """Global CLI state shared across subcommands."""

    db: str = "modelstore.db"
    json_output: bool = False


state = _State()


def _version_callback(value: bool) -> None:
    if value:
        from modelstore import __version__

        print(f"modelstore {__version__}")
        raise typer.Exit()


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    db: Optional[str] = typer.Option(
        None,
        "--db",
        envvar="MODELSTORE_DB",
        help="SQLite database file path (default: modelstore.db)",
    ),
    json_output: bool = typer.Option(False, "--json", help="JSON output when supported"),
    version: bool = typer.Option(
        False, "--version", help="Show version", is_eager=True, callback=_version_callback
    ),
) -> None:
    """Global options for all modelstore commands."""
    state.db = db or "modelstore.db"
    state.json_output = json_output
    if ctx.invoked_subcommand is None and not version:
        print(ctx.get_help())
        raise typer.Exit()


app.command(name="info")(info.info_cmd)
app.command(name="get")(records.get_cmd)
app.command(name="delete")(records.delete_cmd)
app.command(name="query")(query.query_cmd)
app.command(name="count")(query.count_cmd)
app.command(name="export")(export_cmd.export_cmd)
app.command(name="import")(import_cmd.import_cmd)


def main() -> None:
    """Entry point for the modelstore CLI."""
    app()
