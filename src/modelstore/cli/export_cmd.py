"""modelstore export: dump the records of a kind to a binary file."""

from __future__ import annotations

import typer

from modelstore.cli import _exitcodes as ec
from modelstore.cli._output import print_error, print_object
from modelstore.cli._storage import database_exists, open_datastore
from modelstore.codec import write_records


def export_cmd(
    kind: str = typer.Argument(..., help="Record kind to export"),
    output: str = typer.Option(..., "--out", help="Output file path"),
) -> None:
    """Export every record of KIND as length-prefixed binary records."""
    from modelstore.cli import state

    if not database_exists(state.db):
        print_error(f"Database not found: {state.db}")
        raise typer.Exit(ec.DATABASE_ERROR)

    ds = open_datastore()
    try:
        records = ds.query_kind(kind).as_list()
        with open(output, "wb") as f:
            count = write_records(f, records)
        if state.json_output:
            print_object({"kind": kind, "exported": count, "path": output}, json_mode=True)
        else:
            print(f"Exported {count} record(s) to {output}")
    except Exception as e:
        print_error(str(e))
        raise typer.Exit(ec.EXECUTION_FAILURE)
    finally:
        ds.close()
