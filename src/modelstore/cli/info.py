"""modelstore info: show database status and record counts per kind."""

from __future__ import annotations

import os
from typing import Any

import typer

from modelstore.cli import _exitcodes as ec
from modelstore.cli._output import print_error, print_object, print_table
from modelstore.cli._storage import database_exists, open_datastore


def info_cmd() -> None:
    """Show database status and record counts per kind."""
    from modelstore.cli import state

    json_mode = state.json_output
    if not database_exists(state.db):
        print_error(f"Database not found: {state.db}")
        raise typer.Exit(ec.DATABASE_ERROR)

    try:
        ds = open_datastore()
    except Exception as e:
        print_error(f"Cannot open database: {e}")
        raise typer.Exit(ec.DATABASE_ERROR)

    try:
        store = ds.store
        data: dict[str, Any] = dict(store.storage_info())
        if state.db != ":memory:":
            data["file_size_bytes"] = os.path.getsize(state.db)
        data["kinds"] = {kind: store.count_records(kind) for kind in store.kinds()}

        if json_mode:
            print_object(data, json_mode=True)
        else:
            print(f"Backend: {data['backend']}")
            print(f"Database: {data['db_path']}")
            if "file_size_bytes" in data:
                print(f"File size: {int(data['file_size_bytes']):,} bytes")
            print(f"Records: {data['records']}")
            if data["kinds"]:
                print()
                print_table(["kind", "records"], [[k, n] for k, n in data["kinds"].items()])
    except Exception as e:
        print_error(str(e))
        raise typer.Exit(ec.EXECUTION_FAILURE)
    finally:
        ds.close()
