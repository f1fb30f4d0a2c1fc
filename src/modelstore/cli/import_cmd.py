"""modelstore import: load records written by ``modelstore export``."""

from __future__ import annotations

import os

import typer

from modelstore.cli import _exitcodes as ec
from modelstore.cli._output import print_error, print_object
from modelstore.cli._storage import open_datastore
from modelstore.codec import read_records
from modelstore.errors import ConversionError


def import_cmd(
    input_path: str = typer.Argument(..., help="File produced by 'modelstore export'"),
) -> None:
    """Write every record of an export file, replacing records with the same key."""
    from modelstore.cli import state

    if not os.path.isfile(input_path):
        print_error(f"Input file not found: {input_path}")
        raise typer.Exit(ec.USAGE_ERROR)

    try:
        with open(input_path, "rb") as f:
            records = read_records(f)
    except ConversionError as e:
        print_error(f"{input_path}: {e}")
        raise typer.Exit(ec.USAGE_ERROR)

    if not records:
        print("No records to import.")
        return

    ds = open_datastore()
    try:
        tx = ds.begin_transaction()
        try:
            ds.put_all(records, tx)
            ds.commit(tx)
        except Exception:
            if tx.is_active:
                ds.rollback(tx)
            raise
        if state.json_output:
            print_object({"imported": len(records)}, json_mode=True)
        else:
            print(f"Imported {len(records)} record(s)")
    except Exception as e:
        print_error(str(e))
        raise typer.Exit(ec.EXECUTION_FAILURE)
    finally:
        ds.close()
