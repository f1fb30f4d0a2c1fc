"""modelstore get / delete: single-record operations addressed by key text."""

from __future__ import annotations

import typer

from modelstore.cli import _exitcodes as ec
from modelstore.cli._output import print_error, print_object, print_records
from modelstore.cli._storage import database_exists, open_datastore
from modelstore.errors import EntityNotFoundError, InvalidArgumentError
from modelstore.key import Key


def _parse_key(text: str) -> Key:
    try:
        return Key.parse(text)
    except InvalidArgumentError as e:
        print_error(str(e))
        raise typer.Exit(ec.USAGE_ERROR)


def get_cmd(key: str = typer.Argument(..., help='Key text, e.g. Person:1 or Person:"alice"')) -> None:
    """Print the record stored under KEY."""
    from modelstore.cli import state

    parsed = _parse_key(key)
    if not database_exists(state.db):
        print_error(f"Database not found: {state.db}")
        raise typer.Exit(ec.DATABASE_ERROR)

    ds = open_datastore()
    try:
        record = ds.get_record(parsed)
        print_records([record], json_mode=state.json_output)
    except EntityNotFoundError as e:
        print_error(str(e))
        raise typer.Exit(ec.NOT_FOUND)
    except typer.Exit:
        raise
    except Exception as e:
        print_error(str(e))
        raise typer.Exit(ec.EXECUTION_FAILURE)
    finally:
        ds.close()


def delete_cmd(keys: list[str] = typer.Argument(..., help="Keys to delete")) -> None:
    """Delete the records stored under KEYS."""
    from modelstore.cli import state

    parsed = [_parse_key(k) for k in keys]
    if not database_exists(state.db):
        print_error(f"Database not found: {state.db}")
        raise typer.Exit(ec.DATABASE_ERROR)

    ds = open_datastore()
    try:
        ds.delete_all(parsed)
        if state.json_output:
            print_object({"deleted": len(parsed)}, json_mode=True)
        else:
            print(f"Deleted {len(parsed)} key(s)")
    except Exception as e:
        print_error(str(e))
        raise typer.Exit(ec.EXECUTION_FAILURE)
    finally:
        ds.close()
