"""modelstore query / count: run record queries over one kind."""

from __future__ import annotations

from typing import Optional

import typer

from modelstore.cli import _exitcodes as ec
from modelstore.cli._filters import apply_to_query
from modelstore.cli._output import print_error, print_object, print_records
from modelstore.cli._storage import database_exists, open_datastore
from modelstore.errors import InvalidArgumentError
from modelstore.key import Key


def query_cmd(
    kind: str = typer.Argument(..., help="Record kind"),
    filter_args: Optional[list[str]] = typer.Option(
        None, "--filter", help="NAME OP VALUE_JSON (repeatable)"
    ),
    sort_args: Optional[list[str]] = typer.Option(
        None, "--sort", help="Property name, prefix with '-' for descending (repeatable)"
    ),
    limit: Optional[int] = typer.Option(None, "--limit", help="Max results"),
    offset: Optional[int] = typer.Option(None, "--offset", help="Skip first N results"),
    ancestor: Optional[str] = typer.Option(None, "--ancestor", help="Ancestor key text"),
) -> None:
    """Query records of a kind."""
    from modelstore.cli import state

    if not database_exists(state.db):
        print_error(f"Database not found: {state.db}")
        raise typer.Exit(ec.DATABASE_ERROR)

    ds = open_datastore()
    try:
        try:
            q = ds.query_kind(kind, _ancestor(ancestor))
            apply_to_query(q, filter_args, sort_args)
            if limit is not None:
                q.limit(limit)
            if offset is not None:
                q.offset(offset)
        except (ValueError, InvalidArgumentError) as e:
            print_error(str(e))
            raise typer.Exit(ec.USAGE_ERROR)

        records = q.as_list()
        print_records(records, json_mode=state.json_output)
        if not state.json_output:
            print(f"\n{len(records)} record(s)")
    except typer.Exit:
        raise
    except Exception as e:
        print_error(str(e))
        raise typer.Exit(ec.EXECUTION_FAILURE)
    finally:
        ds.close()


def count_cmd(
    kind: str = typer.Argument(..., help="Record kind"),
    filter_args: Optional[list[str]] = typer.Option(
        None, "--filter", help="NAME OP VALUE_JSON (repeatable)"
    ),
    ancestor: Optional[str] = typer.Option(None, "--ancestor", help="Ancestor key text"),
) -> None:
    """Count records of a kind."""
    from modelstore.cli import state

    if not database_exists(state.db):
        print_error(f"Database not found: {state.db}")
        raise typer.Exit(ec.DATABASE_ERROR)

    ds = open_datastore()
    try:
        try:
            q = apply_to_query(ds.query_kind(kind, _ancestor(ancestor)), filter_args)
        except (ValueError, InvalidArgumentError) as e:
            print_error(str(e))
            raise typer.Exit(ec.USAGE_ERROR)
        n = q.count()
        if state.json_output:
            print_object({"kind": kind, "count": n}, json_mode=True)
        else:
            print(n)
    except typer.Exit:
        raise
    except Exception as e:
        print_error(str(e))
        raise typer.Exit(ec.EXECUTION_FAILURE)
    finally:
        ds.close()


def _ancestor(text: str | None) -> Key | None:
    return Key.parse(text) if text is not None else None
