"""CLI for the model store.

Thin layer over the persistence engine: every command parses its input,
calls one engine operation, and renders the result with rich.

Usage:
    model-db save entity '{"name": "Room", "fields": [{"name": "id", "type": "number"}]}'
    model-db delete method '{"entity": "Room", "name": "rename"}'
    model-db get entity '{"name": "Room"}'
    model-db batch < commands.jsonl
    model-db changes entity Comment
    model-db changes document project
    model-db doctor --fix
    model-db --profile shared validate
    model-db profiles

Commands:
    save      - Upsert a record by natural key
    delete    - Delete a record by natural key
    get       - Show a record and its children
    batch     - Apply ["save"|"delete", schema, record] JSON lines from stdin
    changes   - Show change targets for an entity or document
    doctor    - Find (and optionally remove) orphaned references
    validate  - Compare the registry with the live database
    profiles  - List profiles from model-db.toml
"""

import argparse
import json
import logging
import sys
from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.table import Table
from sqlalchemy.exc import SQLAlchemyError

from model_db.adapters import SqlAlchemyAdapter
from model_db.changes import document_changed_by, entity_change_targets
from model_db.config import default_config_path, load_db_config
from model_db.doctor import diagnose, repair
from model_db.errors import InvalidRecordError, ModelDbError
from model_db.factory import (
    connect_and_validate,
    get_active_profile_name,
    get_adapter,
    get_store_settings,
)
from model_db.persist import delete, fetch, run_batch, save

console = Console()


# ============================================================================
# Helpers
# ============================================================================


def _open(args: argparse.Namespace) -> SqlAlchemyAdapter:
    return get_adapter(profile_name=args.profile, url=args.db)


def _parse_record(schema_name: str, raw: str) -> dict[str, Any]:
    record = json.loads(raw)
    if not isinstance(record, dict):
        raise InvalidRecordError(schema_name, "record must be a JSON object")
    return record


def _max_depth() -> int:
    return get_store_settings().max_chain_depth


# ============================================================================
# Record commands
# ============================================================================


def cmd_save(args: argparse.Namespace) -> int:
    """Upsert one record.

    Returns:
        0 on success (errors are reported by ``main``).
    """
    record = _parse_record(args.schema, args.json)
    adapter = _open(args)
    try:
        row_id = save(adapter, args.schema, record)
    finally:
        adapter.close()

    if row_id:
        console.print(f"[bold green]v[/bold green] Saved {args.schema} [cyan]{row_id}[/cyan]")
    else:
        console.print(f"[bold green]v[/bold green] Saved {args.schema}")
    return 0


def cmd_delete(args: argparse.Namespace) -> int:
    """Delete one record by natural key."""
    record = _parse_record(args.schema, args.json)
    adapter = _open(args)
    try:
        removed = delete(adapter, args.schema, record)
    finally:
        adapter.close()

    if removed:
        console.print(f"[bold green]v[/bold green] Deleted {args.schema}")
    else:
        console.print(f"[yellow]No {args.schema} matched[/yellow]")
    return 0


def cmd_get(args: argparse.Namespace) -> int:
    """Print a record as JSON.

    Returns:
        0 if found, 1 if no row matches.
    """
    key = _parse_record(args.schema, args.json)
    adapter = _open(args)
    try:
        record = fetch(adapter, args.schema, key)
    finally:
        adapter.close()

    if record is None:
        console.print(f"[red]{args.schema} not found[/red]")
        return 1
    console.print_json(data=record)
    return 0


def cmd_batch(args: argparse.Namespace) -> int:
    """Apply JSON-lines commands from stdin, one transaction per line.

    Blank lines are skipped.  A line that is not valid JSON counts as a
    failure and does not stop the batch.

    Returns:
        0 if every command applied, 1 otherwise.
    """
    line_numbers: list[int] = []
    commands: list[Any] = []
    parse_errors = 0

    for lineno, line in enumerate(sys.stdin, start=1):
        line = line.strip()
        if not line:
            continue
        try:
            commands.append(json.loads(line))
            line_numbers.append(lineno)
        except json.JSONDecodeError as e:
            console.print(f"[red]line {lineno}: invalid JSON: {escape(str(e))}[/red]")
            parse_errors += 1

    adapter = _open(args)
    try:
        result = run_batch(adapter, commands)
    finally:
        adapter.close()

    for failure in result.failures:
        console.print(f"[red]line {line_numbers[failure.index]}: {escape(failure.message)}[/red]")

    failed = result.failed + parse_errors
    style = "green" if failed == 0 else "yellow"
    console.print(f"[{style}]{result.ok} ok, {failed} failed[/{style}]")
    return 0 if failed == 0 else 1


# ============================================================================
# Read-side commands
# ============================================================================


def cmd_changes(args: argparse.Namespace) -> int:
    """Show the change targets of an entity, or what changes a document."""
    adapter = _open(args)
    try:
        if args.kind == "entity":
            targets = entity_change_targets(adapter, args.name, _max_depth())
            table = Table(
                title=f"Change targets for {args.name}", show_header=True, header_style="bold"
            )
            table.add_column("Document")
            table.add_column("Path")
            table.add_column("Foreign keys", style="dim")
            table.add_column("Collection")
            for t in targets:
                table.add_row(
                    t.document,
                    t.path or "(root)",
                    ", ".join(t.foreign_keys),
                    "yes" if t.collection else "",
                )
        else:
            changes = document_changed_by(adapter, args.name, _max_depth())
            table = Table(
                title=f"{args.name} is changed by", show_header=True, header_style="bold"
            )
            table.add_column("Entity")
            table.add_column("Path")
            table.add_column("Foreign keys", style="dim")
            for c in changes:
                table.add_row(c.entity, c.target.path or "(root)", ", ".join(c.target.foreign_keys))
    finally:
        adapter.close()

    console.print(table)
    return 0


def cmd_doctor(args: argparse.Namespace) -> int:
    """Report orphaned references; remove them with ``--fix``.

    Returns:
        0 if the store is clean or was repaired, 1 if orphans remain.
    """
    adapter = _open(args)
    try:
        report = diagnose(adapter)
        if report.total == 0:
            console.print("[bold green]v[/bold green] No orphaned references found.")
            return 0

        table = Table(title="Orphaned rows", show_header=True, header_style="bold")
        table.add_column("Kind")
        table.add_column("Count", justify="right")
        for kind, ids in report.orphaned_links.items():
            table.add_row(f"story_links ({kind})", str(len(ids)))
        if report.orphaned_checks:
            table.add_row("checks (method deleted)", str(len(report.orphaned_checks)))
        if report.orphaned_deps:
            table.add_row("check_deps", str(len(report.orphaned_deps)))
        console.print(table)

        if not args.fix:
            console.print(
                f"\n{report.total} orphaned rows total. "
                "[dim]Run with[/dim] [cyan]--fix[/cyan] [dim]to remove them.[/dim]"
            )
            return 1

        removed = repair(adapter, report)
    finally:
        adapter.close()

    console.print(f"[bold green]v[/bold green] Removed {removed} orphaned rows.")
    return 0


def cmd_validate(args: argparse.Namespace) -> int:
    """Compare the registry with the live database schema.

    The schema is not created first, so a fresh database reports every
    table as missing.

    Returns:
        0 on valid schema, 1 on drift.
    """
    adapter = get_adapter(profile_name=args.profile, url=args.db, create=False)
    try:
        result = connect_and_validate(adapter)
    finally:
        adapter.close()

    if result.valid:
        console.print("[bold green]v[/bold green] Schema is valid")
        if result.extra_tables:
            console.print(
                f"  [dim]Extra tables (ignored): {', '.join(result.extra_tables)}[/dim]"
            )
        return 0

    console.print("[bold red]x[/bold red] Schema has drifted")
    console.print(result.format_report())
    return 1


def cmd_profiles(args: argparse.Namespace) -> int:
    """List available profiles from model-db.toml.

    Reads only local TOML config -- no database calls.

    Returns:
        0 on success, 1 if model-db.toml not found.
    """
    try:
        config = load_db_config()
    except FileNotFoundError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        return 1

    current = get_active_profile_name(args.profile)

    table = Table(title="Database Profiles", show_header=True, header_style="bold")
    table.add_column("", width=2)
    table.add_column("Profile")
    table.add_column("URL", style="dim")
    table.add_column("Description")

    for name, profile in config.profiles.items():
        marker = "[bold green]*[/bold green]" if name == current else " "
        table.add_row(
            marker,
            f"[bold cyan]{name}[/bold cyan]" if name == current else name,
            profile.url,
            profile.description,
        )

    console.print(table)
    console.print(f"[dim]{default_config_path()}[/dim]")
    return 0


# ============================================================================
# Main entry point
# ============================================================================


def main() -> int:
    """Main CLI entry point.

    Parses command line arguments and dispatches to appropriate handler.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    parser = argparse.ArgumentParser(
        prog="model-db",
        description="Schema-driven model store",
    )
    parser.add_argument("--db", help="Database path or SQLAlchemy URL (overrides profiles)")
    parser.add_argument("--profile", help="Profile name from model-db.toml")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    for name, func, help_text in (
        ("save", cmd_save, "Upsert a record by natural key"),
        ("delete", cmd_delete, "Delete a record by natural key"),
        ("get", cmd_get, "Show a record and its children"),
    ):
        p = subparsers.add_parser(name, help=help_text)
        p.add_argument("schema", help="Schema name, e.g. entity")
        p.add_argument("json", help="Record as a JSON object")
        p.set_defaults(func=func)

    # batch command
    p_batch = subparsers.add_parser(
        "batch",
        help='Apply ["save"|"delete", schema, record] JSON lines from stdin',
    )
    p_batch.set_defaults(func=cmd_batch)

    # changes command
    p_changes = subparsers.add_parser(
        "changes",
        help="Show change targets for an entity or document",
    )
    p_changes.add_argument("kind", choices=["entity", "document"])
    p_changes.add_argument("name")
    p_changes.set_defaults(func=cmd_changes)

    # doctor command
    p_doctor = subparsers.add_parser(
        "doctor",
        help="Find orphaned references",
    )
    p_doctor.add_argument("--fix", action="store_true", help="Delete orphaned rows")
    p_doctor.set_defaults(func=cmd_doctor)

    # validate command
    p_validate = subparsers.add_parser(
        "validate",
        help="Compare the registry with the live database",
    )
    p_validate.set_defaults(func=cmd_validate)

    # profiles command
    p_profiles = subparsers.add_parser(
        "profiles",
        help="List available profiles",
    )
    p_profiles.set_defaults(func=cmd_profiles)

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
    )

    try:
        return args.func(args)
    except json.JSONDecodeError as e:
        console.print(f"[red]Error: invalid JSON: {escape(str(e))}[/red]")
        return 1
    except (ModelDbError, SQLAlchemyError, FileNotFoundError) as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        return 1


if __name__ == "__main__":
    sys.exit(main())
