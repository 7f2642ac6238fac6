"""CLI module for planning and applying list schema migrations.

Usage:
    DB_PROFILE=local list-migrator create
    list-migrator --profile local apply
    list-migrator --profile local apply --confirm
    list-migrator --profile local status
    list-migrator profiles

Commands:
    create    - Diff declared lists against the last snapshot and write the plan
    apply     - Show the plan, or apply it with --confirm
    status    - Show the latest snapshot and pending modifications
    profiles  - List available profiles
"""

import argparse
import asyncio
import logging
import sys
from collections.abc import Sequence
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from list_migrator.artifacts import read_plan
from list_migrator.config import MigratorConfig, load_config
from list_migrator.errors import MigrationError, PartialApplicationError
from list_migrator.factory import (
    ProfileNotFoundError,
    get_active_profile_name,
    get_adapter,
    load_lists,
)
from list_migrator.migrator import (
    apply_modifications,
    create_modifications,
    pending_modifications,
)
from list_migrator.schema.modifications import Modification

console = Console()


# ============================================================================
# Helpers
# ============================================================================


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _config_path(args: argparse.Namespace) -> Path | None:
    return Path(args.config) if args.config else None


def _load_config(args: argparse.Namespace) -> MigratorConfig:
    return load_config(_config_path(args))


def _plan_dir(config: MigratorConfig) -> Path:
    return Path(config.migrations.plan_dir)


def _print_modifications(modifications: Sequence[Modification], title: str) -> None:
    """Render modifications as a table, in application order."""
    if not modifications:
        console.print("[bold green]v[/bold green] Schema is up to date - no modifications")
        return

    table = Table(title=title, show_header=True, header_style="bold")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Object")
    table.add_column("Op")
    table.add_column("Description")

    op_styles = {"create": "green", "remove": "red", "update": "yellow", "rename": "cyan"}
    for i, m in enumerate(modifications, 1):
        style = op_styles[m.op]
        table.add_row(str(i), m.object, f"[{style}]{m.op}[/{style}]", m.describe())

    console.print(table)


# ============================================================================
# Async command implementations
# ============================================================================


async def _async_create(args: argparse.Namespace) -> int:
    """Async implementation for create command.

    Returns:
        0 on success, 1 on failure.
    """
    config = _load_config(args)
    lists = load_lists(args.entry or config.migrations.entry)
    adapter = get_adapter(args.profile, args.env_prefix, _config_path(args))
    try:
        modifications = await create_modifications(
            adapter,
            lists,
            _plan_dir(config),
            history_list=config.migrations.history_list,
        )
    finally:
        await adapter.close()

    _print_modifications(modifications, "Planned Modifications")
    console.print(f"\n[dim]Plan written to[/dim] {_plan_dir(config)}")
    if modifications:
        console.print("[dim]Run[/dim] [cyan]list-migrator apply --confirm[/cyan] [dim]to apply.[/dim]")
    return 0


async def _async_apply(args: argparse.Namespace) -> int:
    """Async implementation for apply command.

    Without ``--confirm`` the plan is only displayed.

    Returns:
        0 on success, 1 on failure.
    """
    config = _load_config(args)
    plan_dir = _plan_dir(config)

    modifications, _ = read_plan(plan_dir)
    _print_modifications(modifications, "Modifications to Apply")

    if not args.confirm:
        console.print("\n[yellow]Dry run - no changes made.[/yellow]")
        console.print("[dim]Run with[/dim] [cyan]--confirm[/cyan] [dim]to apply.[/dim]")
        return 0

    lists = load_lists(args.entry or config.migrations.entry)
    transactional = config.migrations.transactional and not args.no_transaction
    adapter = get_adapter(args.profile, args.env_prefix, _config_path(args))
    try:
        result = await apply_modifications(
            adapter,
            lists,
            plan_dir,
            history_list=config.migrations.history_list,
            transactional=transactional,
        )
    finally:
        await adapter.close()

    console.print()
    console.print(
        f"[bold green]v[/bold green] Applied {result.applied} modification(s)"
        + (f", skipped {result.skipped}" if result.skipped else "")
    )
    if result.record is not None:
        console.print(f"  Snapshot saved at {result.record.created_at.isoformat()}")
    return 0


async def _async_status(args: argparse.Namespace) -> int:
    """Async implementation for status command.

    Returns:
        0 always (informational command), 1 on configuration errors.
    """
    config = _load_config(args)
    profile = get_active_profile_name(args.profile, args.env_prefix)
    lists = load_lists(args.entry or config.migrations.entry)
    adapter = get_adapter(args.profile, args.env_prefix, _config_path(args))
    try:
        modifications, current, record = await pending_modifications(
            adapter, lists, config.migrations.history_list
        )
    finally:
        await adapter.close()

    table = Table(title="Migration Status", show_header=False)
    table.add_column("Key", style="dim")
    table.add_column("Value")

    table.add_row("Current profile", f"[bold cyan]{profile}[/bold cyan]")
    table.add_row("Declared lists", str(len(current)))
    if record is None:
        table.add_row("Latest snapshot", "[yellow]none (first run)[/yellow]")
    else:
        table.add_row("Latest snapshot", record.created_at.isoformat())
    pending_style = "yellow" if modifications else "green"
    table.add_row("Pending", f"[{pending_style}]{len(modifications)}[/{pending_style}]")

    console.print(table)
    return 0


# ============================================================================
# Command handlers
# ============================================================================


def _run(coro_fn, args: argparse.Namespace) -> int:
    """Run an async command, reporting migrator errors instead of raising."""
    try:
        return asyncio.run(coro_fn(args))
    except PartialApplicationError as e:
        console.print(f"\n[bold red]x[/bold red] {e}")
        console.print("[yellow]Applied before the failure:[/yellow]")
        for m in e.applied:
            console.print(f"  - {m.describe()}")
        return 1
    except (MigrationError, FileNotFoundError) as e:
        console.print(f"\n[bold red]x[/bold red] {e}")
        return 1


def cmd_create(args: argparse.Namespace) -> int:
    """Compute and write the migration plan."""
    return _run(_async_create, args)


def cmd_apply(args: argparse.Namespace) -> int:
    """Apply the migration plan."""
    return _run(_async_apply, args)


def cmd_status(args: argparse.Namespace) -> int:
    """Show snapshot and pending-modification status."""
    return _run(_async_status, args)


def cmd_profiles(args: argparse.Namespace) -> int:
    """List available profiles from migrator.toml.

    Reads only local TOML config -- no database calls.

    Returns:
        0 on success, 1 if migrator.toml is missing or invalid.
    """
    try:
        config = _load_config(args)
    except (FileNotFoundError, MigrationError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    try:
        current = get_active_profile_name(args.profile, args.env_prefix)
    except ProfileNotFoundError:
        current = None

    table = Table(title="Database Profiles", show_header=True, header_style="bold")
    table.add_column("", width=2)
    table.add_column("Profile")
    table.add_column("Provider")
    table.add_column("Description")

    for name, profile in config.profiles.items():
        marker = "[bold green]*[/bold green]" if name == current else " "
        name_style = "bold cyan" if name == current else ""
        table.add_row(
            marker,
            f"[{name_style}]{name}[/{name_style}]" if name_style else name,
            profile.provider,
            profile.description or "",
        )

    console.print(table)

    if current:
        console.print("\n[bold green]*[/bold green] = current profile")

    return 0


# ============================================================================
# Main entry point
# ============================================================================


def main(argv: Sequence[str] | None = None) -> int:
    """Main CLI entry point.

    Parses command line arguments and dispatches to appropriate handler.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    parser = argparse.ArgumentParser(
        prog="list-migrator",
        description="Schema migrations for declared lists",
    )

    # Global options
    parser.add_argument(
        "--config",
        default=None,
        help="Path to migrator.toml (default: ./migrator.toml)",
    )
    parser.add_argument(
        "--profile",
        default=None,
        help="Database profile to use (default: from <PREFIX>DB_PROFILE)",
    )
    parser.add_argument(
        "--env-prefix",
        default="",
        help=(
            "Prefix for environment variable lookup "
            "(e.g., --env-prefix APP_ reads APP_DB_PROFILE)"
        ),
    )
    parser.add_argument(
        "--entry",
        default=None,
        help="Declared lists as package.module:attribute (overrides [migrations] entry)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Log every DDL statement",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # create command
    p_create = subparsers.add_parser(
        "create",
        help="Diff declared lists against the last snapshot and write the plan",
    )
    p_create.set_defaults(func=cmd_create)

    # apply command
    p_apply = subparsers.add_parser(
        "apply",
        help="Show the plan, or apply it with --confirm",
    )
    p_apply.add_argument(
        "--confirm",
        action="store_true",
        help="Actually apply the plan (required for changes)",
    )
    p_apply.add_argument(
        "--no-transaction",
        action="store_true",
        help="Apply modifications one by one without a surrounding transaction",
    )
    p_apply.set_defaults(func=cmd_apply)

    # status command
    p_status = subparsers.add_parser(
        "status",
        help="Show the latest snapshot and pending modifications",
    )
    p_status.set_defaults(func=cmd_status)

    # profiles command
    p_profiles = subparsers.add_parser(
        "profiles",
        help="List available profiles",
    )
    p_profiles.set_defaults(func=cmd_profiles)

    args = parser.parse_args(argv)
    _configure_logging(args.verbose)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
