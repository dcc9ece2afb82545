"""CLI entry point for zfs-backup using Typer."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt
from rich.text import Text

from zfsbackup import __version__
from zfsbackup.app import BackupApp
from zfsbackup.config import Configuration, ConfigurationError
from zfsbackup.executor import LocalExecutor
from zfsbackup.logging import configure_logging, create_log_file_path, get_logger
from zfsbackup.models import OperationKind, OperationRequest, PreconditionError
from zfsbackup.theme import BORDER_COLOR, REPORT_BOX, STYLES
from zfsbackup.ui import render_transcript
from zfsbackup.workflows import WorkflowContext, run_operation
from zfsbackup.zfs import check_permissions

USAGE = """\
🗄️  ZFS Backup Management Tool

Usage: zfs-backup [OPTIONS]

Options:
  -b, --backup          Run incremental backup
  -f, --force-backup    Force backup (destructive)
  -u, --unmount         Unmount and power off backup disk
  -c, --config PATH     Use an alternative configuration file
  -v, --version         Show version and exit
  -h, --help            Show this help message

If no options are provided, an interactive TUI menu will be displayed.

Examples:
  sudo zfs-backup              # Show interactive menu
  sudo zfs-backup --backup     # Run incremental backup
  sudo zfs-backup --unmount    # Unmount backup disk

Note: If you have ZFS delegation configured for your user, you can omit sudo."""

# Banner printed before a non-interactive run, with its style key
_BANNERS = {
    OperationKind.BACKUP: ("📦 Running incremental backup...", "status"),
    OperationKind.FORCE_BACKUP: ("🔥 Running force backup...", "warning"),
    OperationKind.UNMOUNT: ("🔌 Unmounting backup disk...", "info"),
}

app = typer.Typer(
    name="zfs-backup",
    help="Interactive ZFS backup tool for NIXROOT to NIXBACKUPS",
    add_completion=False,
)

console = Console()
err_console = Console(stderr=True)

logger = get_logger("zfsbackup.cli")


def _version_callback(value: bool) -> None:
    """Print version and exit if --version flag is provided."""
    if value:
        console.print(f"zfs-backup {__version__}")
        raise typer.Exit()


def _help_callback(value: bool) -> None:
    """Print the usage text and exit if --help flag is provided."""
    if value:
        console.print(Panel(Text(USAGE), box=REPORT_BOX, border_style=BORDER_COLOR, padding=(1, 2), expand=False))
        raise typer.Exit()


def _fail(message: str) -> typer.Exit:
    err_console.print(Text(message, style=STYLES["error"]))
    return typer.Exit(1)


@app.command(
    add_help_option=False,
    context_settings={"ignore_unknown_options": True, "allow_extra_args": True},
)
def main(
    ctx: typer.Context,
    backup: Annotated[bool, typer.Option("--backup", "-b", help="Run incremental backup")] = False,
    force_backup: Annotated[bool, typer.Option("--force-backup", "-f", help="Force backup (destructive)")] = False,
    unmount: Annotated[bool, typer.Option("--unmount", "-u", help="Unmount and power off backup disk")] = False,
    config: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Path to config file (default: ~/.config/zfs-backup/config.yaml)"),
    ] = None,
    help_flag: Annotated[
        bool,
        typer.Option("--help", "-h", callback=_help_callback, is_eager=True, help="Show this help message"),
    ] = False,
    version_flag: Annotated[
        bool,
        typer.Option("--version", "-v", callback=_version_callback, is_eager=True, help="Show version and exit"),
    ] = False,
) -> None:
    """Run one backup operation, or the interactive menu when no option is given."""
    if ctx.args:
        err_console.print(Text(f"❌ Unknown option: {ctx.args[0]}", style=STYLES["error"]))
        err_console.print("Run 'zfs-backup --help' for usage information")
        raise typer.Exit(1)

    selected = [
        kind
        for kind, flag in (
            (OperationKind.BACKUP, backup),
            (OperationKind.FORCE_BACKUP, force_backup),
            (OperationKind.UNMOUNT, unmount),
        )
        if flag
    ]
    if len(selected) > 1:
        raise _fail("❌ Only one of --backup, --force-backup and --unmount can be given")

    try:
        cfg = Configuration.load(config)
    except ConfigurationError as e:
        err_console.print("[bold red]Configuration error:[/bold red]")
        for error in e.errors:
            err_console.print(f"  {error.path}: {error.message}")
        raise typer.Exit(1) from None

    interactive = not selected
    configure_logging(
        log_file_level=cfg.log_file_level,
        log_cli_level=None if interactive else cfg.log_cli_level,
        log_file_path=create_log_file_path(),
    )

    context = WorkflowContext(executor=LocalExecutor(), config=cfg)

    try:
        asyncio.run(check_permissions(context.executor, require_root=cfg.require_root))
    except PreconditionError as e:
        raise _fail(f"⚠️  {e}") from None

    if interactive:
        logger.info("Starting interactive session")
        tui = BackupApp(context)
        tui.run()
        raise typer.Exit(tui.return_code or 0)

    raise typer.Exit(_run_once(selected[0], context))


def _run_once(kind: OperationKind, context: WorkflowContext) -> int:
    """Run a single operation without the interactive UI.

    Returns:
        Exit code: 0=success, 1=failure
    """
    banner, style = _BANNERS[kind]
    console.print(Text(banner, style=STYLES[style]))

    secret = None
    if kind.requires_secret:
        secret = Prompt.ask(f"Enter encryption password for {context.config.backup_pool}", password=True, console=console)

    try:
        request = OperationRequest(kind=kind, secret=secret)
    except ValueError as e:
        console.print(Text(f"❌ {e}", style=STYLES["error"]))
        return 1

    result = asyncio.run(run_operation(request, context))
    if not result.success:
        console.print(Text(f"❌ {result.error}", style=STYLES["error"]))
        return 1
    console.print(render_transcript(result))
    return 0
