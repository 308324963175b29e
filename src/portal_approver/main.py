"""
Portal Approver - CLI Entry Point.

Configuration Priority:
    1. CLI options (--mode, --batch-size, --headless)
    2. Config file (config.yaml)
    3. Environment variables (PORTAL_APPROVER__APPROVAL__BATCH_SIZE, etc.)

Usage:
    portal-approver requests.csv
    portal-approver requests.txt --mode per_row --batch-size 10
"""

import asyncio
import logging
import signal
from pathlib import Path
from typing import Any, Dict, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from portal_approver import __version__
from portal_approver.config import load_config
from portal_approver.core import ApprovalRunner, RunResult, RunStatus
from portal_approver.exceptions import ConfigurationError, InputFileError
from portal_approver.requests_file import read_request_ids
from portal_approver.utils.logging import setup_logging
from portal_approver.utils.waiting import CancelToken

# Create the CLI app
app = typer.Typer(
    name="portal-approver",
    help="Bulk-approve portal requests across acting identities",
    add_completion=False,
)

console = Console()
logger = logging.getLogger(__name__)

OUTCOME_STYLES = {
    "approved": "green",
    "approved_two_phase": "green",
    "not_found": "yellow",
    "found_but_action_failed": "red",
}


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"[bold]Portal Approver[/bold] v{__version__}")
        raise typer.Exit()


@app.command()
def approve(
    requests_file: Path = typer.Argument(..., help="File with one request ID per line (first CSV field)"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file (default: config.yaml)"),
    mode: Optional[str] = typer.Option(None, "--mode", "-m", help="Interaction mode: bulk or per_row"),
    batch_size: Optional[int] = typer.Option(None, "--batch-size", "-b", help="Approvals per sub-batch"),
    headless: Optional[bool] = typer.Option(None, "--headless/--visible", help="Browser visibility (default: from config)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Show version and exit",
    ),
):
    """
    Approve every request listed in REQUESTS_FILE.

    Identities are visited in the configured order (primary first). The
    run log is written to the diagnostics output directory as it goes.

    Examples:
        portal-approver ids.txt
        portal-approver ids.csv --mode per_row --visible
    """
    # Input errors end the run before any browser is launched
    try:
        ids = read_request_ids(requests_file)
    except InputFileError as e:
        console.print(f"[red]Error: {e.message}[/red]")
        raise typer.Exit(1)

    overrides: Dict[str, Any] = {}
    if mode is not None:
        overrides.setdefault("approval", {})["mode"] = mode
    if batch_size is not None:
        overrides.setdefault("approval", {})["batch_size"] = batch_size
    if headless is not None:
        overrides["browser"] = {"headless": headless}

    try:
        settings = load_config(config_path=config, **overrides)
        visit_order = settings.visit_order()
    except ConfigurationError as e:
        console.print(f"[red]Configuration error: {e.message}[/red]")
        if e.details.get("hint"):
            console.print(f"[dim]{e.details['hint']}[/dim]")
        raise typer.Exit(1)

    setup_logging(
        level="DEBUG" if verbose else settings.logging.level,
        log_file=settings.logging.file,
        file_format=settings.logging.format,
    )

    console.print(Panel.fit(
        f"[bold blue]Portal Approver[/bold blue]\n"
        f"[dim]Requests:[/dim] {len(ids)} from {requests_file}\n"
        f"[dim]Identities:[/dim] {' → '.join(str(i) for i in visit_order.identities)}"
        + (" → return pass" if visit_order.has_return_pass else "")
        + f"\n[dim]Mode:[/dim] {settings.approval.mode} (batch size {settings.approval.batch_size})",
        border_style="blue",
    ))

    try:
        result = asyncio.run(_run_async(ApprovalRunner(settings), ids))
    except KeyboardInterrupt:
        console.print("[dim]Interrupted[/dim]")
        raise typer.Exit(1)

    if not result.success:
        raise typer.Exit(1)


async def _run_async(runner: ApprovalRunner, ids: list) -> RunResult:
    """Run, print the summary, then hold a browser left open until Ctrl+C."""
    cancel = CancelToken()

    def signal_handler(sig, frame):
        """First Ctrl+C stops at the next wait; a second one aborts."""
        console.print("\n[dim]Stopping after the current step...[/dim]")
        cancel.cancel(f"signal {sig}")
        signal.signal(signal.SIGINT, signal.default_int_handler)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)
    try:
        result = await runner.run(ids, cancel=cancel)
    finally:
        signal.signal(signal.SIGINT, signal.default_int_handler)
        signal.signal(signal.SIGTERM, signal.SIG_DFL)

    _print_summary(result)
    if result.browser_left_open:
        console.print(Panel.fit(
            f"[red]Run stopped: {result.error}[/red]\n"
            + (f"[dim]Diagnostics:[/dim] {result.diagnostics_path}\n" if result.diagnostics_path else "")
            + "[dim]The browser is left open for inspection. Press Ctrl+C to exit.[/dim]",
            border_style="red",
        ))
        await _hold_until_interrupt()
    return result


async def _hold_until_interrupt() -> None:
    """Keep the event loop, and with it the browser, alive until Ctrl+C."""
    loop = asyncio.get_running_loop()
    released = asyncio.Event()

    signal.signal(signal.SIGINT, lambda sig, frame: loop.call_soon_threadsafe(released.set))
    try:
        await released.wait()
    finally:
        signal.signal(signal.SIGINT, signal.default_int_handler)


def _print_summary(result: RunResult) -> None:
    table = Table(show_header=True, header_style="bold cyan", box=None)
    table.add_column("Outcome")
    table.add_column("Count", justify="right")
    for outcome, count in result.summary.items():
        style = OUTCOME_STYLES.get(outcome, "white")
        table.add_row(f"[{style}]{outcome}[/{style}]", str(count))

    console.print()
    console.print(table)
    console.print(f"\n[dim]Run log:[/dim] {result.log_path}")
    console.print(f"[dim]Duration:[/dim] {result.duration_seconds:.1f}s")

    if result.status == RunStatus.COMPLETED:
        console.print("[green]✓ Run completed[/green]")
    elif result.status == RunStatus.CANCELLED:
        console.print("[yellow]Run cancelled; the log holds a partial result[/yellow]")
    else:
        console.print(f"[red]✗ Run failed: {result.error}[/red]")


if __name__ == "__main__":
    app()
