"""CLI interface for the antivirus panel."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

import typer
from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.progress_bar import ProgressBar
from rich.table import Table

from avpanel.client.daemon_client import DaemonClient
from avpanel.errors import PanelError
from avpanel.formatting import format_duration, format_size, format_timestamp, truncate_path
from avpanel.models.model_daemon import ScanKind, ThreatAction
from avpanel.models.model_state import AppState, Notification, ScanState, Severity
from avpanel.sync.commands import CommandDispatcher
from avpanel.sync.session import PanelSession

T = TypeVar("T")

app = typer.Typer(
    name="avpanel",
    help="avpanel - Control panel for the antivirus scanning daemon",
)

console = Console()

_SEVERITY_STYLES = {
    Severity.INFO: "cyan",
    Severity.SUCCESS: "green",
    Severity.WARNING: "yellow",
    Severity.ERROR: "red",
}


def _get_status_color(status: str) -> str:
    """Get color for scan/record status display."""
    if status in ("completed", "success"):
        return "green"
    elif status in ("scanning", "running"):
        return "cyan"
    elif status in ("stopped", "idle"):
        return "yellow"
    else:
        return "red"


@app.callback()
def main(
    ctx: typer.Context,
    api_base: str | None = typer.Option(
        None, "--api-base", help="Relay base URL (default: $AVPANEL_API_BASE or local relay)"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logs"),
) -> None:
    """Talk to the scanning daemon through its HTTP relay."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    ctx.obj = {"api_base": api_base}


def _confirm_with(assume_yes: bool) -> Callable[[str], bool]:
    if assume_yes:
        return lambda prompt: True
    return lambda prompt: typer.confirm(prompt, default=False)


def _run(
    ctx: typer.Context,
    action: Callable[[PanelSession], Awaitable[T]],
    assume_yes: bool = False,
) -> T:
    """Connect, run ``action`` against a ready session, then close it.

    Exits with code 1 when the daemon cannot be reached.
    """

    async def run() -> T:
        client = DaemonClient(api_base=ctx.obj["api_base"])
        async with PanelSession(client=client, confirm=_confirm_with(assume_yes)) as session:
            if not await session.start():
                console.print(f"[red]Error:[/red] Cannot reach the daemon at {client.api_base}")
                raise typer.Exit(1)
            return await action(session)

    try:
        return asyncio.run(run())
    except PanelError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)


def _load_state(ctx: typer.Context) -> AppState:
    """Connect, wait for the initial load and return the mirrored state."""

    async def action(session: PanelSession) -> AppState:
        return session.store

    return _run(ctx, action)


def _dispatch(
    ctx: typer.Context,
    operation: Callable[[CommandDispatcher], Awaitable[bool]],
    assume_yes: bool = False,
) -> None:
    """Run one command and print the notifications it produced.

    Exits with code 1 when the command failed. A declined confirmation is
    not a failure.
    """

    async def action(session: PanelSession) -> tuple[bool, list[Notification]]:
        before = len(session.notifications.history)
        ok = await operation(session.commands)
        return ok, list(session.notifications.history)[before:]

    ok, notifications = _run(ctx, action, assume_yes=assume_yes)
    for notification in notifications:
        style = _SEVERITY_STYLES[notification.severity]
        console.print(f"[{style}]{notification.message}[/{style}]")

    if not ok:
        if not notifications:
            console.print("[dim]Cancelled[/dim]")
            return
        raise typer.Exit(1)


def _status_table(store: AppState) -> Table:
    table = Table(title="Daemon Status", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")

    connection = store.connection
    if connection.connected:
        table.add_row("Connection", "[green]connected[/green]")
    elif connection.checking:
        table.add_row("Connection", "[yellow]checking[/yellow]")
    else:
        table.add_row("Connection", f"[red]unreachable[/red] (retry {connection.retry_count})")

    table.add_row("Scanning", "yes" if store.system.is_scanning else "no")
    table.add_row("Updating", "yes" if store.update.is_updating else "no")
    version = store.signature_version
    table.add_row("Signatures", f"{version.summary} / {version.main_label}")
    table.add_row("Total threats", str(store.total_threats))
    table.add_row("Quarantined files", str(len(store.quarantine)))
    return table


def _scan_panel(store: AppState) -> Panel:
    scan = store.scan
    color = _get_status_color(scan.status.value)
    lines: list = [f"Status: [{color}]{scan.status.value}[/{color}]  [dim]{scan.scan_id or ''}[/dim]"]

    if scan.progress is not None:
        progress = scan.progress
        lines.append(ProgressBar(total=100, completed=min(progress.percent, 100.0)))
        lines.append(
            f"{progress.percent:.1f}%  {progress.scanned}/{progress.estimated_total} files"
        )
        if progress.current_file:
            lines.append(f"[dim]{truncate_path(progress.current_file)}[/dim]")

    if scan.threats is not None and scan.threats.count:
        lines.append(f"[red]{scan.threats.count} threats found[/red]")
        for threat in scan.threats.files[:5]:
            lines.append(f"  [dim]{truncate_path(threat.path)}[/dim] {threat.virus}")

    return Panel(Group(*lines), title="Scan")


def _render(store: AppState) -> Group:
    parts: list = [_status_table(store)]
    if store.ui.show_progress or store.scan.status != ScanState.IDLE:
        parts.append(_scan_panel(store))
    notification = store.notification
    if notification.visible:
        style = _SEVERITY_STYLES[notification.severity]
        parts.append(f"[{style}]{notification.message}[/{style}]")
    return Group(*parts)


def _threats_table(store: AppState) -> Table:
    table = Table(title=f"Threats ({len(store.threats)})")
    table.add_column("ID", justify="right", style="cyan")
    table.add_column("Virus", style="red")
    table.add_column("File")
    table.add_column("Detected", style="dim")
    table.add_column("Action", style="yellow")

    for threat in store.threats:
        table.add_row(
            str(threat.id),
            threat.virus_name,
            truncate_path(threat.file_path),
            format_timestamp(threat.detected_time),
            threat.action_taken or "pending",
        )
    return table


def _quarantine_table(store: AppState) -> Table:
    table = Table(title=f"Quarantine ({len(store.quarantine)})")
    table.add_column("UUID", style="cyan")
    table.add_column("Original path")
    table.add_column("Size", justify="right")
    table.add_column("Virus", style="red")
    table.add_column("Quarantined", style="dim")

    for item in store.quarantine:
        table.add_row(
            item.uuid,
            truncate_path(item.original_path),
            format_size(item.file_size),
            item.virus_name,
            format_timestamp(item.quarantined_at),
        )
    return table


def _history_table(store: AppState) -> Table:
    table = Table(title=f"Scan History ({len(store.scan_history)})")
    table.add_column("ID", justify="right", style="cyan")
    table.add_column("Type", style="blue")
    table.add_column("Status")
    table.add_column("Started", style="dim")
    table.add_column("Duration", justify="right", style="dim")
    table.add_column("Files", justify="right")
    table.add_column("Threats", justify="right", style="magenta")

    for entry in store.scan_history:
        color = _get_status_color(entry.status)
        table.add_row(
            str(entry.id),
            entry.scan_type,
            f"[{color}]{entry.status}[/{color}]",
            format_timestamp(entry.start_time),
            format_duration(entry.start_time, entry.end_time),
            str(entry.scanned_files),
            str(entry.threats_found),
        )
    return table


@app.command()
def status(ctx: typer.Context) -> None:
    """Show daemon connection, scan and signature status."""
    store = _load_state(ctx)
    console.print(_status_table(store))
    if store.system.is_scanning:
        console.print("\n[cyan]A scan is in progress. Use 'avpanel watch' to follow it.[/cyan]")


@app.command()
def watch(
    ctx: typer.Context,
    duration: float = typer.Option(0, "--duration", "-d", help="Stop after N seconds (0 = until Ctrl-C)"),
    refresh: float = typer.Option(0.5, "--refresh", help="Redraw interval (seconds)"),
) -> None:
    """Follow the daemon live, reconnecting automatically."""

    async def run() -> None:
        client = DaemonClient(api_base=ctx.obj["api_base"])
        async with PanelSession(client=client) as session:
            await session.start()
            loop = asyncio.get_running_loop()
            deadline = loop.time() + duration if duration > 0 else None
            with Live(_render(session.store), console=console, refresh_per_second=4) as live:
                while deadline is None or loop.time() < deadline:
                    await asyncio.sleep(refresh)
                    live.update(_render(session.store))

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        console.print("\n[dim]Stopped watching[/dim]")


@app.command()
def scan(
    ctx: typer.Context,
    kind: ScanKind = typer.Argument(ScanKind.FULL, help="Scan kind (full, custom)"),
    paths: list[str] = typer.Option(None, "--path", "-p", help="Custom scan root (repeatable)"),
) -> None:
    """Start a full or custom scan."""
    _dispatch(ctx, lambda commands: commands.start_scan(kind, paths or None))
    console.print("Use 'avpanel watch' to follow progress")


@app.command()
def stop(ctx: typer.Context) -> None:
    """Stop the running scan."""
    _dispatch(ctx, lambda commands: commands.stop_scan())


@app.command()
def update(ctx: typer.Context) -> None:
    """Start a signature database update."""
    _dispatch(ctx, lambda commands: commands.start_update())


@app.command()
def threats(ctx: typer.Context) -> None:
    """List detected threats."""
    store = _load_state(ctx)
    if not store.threats:
        console.print("[green]No threats detected.[/green]")
        return
    console.print(_threats_table(store))


@app.command()
def handle(
    ctx: typer.Context,
    threat_id: int = typer.Argument(..., help="Threat ID"),
    action: ThreatAction = typer.Argument(..., help="quarantine, delete or ignore"),
) -> None:
    """Apply an action to a detected threat."""
    _dispatch(ctx, lambda commands: commands.handle_threat(threat_id, action))


@app.command()
def quarantine(ctx: typer.Context) -> None:
    """List quarantined files."""
    store = _load_state(ctx)
    if not store.quarantine:
        console.print("[green]Quarantine is empty.[/green]")
        return
    console.print(_quarantine_table(store))


@app.command()
def restore(
    ctx: typer.Context,
    uuid: str = typer.Argument(..., help="Quarantine entry UUID"),
) -> None:
    """Restore a quarantined file to its original location."""
    _dispatch(ctx, lambda commands: commands.restore_quarantine(uuid))


@app.command()
def delete(
    ctx: typer.Context,
    uuid: str = typer.Argument(..., help="Quarantine entry UUID"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
) -> None:
    """Permanently delete a quarantined file."""
    _dispatch(ctx, lambda commands: commands.delete_quarantine(uuid), assume_yes=yes)


@app.command()
def cleanup(
    ctx: typer.Context,
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
) -> None:
    """Delete every quarantined file."""
    _dispatch(ctx, lambda commands: commands.cleanup_quarantine(), assume_yes=yes)


@app.command()
def history(
    ctx: typer.Context,
    limit: int = typer.Option(20, "--limit", "-l", help="Number of records"),
) -> None:
    """Show scan history."""
    store = _load_state(ctx)
    if not store.scan_history:
        console.print("[yellow]No scans recorded.[/yellow]")
        return
    total = store.total_threats
    store.scan_history = store.scan_history[:limit]
    console.print(_history_table(store))
    console.print(f"\nTotal threats across all scans: [magenta]{total}[/magenta]")


@app.command("history-delete")
def history_delete(
    ctx: typer.Context,
    record_id: int = typer.Argument(..., help="Scan record ID"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
) -> None:
    """Delete one scan record."""
    _dispatch(ctx, lambda commands: commands.delete_scan_history(record_id), assume_yes=yes)


@app.command("history-clear")
def history_clear(
    ctx: typer.Context,
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
) -> None:
    """Delete the entire scan history."""
    _dispatch(ctx, lambda commands: commands.clear_scan_history(), assume_yes=yes)


@app.command()
def config(ctx: typer.Context) -> None:
    """Show the daemon configuration."""
    panel_config = _load_state(ctx).config

    table = Table(title="Configuration", show_header=False)
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    table.add_row("Scan paths", "\n".join(panel_config.scan_paths) or "[dim]none[/dim]")
    table.add_row("Auto update", "on" if panel_config.auto_update else "off")
    table.add_row("Quarantine", "on" if panel_config.quarantine_enabled else "off")
    table.add_row("Threat action", panel_config.threat_action.value)
    console.print(table)


@app.command("config-set")
def config_set(
    ctx: typer.Context,
    paths: list[str] = typer.Option(None, "--path", "-p", help="Scan root (repeatable, replaces the list)"),
    auto_update: bool | None = typer.Option(None, "--auto-update/--no-auto-update", help="Scheduled updates"),
    quarantine_enabled: bool | None = typer.Option(
        None, "--quarantine/--no-quarantine", help="Quarantine instead of deleting"
    ),
    threat_action: ThreatAction | None = typer.Option(None, "--action", help="Default threat action"),
) -> None:
    """Change daemon configuration. Unspecified settings keep their value."""
    changes: dict = {}
    if paths:
        changes["scan_paths"] = paths
    if auto_update is not None:
        changes["auto_update"] = auto_update
    if quarantine_enabled is not None:
        changes["quarantine_enabled"] = quarantine_enabled
    if threat_action is not None:
        changes["threat_action"] = threat_action

    if not changes:
        console.print("[yellow]Nothing to change.[/yellow]")
        return

    _dispatch(ctx, lambda commands: commands.update_config(**changes))


if __name__ == "__main__":
    app()
