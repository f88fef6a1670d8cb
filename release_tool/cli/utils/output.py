# release_tool/cli/utils/output.py
"""Output formatting utilities"""

from typing import List

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from ...api.exceptions import ReleaseToolError
from ...constants import EMOJI_ERROR, EMOJI_SUCCESS, EMOJI_WARNING
from ...models import DeploymentLogEntry, OperationResult, OperationStatus, StatusReport

console = Console()

_BORDER_STYLES = {
    OperationStatus.SUCCESS: "green",
    OperationStatus.ROLLED_BACK: "yellow",
    OperationStatus.FAILED: "red",
    OperationStatus.CRITICAL: "bold red",
}


def format_operation_result(result: OperationResult) -> None:
    """Format and display a setup, deploy or rollback result"""
    title = f"{result.operation.capitalize()} Result"
    border = _BORDER_STYLES.get(result.status, "red")

    if result.is_success:
        lines = [f"[green]{EMOJI_SUCCESS}[/green] {escape(result.message or 'Done')}"]
    else:
        lines = [f"[red]{EMOJI_ERROR} {result.operation.capitalize()} "
                 f"{result.status.value}:[/red] {escape(result.error or 'unknown error')}"]

    lines.append("")
    lines.append(f"[bold]Application:[/bold] {escape(result.app_name)}")
    if result.release_id:
        lines.append(f"[bold]Release:[/bold] {escape(result.release_id)}")
    if result.previous_release:
        lines.append(f"[bold]Previous:[/bold] {escape(result.previous_release)}")
    if result.failed_stage:
        lines.append(f"[bold]Failed at:[/bold] {result.failed_stage.value}")
    if result.duration is not None:
        lines.append(f"[bold]Duration:[/bold] {result.duration:.1f}s")

    for error in result.errors[1:]:
        lines.append(f"  [red]• {escape(error.message)}[/red]")

    if result.warnings:
        lines.append("")
        for warning in result.warnings:
            lines.append(f"[yellow]{EMOJI_WARNING} {escape(warning)}[/yellow]")

    console.print(Panel("\n".join(lines), title=title, border_style=border))


def format_status(report: StatusReport) -> None:
    """Format and display an application's status"""
    current_id = report.current.release_id if report.current else None

    lines = [
        f"[bold]Application:[/bold] {escape(report.app_name)}",
        f"[bold]Directory:[/bold] {report.base_dir}",
        f"[bold]Current:[/bold] {escape(current_id) if current_id else '[dim]none[/dim]'}",
        f"[bold]Process:[/bold] {escape(report.process_state or 'unknown')}",
    ]
    if report.config:
        lines.append(f"[bold]Source:[/bold] {escape(report.config.source)}")
        lines.append(f"[bold]Script:[/bold] {escape(report.config.script)}")
        if report.config.env:
            lines.append(f"[bold]Env:[/bold] {escape(', '.join(sorted(report.config.env)))}")

    console.print(Panel("\n".join(lines), title="Status", border_style="cyan"))

    if not report.releases:
        console.print("[dim]No releases installed[/dim]")
        return

    table = Table(title="Installed releases", box=box.ROUNDED)
    table.add_column("", width=1)
    table.add_column("Release", style="cyan")
    table.add_column("Installed")

    for release in report.releases:
        marker = "*" if release.release_id == current_id else ""
        table.add_row(
            marker,
            release.release_id,
            release.installed_at.strftime("%Y-%m-%d %H:%M:%S")
        )

    console.print(table)


def format_history(entries: List[DeploymentLogEntry]) -> None:
    """Format and display deployment log entries"""
    if not entries:
        console.print("[dim]No deployments recorded[/dim]")
        return

    table = Table(title="Deployment history", box=box.ROUNDED)
    table.add_column("Time")
    table.add_column("Operation")
    table.add_column("Release", style="cyan")
    table.add_column("Outcome")
    table.add_column("Actor")
    table.add_column("Stage")
    table.add_column("Detail")

    for entry in entries:
        outcome_style = "green" if entry.outcome == OperationStatus.SUCCESS.value else "red"
        table.add_row(
            entry.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            entry.operation,
            escape(entry.release_id or "-"),
            f"[{outcome_style}]{entry.outcome}[/{outcome_style}]",
            escape(entry.actor),
            entry.stage or "-",
            escape(entry.detail)
        )

    console.print(table)


def print_error(error: ReleaseToolError) -> None:
    """Display an exception raised outside an operation result"""
    console.print(Panel(
        f"[red]{EMOJI_ERROR}[/red] {escape(str(error))}",
        title="Error",
        border_style="red"
    ))
