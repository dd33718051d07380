"""
Rich rendering of run reports, repository listings and ledger entries.
"""

from typing import Any, Iterable

from rich.console import Console
from rich.table import Table

from gitops_core.models import Repository, RunReport


def _outcome_table(title: str, style: str, rows: Iterable[Any]) -> Table:
    table = Table(title=title, title_style=style, show_lines=False)
    table.add_column("#", justify="right")
    table.add_column("Repository")
    table.add_column("Ref")
    table.add_column("Reason")
    for index, outcome in enumerate(rows, start=1):
        table.add_row(str(index), outcome.repository, outcome.ref or "", outcome.reason or "")
    return table


def render_report(report: RunReport, console: Console) -> None:
    """Print successful, skipped and failed repositories and general errors."""
    header = f"[bold]{report.operation}[/bold] on {', '.join(report.organizations)}"
    if report.dry_run:
        header += " [yellow](dry run)[/yellow]"
    console.print(header)

    if report.succeeded:
        console.print(_outcome_table("Successful", "bold green", report.succeeded))
    if report.skipped:
        console.print(_outcome_table("Skipped", "bold yellow", report.skipped))
    if report.failed:
        console.print(_outcome_table("Failed", "bold red", report.failed))
    if report.general_errors:
        table = Table(title="General errors", title_style="bold red")
        table.add_column("#", justify="right")
        table.add_column("Message")
        for index, message in enumerate(report.general_errors, start=1):
            table.add_row(str(index), message)
        console.print(table)

    console.print(
        f"[green]{len(report.succeeded)} succeeded[/green], "
        f"[yellow]{len(report.skipped)} skipped[/yellow], "
        f"[red]{len(report.failed)} failed[/red]"
    )


def render_repositories(repositories: list[Repository], console: Console) -> None:
    table = Table(title="Repositories")
    table.add_column("#", justify="right")
    table.add_column("Repository")
    table.add_column("Default branch")
    for index, repository in enumerate(repositories, start=1):
        table.add_row(str(index), repository.full_name, repository.default_branch)
    console.print(table)


def render_runs(runs: list[dict[str, Any]], console: Console) -> None:
    table = Table(title="Recent runs")
    for column in ("Id", "Operation", "Organizations", "Started", "OK", "Skipped", "Failed"):
        table.add_column(column)
    for run in runs:
        table.add_row(
            str(run["id"]),
            run["operation"] + (" (dry run)" if run["dry_run"] else ""),
            ", ".join(run["organizations"]),
            run["started_at"] or "",
            str(run["succeeded"]),
            str(run["skipped"]),
            str(run["failed"]),
        )
    console.print(table)
