"""Rich-powered console output for cdkdiff."""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Console as RichConsole
from rich.markdown import Markdown
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

if TYPE_CHECKING:
    from cdkdiff.assembly.models import Stage
    from cdkdiff.diff.models import DiffResult


class Console:
    """Terminal output for cdkdiff using Rich."""

    def __init__(self, stderr: bool = False) -> None:
        self.console = RichConsole(stderr=stderr)

    def banner(self, version: str) -> None:
        self.console.print(
            Panel(
                f"[bold cyan]cdkdiff[/bold cyan] [dim]v{version}[/dim]\n"
                "[dim]CDK diffs for pull requests[/dim]",
                border_style="cyan",
                padding=(0, 2),
            )
        )

    def success(self, message: str) -> None:
        self.console.print(f"[green]✓[/green] {escape(message)}")

    def error(self, message: str) -> None:
        self.console.print(f"[red]✗[/red] {escape(message)}")

    def warning(self, message: str) -> None:
        self.console.print(f"[yellow]![/yellow] {escape(message)}")

    def info(self, message: str) -> None:
        self.console.print(f"[blue]i[/blue] {escape(message)}")

    def markdown(self, text: str) -> None:
        """Render markdown text."""
        self.console.print(Markdown(text))

    def show_results(self, directory: str, results: list[DiffResult]) -> None:
        """Display the stack outcomes of one directory."""
        table = Table(title=f"CDK diff: {directory}", border_style="cyan")
        table.add_column("Stack", style="bold")
        table.add_column("Outcome")
        table.add_column("+/~/-", justify="right", style="cyan")
        table.add_column("Replacements", justify="right")

        colors = {"changed": "yellow", "unchanged": "green", "error": "red"}
        for r in results:
            color = colors.get(r.outcome.value, "white")
            counts = (
                f"{r.resources.added}/{r.resources.updated}/{r.resources.removed}"
                if r.resources else "-"
            )
            replaced = "n/a" if r.replacements is None else str(len(r.replacements))
            table.add_row(
                r.stage.display_name, f"[{color}]{r.outcome.value}[/{color}]", counts, replaced
            )

        self.console.print(table)

    def show_stages(self, stages: list[Stage]) -> None:
        """Display selected stacks."""
        table = Table(border_style="cyan")
        table.add_column("#", justify="right", style="dim")
        table.add_column("Stack", style="bold")
        table.add_column("Artifact")
        table.add_column("Assembly", style="dim")
        for i, stage in enumerate(stages, 1):
            table.add_row(
                str(i), stage.display_name, stage.artifact_id, stage.nested_assembly or "(main)"
            )
        self.console.print(table)
