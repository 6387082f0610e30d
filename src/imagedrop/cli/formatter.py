# src/imagedrop/cli/formatter.py
import difflib
from typing import List

from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from imagedrop.core.models import PipelineRun, RunState

# Shared Rich console for all operator-facing output
console = Console()


class DeployFormatter:
    """
    Renders operator output: the banner, manifest diffs and
    the step report of a pipeline run.
    """

    def __init__(self, out: Console = console):
        self.console = out

    def print_header(self, subtitle: str, version: str):
        self.console.print(Panel.fit(
            f"[bold cyan]ImageDrop v{version}[/bold cyan]\n"
            "══════════════════════════════════════════════════",
            title=f"[bold white]{subtitle}[/bold white]",
            border_style="cyan"
        ))

    def display_diff(self, original_text: str, patched_text: str, file_name: str):
        """Colorized unified diff between the live manifest and the patched one."""
        diff_list = list(difflib.unified_diff(
            original_text.splitlines(),
            patched_text.splitlines(),
            fromfile=f"live: {file_name}",
            tofile="patched",
            lineterm=""
        ))

        if not diff_list:
            self.console.print(f"[dim]ℹ No changes needed for {file_name}.[/dim]")
            return

        syntax = Syntax("\n".join(diff_list), "diff", theme="monokai", line_numbers=True)
        self.console.print(Panel(syntax, title=f"Proposed patch: {file_name}", border_style="green"))

    def show_matches(self, services: List[str], reference: str):
        if not services:
            self.console.print(f"[bold yellow]⚠️  No service matches this archive.[/bold yellow]")
            return
        for name in services:
            self.console.print(f"[bold cyan]→[/bold cyan] service [white]{name}[/white] -> {reference}")

    def print_run(self, run: PipelineRun):
        """Step table shown after a manual 'deploy'."""
        title = run.identity.reference if run.identity else run.artifact_path
        table = Table(title=f"Deployment Report: {title}", show_lines=True, header_style="bold magenta")
        table.add_column("Step", style="cyan")
        table.add_column("Result", justify="center")
        table.add_column("Detail", style="white")

        for outcome in run.steps:
            table.add_row(outcome.step, "✅" if outcome.ok else "❌", outcome.detail)

        self.console.print(table)
        color = "green" if run.state is RunState.DONE else "red"
        self.console.print(f"Final state: [bold {color}]{run.state.name}[/bold {color}]")
