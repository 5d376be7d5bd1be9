"""
Spawny UI - Run summary table using rich library
"""
from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from spawny.models import ChainReport, Outcome, RunResult

OUTCOME_STYLES = {
    Outcome.SUCCEEDED: "[green]succeeded[/green]",
    Outcome.FAILED: "[red]failed[/red]",
    Outcome.CANCELLED: "[yellow]cancelled[/yellow]",
    Outcome.RUNNING: "[dim]running[/dim]",
}


class RunSummary:
    """Per-chain summary of a finished run, printed to stderr"""

    def __init__(self, result: RunResult, console: Optional[Console] = None):
        self.result = result
        self.console = console or Console(stderr=True)

    def _format_duration(self, seconds: float) -> str:
        """Format seconds as 0.4s, 12.3s or 2m05s"""
        if seconds < 60:
            return f"{seconds:.1f}s"
        minutes, secs = divmod(int(seconds), 60)
        return f"{minutes}m{secs:02d}s"

    def _format_code(self, report: ChainReport) -> str:
        if report.error:
            return f"{report.exit_code} (launch)"
        if report.returncode is None:
            return "-"
        if report.returncode < 0:
            return f"sig {-report.returncode}"
        return str(report.returncode)

    def _format_steps(self, report: ChainReport, total: int) -> str:
        if report.outcome is Outcome.SUCCEEDED:
            return f"{total}/{total}"
        return f"{report.step + 1}/{total}"

    def render_table(self) -> Table:
        """Render one row per chain; the race winner is marked with *"""
        title = f"Spawny - exit status {self.result.exit_code}"
        table = Table(title=title, show_header=True)
        table.add_column("", width=1)
        table.add_column("Chain", style="magenta", justify="right")
        table.add_column("Command", style="cyan")
        table.add_column("Outcome")
        table.add_column("Step", style="blue")
        table.add_column("Code", style="blue")
        table.add_column("Time", style="blue")

        for report in sorted(self.result.reports, key=lambda r: r.index):
            command = escape(report.command.display) if report.command else "-"
            marker = "*" if report.index == self.result.winner.index else ""
            outcome = OUTCOME_STYLES.get(report.outcome, report.outcome.value)
            if report.terminated:
                outcome += " [dim](terminated)[/dim]"
            table.add_row(
                marker,
                str(report.index),
                command,
                outcome,
                self._format_steps(report, report.total_steps),
                self._format_code(report),
                self._format_duration(report.duration),
            )
        return table

    def print(self):
        self.console.print(self.render_table())
