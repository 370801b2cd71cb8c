"""Console reporter with environment detection for scenario run output."""

import os
import sys
from typing import Optional

from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
)
from rich.table import Table
from rich.text import Text

from .models import AssertionRecord, ResultSummary
from .output_config import OutputFormat


class ConsoleReporter:
    """
    Console reporter that adapts to the environment.

    Interactive terminals get a rich progress bar and results table; CI, pipes
    and redirects get plain text; JSON mode prints nothing so the caller can
    emit a machine-readable document.
    """

    def __init__(self, output_format: OutputFormat = OutputFormat.AUTO):
        self.output_format = output_format
        self.quiet = output_format == OutputFormat.JSON
        self._detect_environment()

        self.console: Optional[Console] = Console() if self.use_rich else None
        self.progress: Optional[Progress] = None
        self.progress_task: Optional[TaskID] = None
        self.live: Optional[Live] = None
        self.results_table: Optional[Table] = None

    def _detect_environment(self) -> None:
        if self.output_format == OutputFormat.RICH:
            self.use_rich = True
        elif self.output_format in (OutputFormat.PLAIN, OutputFormat.JSON):
            self.use_rich = False
        else:  # AUTO
            is_terminal = sys.stdout.isatty()
            is_ci = any(
                name in os.environ for name in ("CI", "JENKINS_HOME", "GITLAB_CI", "TRAVIS", "GITHUB_ACTIONS")
            )
            self.use_rich = is_terminal and not is_ci

    def start_run(self, total: int, label: str) -> None:
        if self.quiet:
            return
        if self.use_rich:
            self.progress = Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                BarColumn(),
                TextColumn("{task.completed}/{task.total}"),
                console=self.console,
            )
            self.results_table = Table(show_header=True, header_style="bold cyan")
            self.results_table.add_column("#", style="dim", width=5)
            self.results_table.add_column("Scenario", width=44)
            self.results_table.add_column("Status", width=10)
            self.results_table.add_column("HTTP", justify="right", width=6)
            self.results_table.add_column("Time", justify="right", width=10)
            self.progress_task = self.progress.add_task(f"[cyan]Running {label}", total=total)
            self.live = Live(
                Group(self.progress, self.results_table),
                console=self.console,
                refresh_per_second=4,
            )
            self.live.start()
        else:
            print(f"Running data-driven test: {label}")
            print(f"Total scenarios: {total}")
            print("-" * 80)

    def report_scenario_result(
        self,
        index: int,
        description: str,
        passed: bool,
        status: Optional[int],
        duration_ms: float,
        error_msg: Optional[str] = None,
    ) -> None:
        if self.quiet:
            return
        status_label = "-" if status is None else str(status)
        if self.use_rich and self.results_table is not None and self.progress is not None:
            icon = "✓ PASS" if passed else "✗ FAIL"
            self.results_table.add_row(
                str(index),
                description,
                Text(icon, style="green" if passed else "red"),
                status_label,
                f"{duration_ms:.0f}ms",
            )
            if error_msg and not passed:
                self.results_table.add_row("", Text(f"Error: {error_msg}", style="red"), "", "", "")
            if self.progress_task is not None:
                self.progress.update(self.progress_task, advance=1)
        else:
            outcome = "✓ PASS" if passed else "✗ FAIL"
            print(f"[{index}] {description} ... {outcome} ({status_label}, {duration_ms:.0f}ms)")
            if error_msg and not passed:
                print(f"  Error: {error_msg}")

    def report_assertion(self, record: AssertionRecord) -> None:
        """Failed assertions are echoed in plain mode; rich mode shows them in the table."""
        if self.quiet or self.use_rich or record.passed:
            return
        print(f"  ✗ {record.name}: {record.message or 'failed'}")

    def finish_run(self, summary: ResultSummary) -> None:
        if self.quiet:
            return
        if self.use_rich and self.console is not None:
            if self.live:
                self.live.stop()
            failed = summary.failed_tests
            summary_text = Text()
            summary_text.append(f"Total: {summary.total_tests}  ", style="bold")
            summary_text.append(f"Passed: {summary.passed_tests}  ", style="bold green")
            summary_text.append(f"Failed: {failed}  ", style="bold red" if failed else "bold green")
            summary_text.append(f"Success rate: {summary.success_rate}  ", style="bold")
            summary_text.append(f"Avg: {summary.avg_response_time}ms", style="bold cyan")
            status = "✓ ALL SCENARIOS PASSED" if failed == 0 else "✗ SOME SCENARIOS FAILED"
            self.console.print()
            self.console.print(
                Panel(
                    summary_text,
                    title=Text(status, style="bold green" if failed == 0 else "bold red"),
                    border_style="green" if failed == 0 else "red",
                )
            )
        else:
            print("-" * 80)
            print(
                f"Total: {summary.total_tests} | Passed: {summary.passed_tests} | "
                f"Failed: {summary.failed_tests} | Success rate: {summary.success_rate} | "
                f"Avg response: {summary.avg_response_time}ms"
            )
            print("✓ ALL SCENARIOS PASSED" if summary.failed_tests == 0 else "✗ SOME SCENARIOS FAILED")

    def print_error(self, message: str) -> None:
        if self.use_rich and self.console is not None:
            self.console.print(f"[bold red]Error:[/] {message}")
        else:
            print(f"Error: {message}", file=sys.stderr)

    def print_info(self, message: str) -> None:
        if self.quiet:
            return
        if self.use_rich and self.console is not None:
            self.console.print(f"[cyan]{message}[/]")
        else:
            print(message)
