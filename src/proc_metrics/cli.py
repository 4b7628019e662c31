"""CLI for proc-metrics.

Provides a rich command-line interface using Typer for:
- Running monitors on a schedule and writing their events
- Resolving a process's cgroup directory
- Generating a sample configuration
"""

from __future__ import annotations

import threading
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from proc_metrics.cgroups.discoverer import ProcCgroupDiscoverer
from proc_metrics.cgroups.pid import IndeterminatePidError, InterningPidDiscoverer
from proc_metrics.core.config import load_config
from proc_metrics.core.constants import CPUACCT_SUBSYSTEM, DEFAULT_PROC_ROOT
from proc_metrics.core.schemas import MonitorSchedulerConfig
from proc_metrics.monitoring.emitter import (
    CollectingEmitter,
    Emitter,
    FanOutEmitter,
    JsonLinesEmitter,
)
from proc_metrics.monitoring.factory import build_monitors
from proc_metrics.monitoring.scheduler import MonitorScheduler
from proc_metrics.utils.logging import setup_logging

app = typer.Typer(
    name="proc-metrics",
    help="Periodic process, cgroup and host metrics",
    add_completion=False,
)

console = Console()


@app.command()
def run(
    config: Path = typer.Option(
        ..., "--config", "-c", help="Path to scheduler configuration file (YAML/JSON)"
    ),
    duration: float | None = typer.Option(
        None, "--duration", "-d", help="Stop after this many seconds (default: until Ctrl-C)"
    ),
    period: float | None = typer.Option(
        None, "--period", "-p", help="Polling period in seconds (overrides config)"
    ),
    output: Path | None = typer.Option(
        None, "--output", "-o", help="Append events to this JSON Lines file"
    ),
    log_level: str = typer.Option("INFO", "--log-level", "-l", help="Logging level"),
    log_file: Path | None = typer.Option(
        None, "--log-file", help="Write logs to file in addition to console"
    ),
    json_logs: bool = typer.Option(
        False, "--json-logs", help="Output logs in JSON format (for programmatic parsing)"
    ),
) -> None:
    """Run the configured monitors until the duration elapses or Ctrl-C."""
    setup_logging(
        level=log_level, log_file=log_file, json_format=json_logs, rich_console=not json_logs
    )

    console.print(f"[bold blue]Loading configuration from {config}[/]")
    try:
        scheduler_config = load_config(config)
    except Exception as e:
        console.print(f"[bold red]Error loading config: {escape(str(e))}[/]")
        raise typer.Exit(1) from e

    if period is not None:
        if period <= 0:
            console.print("[bold red]--period must be positive[/]")
            raise typer.Exit(1)
        scheduler_config.emitter_period_seconds = period

    _show_config_summary(scheduler_config)

    collector = CollectingEmitter()
    emitter: Emitter = collector
    if output is not None:
        emitter = FanOutEmitter(collector, JsonLinesEmitter(output))

    scheduler = MonitorScheduler(scheduler_config, emitter, build_monitors(scheduler_config))
    scheduler.start()
    try:
        threading.Event().wait(duration)
    except KeyboardInterrupt:
        console.print("[yellow]Interrupted, stopping monitors...[/]")
    finally:
        scheduler.stop(timeout=scheduler_config.emitter_period_seconds)
        emitter.close()

    _show_metrics_table(collector)
    if output is not None:
        console.print(f"[bold green]Events written to {output}[/]")


@app.command()
def discover(
    subsystem: str = typer.Argument(CPUACCT_SUBSYSTEM, help="cgroup subsystem, e.g. cpuacct"),
    pid: int | None = typer.Option(None, "--pid", help="Process id (default: this process)"),
    proc_root: Path = typer.Option(
        DEFAULT_PROC_ROOT, "--proc-root", help="Mount point of the proc filesystem"
    ),
) -> None:
    """Print the cgroup directory of a process for one subsystem."""
    try:
        target_pid = pid if pid is not None else InterningPidDiscoverer().get_pid()
        directory = ProcCgroupDiscoverer(proc_root).discover(subsystem, target_pid)
    except (IndeterminatePidError, RuntimeError, ValueError, OSError) as e:
        console.print(f"[bold red]Error:[/] {escape(str(e))}")
        raise typer.Exit(1) from None

    if directory is None:
        console.print(f"[bold red]No {subsystem} cgroup directory for pid {target_pid}[/]")
        raise typer.Exit(1)
    console.print(str(directory), soft_wrap=True, highlight=False)


@app.command()
def init_config(
    output: Path = typer.Option(
        Path("config.yaml"), "--output", "-o", help="Output configuration file"
    ),
) -> None:
    """Generate a sample configuration file."""
    sample_config = """\
# proc-metrics scheduler configuration

# Seconds between two polls of the same monitor
emitter_period_seconds: 60

# Feed and extra dimensions stamped on every event
feed: metrics
dimensions:
  service: my-service

# Available: cpuacct, diskstats, runtime, process_cpu, sys
monitors:
  - runtime
  - diskstats
  - cpuacct

proc_root: /proc
diskstats_path: /proc/diskstats

# Directory trees whose disk usage the sys monitor reports
dirs: []
"""
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(sample_config)
    console.print(f"[bold green]Sample configuration written to {output}[/]")


def _show_config_summary(config: MonitorSchedulerConfig) -> None:
    """Display a summary of the scheduler configuration."""
    table = Table(title="Scheduler Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="white")

    table.add_row("Period", f"{config.emitter_period_seconds}s")
    table.add_row("Feed", config.feed)
    table.add_row("Monitors", ", ".join(m.value for m in config.monitors))
    for name, values in config.dimensions.items():
        table.add_row(f"  {name}", ", ".join(values))

    console.print(table)


def _show_metrics_table(collector: CollectingEmitter) -> None:
    """Display how many events were emitted per metric."""
    counts = collector.metric_counts()
    if not counts:
        console.print("[bold yellow]No metrics emitted[/]")
        return

    table = Table(title="Emitted Metrics")
    table.add_column("Metric", style="cyan")
    table.add_column("Events", style="green", justify="right")
    for metric, count in sorted(counts.items()):
        table.add_row(metric, str(count))
    console.print(table)
    console.print(f"[bold green]{sum(counts.values())} events total[/]")


if __name__ == "__main__":
    app()
