from __future__ import annotations
from typing import Optional

from rich.console import Console
from rich.padding import Padding
from rich.panel import Panel
from rich.table import Table

from udplogger_ng.stats import ReceiverStats

def display_summary(stats: ReceiverStats, console: Optional[Console] = None):
    """Prints receiver counters collected since startup."""
    console = console or Console()

    stats_table = Table.grid(expand=True)
    stats_table.add_column(style="bold cyan")
    stats_table.add_column(style="white", justify="right")
    stats_table.add_row("Uptime:", f"{stats.elapsed_time:.0f}s")
    stats_table.add_row("Datagrams:", f"{stats.datagrams}")
    stats_table.add_row("Bytes:", f"{stats.bytes_received}")
    stats_table.add_row("Lines Written:", f"{stats.lines_written}")
    stats_table.add_row("Senders Seen:", f"{stats.sessions_created}")
    stats_table.add_row("Peak Senders:", f"{stats.peak_sessions}")
    stats_table.add_row("Forced Flushes:", f"{stats.total_forced_flushes}")
    stats_table.add_row("Rotations:", f"{stats.rotations}")
    console.print(Panel(Padding(stats_table, 1), title="[bold cyan]Receiver Stats[/bold cyan]", border_style="cyan"))

    # --- Anything that lost or truncated data ---
    risk_grid = Table.grid(expand=True)
    risk_grid.add_column(style="yellow")
    risk_grid.add_column(style="white", justify="right")
    has_risks = False
    if stats.rejected_datagrams:
        has_risks = True
        risk_grid.add_row("[bold]Rejected (registry full)[/bold]", str(stats.rejected_datagrams))
    for reason, count in sorted(stats.forced_flushes.items()):
        has_risks = True
        risk_grid.add_row(f"[bold]Forced flush ({reason})[/bold]", str(count))
    if stats.rotation_failures:
        has_risks = True
        risk_grid.add_row("[bold]Failed Rotations[/bold]", str(stats.rotation_failures))
    if stats.write_errors:
        has_risks = True
        risk_grid.add_row("[bold]Write Errors[/bold]", str(stats.write_errors))

    if has_risks:
        console.print(Panel(Padding(risk_grid, 1), title="[bold yellow]Partial or Dropped Data[/bold yellow]", border_style="yellow"))
