from __future__ import annotations

import time
from typing import Any, Callable, Dict, Optional

try:
    from rich.console import Console
    from rich.progress import BarColumn, Progress, TextColumn, TimeRemainingColumn
    from rich.table import Table
except Exception:  # pragma: no cover - fallback when rich isn't available
    Console = None  # type: ignore[assignment]
    Progress = None  # type: ignore[assignment]
    BarColumn = None  # type: ignore[assignment]
    TextColumn = None  # type: ignore[assignment]
    TimeRemainingColumn = None  # type: ignore[assignment]
    Table = None  # type: ignore[assignment]

POLL_TICK_SECONDS = 0.25


class MonitorProgress:
    """
    Transient countdown shown between monitor-mode polls.

    When disabled (not a terminal, JSON logs, rich missing) wait() just sleeps.
    """

    def __init__(
        self,
        *,
        enabled: bool,
        console: Optional[Console] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._enabled = bool(enabled and Console and Progress)
        self._console = console or (Console() if Console and self._enabled else None)
        self._sleep = sleep

    @property
    def enabled(self) -> bool:
        return self._enabled

    def wait(self, seconds: float, *, iteration: int, service_uri: str = "") -> None:
        if seconds <= 0:
            return
        if not self._enabled:
            self._sleep(seconds)
            return
        progress = Progress(
            TextColumn("{task.description}"),
            BarColumn(),
            TimeRemainingColumn(),
            console=self._console,
            transient=True,
        )
        label = f"Poll {iteration + 1}"
        if service_uri:
            label = f"{label} of {service_uri}"
        with progress:
            task = progress.add_task(label, total=seconds)
            remaining = seconds
            while remaining > 0:
                step = min(POLL_TICK_SECONDS, remaining)
                self._sleep(step)
                remaining -= step
                progress.update(task, advance=step)


def render_graph_summary_table(
    *,
    enabled: bool,
    summary: Dict[str, Any],
    path: str,
    console: Optional[Console] = None,
) -> None:
    if not enabled or not Table or not Console:
        return
    table = Table(title="Config Graph", show_header=True, header_style="bold")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="white")
    table.add_row("Listeners (LDS)", str(summary.get("listeners", 0)))
    table.add_row("Route tables (RDS)", str(summary.get("routes", 0)))
    table.add_row("Clusters (CDS)", str(summary.get("clusters", 0)))
    table.add_row("Edges", str(summary.get("edges", 0)))
    table.add_row("Dangling references", str(summary.get("dangling", 0)))
    table.add_row("Output file", path)
    (console or Console()).print(table)
