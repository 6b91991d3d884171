from __future__ import annotations

import io
from typing import List

import pytest
from rich.console import Console

from csds_client.util.rich_progress import MonitorProgress, render_graph_summary_table


def test_disabled_progress_sleeps_once() -> None:
    sleeps: List[float] = []
    progress = MonitorProgress(enabled=False, sleep=sleeps.append)

    progress.wait(3.0, iteration=0)
    progress.wait(0, iteration=1)

    assert not progress.enabled
    assert sleeps == [3.0]


def test_enabled_progress_counts_down_in_ticks() -> None:
    sleeps: List[float] = []
    console = Console(file=io.StringIO())
    progress = MonitorProgress(enabled=True, console=console, sleep=sleeps.append)

    progress.wait(0.6, iteration=2, service_uri="localhost:18000")

    assert progress.enabled
    assert sleeps[:2] == [0.25, 0.25]
    assert sum(sleeps) == pytest.approx(0.6)


def test_graph_summary_table_renders_counts() -> None:
    buf = io.StringIO()
    console = Console(file=buf, width=120)
    summary = {"listeners": 1, "routes": 2, "clusters": 3, "edges": 4, "dangling": 0}

    render_graph_summary_table(enabled=True, summary=summary, path="out/config_graph.dot", console=console)

    text = buf.getvalue()
    assert "Config Graph" in text
    assert "Route tables (RDS)" in text
    assert "out/config_graph.dot" in text


def test_graph_summary_table_disabled_prints_nothing() -> None:
    buf = io.StringIO()

    render_graph_summary_table(enabled=False, summary={}, path="x", console=Console(file=buf))

    assert buf.getvalue() == ""
