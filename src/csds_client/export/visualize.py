from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional, Union

from ..snapshot import Snapshot
from .dot import render_dot, write_graph_file
from .graph import XdsGraph
from .relationships import extract_graph
from .viewer import Opener, open_in_viewer, viewer_url


@dataclass(frozen=True)
class VisualizeResult:
    path: Path
    graph: XdsGraph
    dot: str


def visualize(
    snapshot: Union[Snapshot, Mapping[str, Any]],
    *,
    outdir: Path,
    monitor: bool = False,
    opener: Optional[Opener] = None,
) -> VisualizeResult:
    """
    Extract the config graph, save it as DOT and open it in the hosted viewer.

    Extraction runs before anything is written, so a malformed snapshot leaves no
    graph file behind. In monitor mode the viewer is never opened. A viewer
    failure is raised after the file has been written.
    """
    graph = extract_graph(snapshot)
    dot = render_dot(graph)
    path = write_graph_file(outdir, dot)
    if not monitor:
        open_in_viewer(viewer_url(dot), opener=opener)
    return VisualizeResult(path=path, graph=graph, dot=dot)
