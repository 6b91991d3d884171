from __future__ import annotations

from pathlib import Path
from typing import List, Mapping

from .graph import CLUSTER_PREFIX, LISTENER_PREFIX, ROUTE_PREFIX, XdsGraph

GRAPH_FILE_NAME = "config_graph.dot"
GRAPH_NAME = "G"

CATEGORY_COLORS: Mapping[str, str] = {
    LISTENER_PREFIX: "#4285F4",
    ROUTE_PREFIX: "#FBBC04",
    CLUSTER_PREFIX: "#34A853",
}

_NODE_STYLE: Mapping[str, str] = {
    "fontcolor": "white",
    "fontname": "Roboto",
    "shape": "box",
    "style": "filled,rounded",
}
_EDGE_STYLE: Mapping[str, str] = {
    "arrowsize": "0.3",
    "penwidth": "0.3",
}


def quote_id(value: str) -> str:
    """Quote a DOT identifier so any resource name stays a single token."""
    return '"' + str(value).replace("\\", "\\\\").replace('"', '\\"') + '"'


def _attr_list(attrs: Mapping[str, str]) -> str:
    return ", ".join(f"{key}={quote_id(attrs[key])}" for key in sorted(attrs))


def _node_statement(name: str, node_id: str, category: str) -> str:
    color = CATEGORY_COLORS[category]
    attrs = dict(_NODE_STYLE)
    attrs.update({"label": node_id, "color": color, "fillcolor": color})
    return f"\t{quote_id(name)} [{_attr_list(attrs)}];"


def _edge_statement(src: str, dst: str) -> str:
    return f"\t{quote_id(src)} -> {quote_id(dst)} [{_attr_list(_EDGE_STYLE)}];"


def render_dot(graph: XdsGraph) -> str:
    """
    Render the graph as Graphviz DOT text.

    Nodes are emitted category by category in node-map order, then edges in
    reference-map order, so equal graphs always render to identical text.
    """
    lines: List[str] = [f"digraph {GRAPH_NAME} {{", "\trankdir=LR;"]
    for category, nodes in graph.node_maps():
        for name, node_id in nodes.items():
            lines.append(_node_statement(name, node_id, category))
    for src, dst in graph.iter_edges():
        lines.append(_edge_statement(src, dst))
    lines.append("}")
    return "\n".join(lines) + "\n"


def write_graph_file(outdir: Path, dot: str) -> Path:
    """Write DOT text to <outdir>/config_graph.dot, replacing any previous file."""
    outdir.mkdir(parents=True, exist_ok=True)
    path = outdir / GRAPH_FILE_NAME
    path.write_text(dot, encoding="utf-8")
    return path
