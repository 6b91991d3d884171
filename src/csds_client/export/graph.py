from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterator, List, Mapping, Set, Tuple

LISTENER_PREFIX = "LDS"
ROUTE_PREFIX = "RDS"
CLUSTER_PREFIX = "CDS"

NodeMap = Dict[str, str]
ReferenceMap = Dict[str, Tuple[str, ...]]


@dataclass(frozen=True)
class XdsGraph:
    """
    Listener -> route table -> cluster dependency graph of one snapshot.

    Node maps go from resource name to its short id (LDS0, RDS3, ...) in first-seen
    order. Reference maps go from a source name to its sorted destination names;
    destinations are not required to be registered nodes.
    """

    listeners: NodeMap
    routes: NodeMap
    clusters: NodeMap
    listener_routes: ReferenceMap
    route_clusters: ReferenceMap

    def node_maps(self) -> Tuple[Tuple[str, NodeMap], ...]:
        return (
            (LISTENER_PREFIX, self.listeners),
            (ROUTE_PREFIX, self.routes),
            (CLUSTER_PREFIX, self.clusters),
        )

    def reference_maps(self) -> Tuple[ReferenceMap, ...]:
        return (self.listener_routes, self.route_clusters)

    def iter_edges(self) -> Iterator[Tuple[str, str]]:
        for references in self.reference_maps():
            for src, dsts in references.items():
                for dst in dsts:
                    yield src, dst

    def node_count(self) -> int:
        return len(self.listeners) + len(self.routes) + len(self.clusters)

    def edge_count(self) -> int:
        return sum(len(dsts) for refs in self.reference_maps() for dsts in refs.values())

    def is_empty(self) -> bool:
        return self.node_count() == 0 and self.edge_count() == 0


class GraphBuilder:
    def __init__(self) -> None:
        self._listeners: NodeMap = {}
        self._routes: NodeMap = {}
        self._clusters: NodeMap = {}
        self._listener_routes: Dict[str, Set[str]] = {}
        self._route_clusters: Dict[str, Set[str]] = {}

    @staticmethod
    def _register(nodes: NodeMap, prefix: str, name: str) -> str:
        node_id = nodes.get(name)
        if node_id is None:
            node_id = f"{prefix}{len(nodes)}"
            nodes[name] = node_id
        return node_id

    def add_listener(self, name: str) -> str:
        self._listener_routes.setdefault(name, set())
        return self._register(self._listeners, LISTENER_PREFIX, name)

    def add_route(self, name: str) -> str:
        self._route_clusters.setdefault(name, set())
        return self._register(self._routes, ROUTE_PREFIX, name)

    def add_cluster(self, name: str) -> str:
        return self._register(self._clusters, CLUSTER_PREFIX, name)

    def link_listener_route(self, listener: str, route: str) -> None:
        self._listener_routes.setdefault(listener, set()).add(route)

    def link_route_cluster(self, route: str, cluster: str) -> None:
        self._route_clusters.setdefault(route, set()).add(cluster)

    def build(self) -> XdsGraph:
        return XdsGraph(
            listeners=dict(self._listeners),
            routes=dict(self._routes),
            clusters=dict(self._clusters),
            listener_routes={src: tuple(sorted(dsts)) for src, dsts in self._listener_routes.items()},
            route_clusters={src: tuple(sorted(dsts)) for src, dsts in self._route_clusters.items()},
        )


def dangling_references(graph: XdsGraph) -> List[Tuple[str, str]]:
    """Edges whose destination was never reported as a node of the expected kind."""
    out: List[Tuple[str, str]] = []
    targets: Tuple[Tuple[Mapping[str, Tuple[str, ...]], NodeMap], ...] = (
        (graph.listener_routes, graph.routes),
        (graph.route_clusters, graph.clusters),
    )
    for references, nodes in targets:
        for src, dsts in references.items():
            for dst in dsts:
                if dst not in nodes:
                    out.append((src, dst))
    return out


def graph_summary(graph: XdsGraph) -> Dict[str, int]:
    return {
        "listeners": len(graph.listeners),
        "routes": len(graph.routes),
        "clusters": len(graph.clusters),
        "edges": graph.edge_count(),
        "dangling": len(dangling_references(graph)),
    }
