from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import pytest

HCM_V3 = "type.googleapis.com/envoy.extensions.filters.network.http_connection_manager.v3.HttpConnectionManager"
LISTENER_V3 = "type.googleapis.com/envoy.config.listener.v3.Listener"
ROUTE_V3 = "type.googleapis.com/envoy.config.route.v3.RouteConfiguration"
CLUSTER_V3 = "type.googleapis.com/envoy.config.cluster.v3.Cluster"


def _listener(name: str, routes: Sequence[str]) -> Dict[str, Any]:
    filters = [
        {
            "name": "envoy.filters.network.http_connection_manager",
            "typedConfig": {"@type": HCM_V3, "statPrefix": name, "rds": {"routeConfigName": route}},
        }
        for route in routes
    ]
    return {"@type": LISTENER_V3, "name": name, "filterChains": [{"filters": filters}]}


def _route_config(name: str, clusters: Sequence[Any]) -> Dict[str, Any]:
    routes: List[Dict[str, Any]] = []
    for target in clusters:
        if isinstance(target, (list, tuple)):
            action = {"weightedClusters": {"clusters": [{"name": c, "weight": 50} for c in target]}}
        else:
            action = {"cluster": target}
        routes.append({"match": {"prefix": "/"}, "route": action})
    return {"@type": ROUTE_V3, "name": name, "virtualHosts": [{"name": "vh", "domains": ["*"], "routes": routes}]}


def _client(
    client_id: str,
    *,
    listeners: Optional[Dict[str, Sequence[str]]] = None,
    routes: Optional[Dict[str, Sequence[Any]]] = None,
    clusters: Optional[Sequence[str]] = None,
    stream_type: str = "ADS",
    status: str = "SYNCED",
) -> Dict[str, Any]:
    xds: List[Dict[str, Any]] = []
    if listeners is not None:
        xds.append(
            {
                "status": status,
                "listenerConfig": {
                    "dynamicListeners": [
                        {"name": name, "activeState": {"listener": _listener(name, rs)}}
                        for name, rs in listeners.items()
                    ]
                },
            }
        )
    if routes is not None:
        xds.append(
            {
                "status": status,
                "routeConfig": {
                    "dynamicRouteConfigs": [{"routeConfig": _route_config(name, cs)} for name, cs in routes.items()]
                },
            }
        )
    if clusters is not None:
        xds.append(
            {
                "status": status,
                "clusterConfig": {
                    "dynamicActiveClusters": [{"cluster": {"@type": CLUSTER_V3, "name": name}} for name in clusters]
                },
            }
        )
    client: Dict[str, Any] = {"node": {"id": client_id, "metadata": {"XDS_STREAM_TYPE": stream_type}}}
    if xds:
        client["xdsConfig"] = xds
    return client


@pytest.fixture
def make_client() -> Callable[..., Dict[str, Any]]:
    return _client


@pytest.fixture
def make_response() -> Callable[..., Dict[str, Any]]:
    def _response(*clients: Dict[str, Any]) -> Dict[str, Any]:
        return {"config": list(clients)}

    return _response


@pytest.fixture
def simple_response(make_client, make_response) -> Dict[str, Any]:
    """One listener L1 -> route table R1 -> cluster C1."""
    return make_response(
        make_client(
            "node-1",
            listeners={"L1": ["R1"]},
            routes={"R1": ["C1"]},
            clusters=["C1"],
        )
    )


@pytest.fixture
def edge_set() -> Callable[[Any], set]:
    def _edges(graph: Any) -> set:
        return set(graph.iter_edges())

    return _edges


@pytest.fixture
def node_sets() -> Callable[[Any], Tuple[set, set, set]]:
    def _nodes(graph: Any) -> Tuple[set, set, set]:
        return set(graph.listeners), set(graph.routes), set(graph.clusters)

    return _nodes
