from __future__ import annotations

from typing import Any, Iterable, List, Mapping, Optional, Union

from ..snapshot import ConfigKind, Snapshot, parse_snapshot
from ..util.errors import MalformedConfigError
from .graph import GraphBuilder, XdsGraph

# Filters whose typed config can point a listener at a route table via RDS.
HTTP_CONNECTION_MANAGER_TYPES = frozenset(
    {
        "type.googleapis.com/envoy.extensions.filters.network.http_connection_manager.v3.HttpConnectionManager",
        "type.googleapis.com/envoy.config.filter.network.http_connection_manager.v2.HttpConnectionManager",
    }
)

LISTENER_CATEGORY = "listener"
ROUTE_CATEGORY = "route"
CLUSTER_CATEGORY = "cluster"

_DYNAMIC_LISTENER_STATES = ("activeState", "warmingState", "drainingState")
_CLUSTER_LIST_KEYS = ("staticClusters", "dynamicActiveClusters", "dynamicWarmingClusters")


def _mapping(value: Any, path: str, category: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise MalformedConfigError(category, f"{path} must be an object")
    return value


def _optional_mapping(value: Any, path: str, category: str) -> Optional[Mapping[str, Any]]:
    if value is None:
        return None
    return _mapping(value, path, category)


def _list(value: Any, path: str, category: str) -> List[Any]:
    """Absent repeated fields are dropped from protobuf JSON, so None reads as empty."""
    if value is None:
        return []
    if not isinstance(value, list):
        raise MalformedConfigError(category, f"{path} must be a list")
    return value


def _name(obj: Mapping[str, Any], path: str, category: str) -> str:
    name = obj.get("name")
    if not isinstance(name, str) or not name:
        raise MalformedConfigError(category, f"{path}.name is missing")
    return name


def _route_config_name(filter_obj: Mapping[str, Any], path: str) -> Optional[str]:
    typed_config = _optional_mapping(filter_obj.get("typedConfig"), f"{path}.typedConfig", LISTENER_CATEGORY)
    if typed_config is None or typed_config.get("@type") not in HTTP_CONNECTION_MANAGER_TYPES:
        return None
    rds = _optional_mapping(typed_config.get("rds"), f"{path}.typedConfig.rds", LISTENER_CATEGORY)
    if rds is None:
        return None
    name = rds.get("routeConfigName")
    if name is None:
        return None
    if not isinstance(name, str):
        raise MalformedConfigError(LISTENER_CATEGORY, f"{path}.typedConfig.rds.routeConfigName must be a string")
    return name or None


def _filter_chains(listener: Mapping[str, Any], path: str) -> List[Any]:
    chains = list(_list(listener.get("filterChains"), f"{path}.filterChains", LISTENER_CATEGORY))
    default_chain = _optional_mapping(
        listener.get("defaultFilterChain"), f"{path}.defaultFilterChain", LISTENER_CATEGORY
    )
    if default_chain is not None:
        chains.append(default_chain)
    return chains


def scan_listener(listener: Any, path: str, builder: GraphBuilder) -> None:
    listener = _mapping(listener, path, LISTENER_CATEGORY)
    name = _name(listener, path, LISTENER_CATEGORY)
    builder.add_listener(name)
    for i, chain in enumerate(_filter_chains(listener, path)):
        chain_path = f"{path}.filterChains[{i}]"
        chain = _mapping(chain, chain_path, LISTENER_CATEGORY)
        for j, filter_obj in enumerate(_list(chain.get("filters"), f"{chain_path}.filters", LISTENER_CATEGORY)):
            filter_path = f"{chain_path}.filters[{j}]"
            route_name = _route_config_name(_mapping(filter_obj, filter_path, LISTENER_CATEGORY), filter_path)
            if route_name:
                builder.link_listener_route(name, route_name)


def scan_listeners_dump(dump: Mapping[str, Any], builder: GraphBuilder) -> None:
    for i, item in enumerate(_list(dump.get("staticListeners"), "staticListeners", LISTENER_CATEGORY)):
        path = f"staticListeners[{i}]"
        item = _mapping(item, path, LISTENER_CATEGORY)
        scan_listener(item.get("listener"), f"{path}.listener", builder)

    for i, item in enumerate(_list(dump.get("dynamicListeners"), "dynamicListeners", LISTENER_CATEGORY)):
        path = f"dynamicListeners[{i}]"
        item = _mapping(item, path, LISTENER_CATEGORY)
        state_key = next((key for key in _DYNAMIC_LISTENER_STATES if item.get(key) is not None), None)
        if state_key is None:
            # Only an errorState was reported: the listener exists but has no accepted config.
            builder.add_listener(_name(item, path, LISTENER_CATEGORY))
            continue
        state = _mapping(item[state_key], f"{path}.{state_key}", LISTENER_CATEGORY)
        scan_listener(state.get("listener"), f"{path}.{state_key}.listener", builder)


def _route_action_clusters(route: Mapping[str, Any], path: str) -> List[str]:
    action = _optional_mapping(route.get("route"), f"{path}.route", ROUTE_CATEGORY)
    if action is None:
        # redirect / directResponse routes never reach a cluster
        return []
    weighted = _optional_mapping(action.get("weightedClusters"), f"{path}.route.weightedClusters", ROUTE_CATEGORY)
    if weighted is not None:
        out: List[str] = []
        clusters_path = f"{path}.route.weightedClusters.clusters"
        for k, cluster in enumerate(_list(weighted.get("clusters"), clusters_path, ROUTE_CATEGORY)):
            cluster_path = f"{clusters_path}[{k}]"
            out.append(_name(_mapping(cluster, cluster_path, ROUTE_CATEGORY), cluster_path, ROUTE_CATEGORY))
        return out
    cluster = action.get("cluster")
    if cluster is None:
        return []
    if not isinstance(cluster, str):
        raise MalformedConfigError(ROUTE_CATEGORY, f"{path}.route.cluster must be a string")
    return [cluster] if cluster else []


def scan_route_config(route_config: Any, path: str, builder: GraphBuilder) -> None:
    route_config = _mapping(route_config, path, ROUTE_CATEGORY)
    name = _name(route_config, path, ROUTE_CATEGORY)
    builder.add_route(name)
    for i, vhost in enumerate(_list(route_config.get("virtualHosts"), f"{path}.virtualHosts", ROUTE_CATEGORY)):
        vhost_path = f"{path}.virtualHosts[{i}]"
        vhost = _mapping(vhost, vhost_path, ROUTE_CATEGORY)
        for j, route in enumerate(_list(vhost.get("routes"), f"{vhost_path}.routes", ROUTE_CATEGORY)):
            route_path = f"{vhost_path}.routes[{j}]"
            for cluster in _route_action_clusters(_mapping(route, route_path, ROUTE_CATEGORY), route_path):
                builder.link_route_cluster(name, cluster)


def scan_routes_dump(dump: Mapping[str, Any], builder: GraphBuilder) -> None:
    for key in ("staticRouteConfigs", "dynamicRouteConfigs"):
        for i, item in enumerate(_list(dump.get(key), key, ROUTE_CATEGORY)):
            path = f"{key}[{i}]"
            item = _mapping(item, path, ROUTE_CATEGORY)
            scan_route_config(item.get("routeConfig"), f"{path}.routeConfig", builder)


def scan_clusters_dump(dump: Mapping[str, Any], builder: GraphBuilder) -> None:
    for key in _CLUSTER_LIST_KEYS:
        for i, item in enumerate(_list(dump.get(key), key, CLUSTER_CATEGORY)):
            path = f"{key}[{i}]"
            item = _mapping(item, path, CLUSTER_CATEGORY)
            cluster = _mapping(item.get("cluster"), f"{path}.cluster", CLUSTER_CATEGORY)
            builder.add_cluster(_name(cluster, f"{path}.cluster", CLUSTER_CATEGORY))


_SCANNERS = {
    ConfigKind.LDS: scan_listeners_dump,
    ConfigKind.RDS: scan_routes_dump,
    ConfigKind.CDS: scan_clusters_dump,
}


def iter_scannable_entries(snapshot: Snapshot) -> Iterable[tuple[ConfigKind, Mapping[str, Any]]]:
    for client in snapshot.clients:
        for entry in client.entries:
            if entry.kind in _SCANNERS:
                yield entry.kind, entry.payload


def extract_graph(snapshot: Union[Snapshot, Mapping[str, Any]]) -> XdsGraph:
    """
    Derive the listener -> route table -> cluster graph from a config snapshot.

    Accepts a parsed Snapshot or the JSON form of a ClientStatusResponse. Raises
    MalformedConfigError, naming the category being scanned, when a config dump
    does not have the expected shape; no partial graph is returned in that case.
    """
    parsed = parse_snapshot(snapshot)
    builder = GraphBuilder()
    for kind, payload in iter_scannable_entries(parsed):
        _SCANNERS[kind](payload, builder)
    return builder.build()
