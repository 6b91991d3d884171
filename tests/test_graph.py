from __future__ import annotations

from csds_client.export.graph import GraphBuilder, dangling_references, graph_summary


def test_builder_assigns_ids_in_first_seen_order() -> None:
    builder = GraphBuilder()
    assert builder.add_cluster("b") == "CDS0"
    assert builder.add_cluster("a") == "CDS1"
    assert builder.add_cluster("b") == "CDS0"
    assert builder.add_listener("l") == "LDS0"
    assert builder.add_route("r") == "RDS0"

    graph = builder.build()

    assert graph.clusters == {"b": "CDS0", "a": "CDS1"}
    assert list(graph.clusters) == ["b", "a"]


def test_builder_unions_and_sorts_references() -> None:
    builder = GraphBuilder()
    builder.link_route_cluster("r", "z")
    builder.link_route_cluster("r", "a")
    builder.link_route_cluster("r", "z")

    graph = builder.build()

    assert graph.route_clusters == {"r": ("a", "z")}
    assert graph.edge_count() == 2
    # linking alone does not register the source as a node
    assert graph.routes == {}


def test_registered_sources_have_empty_reference_sets() -> None:
    builder = GraphBuilder()
    builder.add_listener("l")
    builder.add_route("r")

    graph = builder.build()

    assert graph.listener_routes == {"l": ()}
    assert graph.route_clusters == {"r": ()}
    assert list(graph.iter_edges()) == []
    assert not graph.is_empty()


def test_dangling_references_and_summary() -> None:
    builder = GraphBuilder()
    builder.add_listener("l")
    builder.link_listener_route("l", "r")
    builder.add_route("r")
    builder.link_route_cluster("r", "known")
    builder.link_route_cluster("r", "unknown")
    builder.add_cluster("known")

    graph = builder.build()

    assert dangling_references(graph) == [("r", "unknown")]
    assert graph_summary(graph) == {"listeners": 1, "routes": 1, "clusters": 1, "edges": 3, "dangling": 1}


def test_listener_reference_to_unreported_route_is_dangling() -> None:
    builder = GraphBuilder()
    builder.add_listener("l")
    builder.link_listener_route("l", "ghost")

    assert dangling_references(builder.build()) == [("l", "ghost")]


def test_empty_builder_builds_empty_graph() -> None:
    graph = GraphBuilder().build()

    assert graph.is_empty()
    assert graph.node_count() == 0
    assert graph_summary(graph)["edges"] == 0
