from __future__ import annotations

import pytest

from csds_client.snapshot import (
    ConfigEntry,
    ConfigKind,
    Snapshot,
    parse_snapshot,
    snapshot_counts,
)
from csds_client.util.errors import ExtractionError, MalformedSnapshotError


def test_parse_snapshot_reads_node_and_entries(simple_response) -> None:
    snapshot = parse_snapshot(simple_response)

    assert len(snapshot.clients) == 1
    client = snapshot.clients[0]
    assert client.client_id == "node-1"
    assert client.stream_type == "ADS"
    assert [e.kind for e in client.entries] == [ConfigKind.LDS, ConfigKind.RDS, ConfigKind.CDS]
    assert all(e.status == "SYNCED" for e in client.entries)
    assert snapshot.has_config


def test_parse_snapshot_passes_through_parsed_snapshot() -> None:
    snapshot = Snapshot()
    assert parse_snapshot(snapshot) is snapshot


def test_empty_response_is_empty_snapshot() -> None:
    snapshot = parse_snapshot({})

    assert snapshot.is_empty
    assert not snapshot.has_config


def test_entry_without_variant_is_not_available() -> None:
    entry = ConfigEntry.from_dict({"status": "SYNCED"})

    assert entry.kind is None
    assert entry.label == "N/A"
    assert entry.payload == {}


def test_scoped_route_variant_is_recognized() -> None:
    entry = ConfigEntry.from_dict({"scopedRouteConfig": {}})

    assert entry.kind is ConfigKind.SRDS
    assert entry.label == "SRDS"


def test_payload_without_kind_is_rejected() -> None:
    with pytest.raises(MalformedSnapshotError):
        ConfigEntry(kind=None, payload={"staticListeners": []})


def test_entry_with_two_variants_is_rejected() -> None:
    with pytest.raises(MalformedSnapshotError, match="more than one"):
        ConfigEntry.from_dict({"listenerConfig": {}, "clusterConfig": {}})


@pytest.mark.parametrize(
    "response",
    [
        [],
        {"config": {"clients": 1}},
        {"config": ["node"]},
        {"config": [{"node": "n"}]},
        {"config": [{"node": {"id": "n", "metadata": ["ADS"]}}]},
        {"config": [{"xdsConfig": {"status": "SYNCED"}}]},
        {"config": [{"xdsConfig": [{"status": 3}]}]},
        {"config": [{"xdsConfig": [{"routeConfig": []}]}]},
    ],
)
def test_malformed_snapshots_are_rejected(response) -> None:
    with pytest.raises(MalformedSnapshotError):
        parse_snapshot(response)


def test_malformed_snapshot_is_an_extraction_error() -> None:
    assert issubclass(MalformedSnapshotError, ExtractionError)


def test_snapshot_counts(make_client, make_response) -> None:
    response = make_response(
        make_client("a", clusters=["c"]),
        make_client("b", listeners={"l": []}, clusters=["c"]),
    )

    assert snapshot_counts(parse_snapshot(response)) == {"clients": 2, "LDS": 1, "RDS": 0, "CDS": 2, "SRDS": 0}
