from __future__ import annotations

from csds_client.report import STATUS_HEADERS, format_status_report, summarize_status
from csds_client.snapshot import parse_snapshot


def _row(client_id: str, stream_type: str, status: str) -> str:
    return f"{client_id:<50} {stream_type:<30} {status:<30}".rstrip()


def test_report_for_synced_client(simple_response) -> None:
    report = format_status_report(parse_snapshot(simple_response))

    assert report.splitlines() == [
        _row(*STATUS_HEADERS),
        _row("node-1", "ADS", "LDS SYNCED"),
        _row("", "", "RDS SYNCED"),
        _row("", "", "CDS SYNCED"),
    ]
    assert report.endswith("\n")


def test_client_without_config_shows_not_available(make_client, make_response) -> None:
    report = format_status_report(parse_snapshot(make_response(make_client("idle", stream_type="SotW"))))

    assert report.splitlines()[1] == _row("idle", "SotW", "N/A")


def test_entries_without_status_leave_status_column_blank(make_response) -> None:
    response = make_response(
        {"node": {"id": "n"}, "xdsConfig": [{"listenerConfig": {"staticListeners": []}}]}
    )

    lines = format_status_report(parse_snapshot(response)).splitlines()

    assert lines[1] == "n"
    assert len(lines) == 2


def test_missing_node_renders_blank_columns(make_response) -> None:
    report = format_status_report(parse_snapshot(make_response({})))

    assert report.splitlines()[1] == _row("", "", "N/A")


def test_status_only_entries_are_skipped(make_response) -> None:
    response = make_response(
        {
            "node": {"id": "n", "metadata": {"XDS_STREAM_TYPE": "ADS"}},
            "xdsConfig": [{"status": "STALE"}, {"status": "NOT_SENT", "clusterConfig": {}}],
        }
    )

    rows = summarize_status(parse_snapshot(response))

    assert rows[0].statuses == ("CDS NOT_SENT",)
    assert rows[0].has_config


def test_empty_snapshot_prints_no_clients_message(make_response) -> None:
    assert format_status_report(parse_snapshot(make_response())) == "No xDS clients connected.\n"


def test_empty_snapshot_lists_requested_node_ids(make_response) -> None:
    report = format_status_report(parse_snapshot(make_response()), ["sidecar~1", "sidecar~2"])

    assert report == "No xDS clients connected. Requested node IDs: sidecar~1, sidecar~2\n"


def test_long_client_id_is_not_truncated(make_client, make_response) -> None:
    client_id = "projects/123/networks/default/nodes/" + "x" * 40
    report = format_status_report(parse_snapshot(make_response(make_client(client_id, clusters=["c"]))))

    assert report.splitlines()[1].startswith(client_id + " ADS")
