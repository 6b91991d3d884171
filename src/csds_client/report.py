from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence, Tuple

from .snapshot import ClientSnapshot, Snapshot

STATUS_HEADERS = ("Client ID", "xDS stream type", "Config Status")
ID_WIDTH = 50
TYPE_WIDTH = 30
STATUS_WIDTH = 30
NOT_AVAILABLE = "N/A"
NO_CLIENTS_MESSAGE = "No xDS clients connected."


@dataclass(frozen=True)
class StatusRow:
    client_id: str
    stream_type: str
    statuses: Tuple[str, ...]
    has_config: bool


def config_status_lines(client: ClientSnapshot) -> List[str]:
    """One '<KIND> <STATUS>' entry per config that has both a kind and a status."""
    out: List[str] = []
    for entry in client.entries:
        if entry.kind is None or not entry.status:
            continue
        out.append(f"{entry.kind.value} {entry.status}")
    return out


def summarize_status(snapshot: Snapshot) -> List[StatusRow]:
    return [
        StatusRow(
            client_id=client.client_id,
            stream_type=client.stream_type,
            statuses=tuple(config_status_lines(client)),
            has_config=bool(client.entries),
        )
        for client in snapshot.clients
    ]


def _line(client_id: str, stream_type: str, status: str) -> str:
    return f"{client_id:<{ID_WIDTH}} {stream_type:<{TYPE_WIDTH}} {status:<{STATUS_WIDTH}}".rstrip()


def _row_lines(row: StatusRow) -> List[str]:
    if not row.has_config:
        return [_line(row.client_id, row.stream_type, NOT_AVAILABLE)]
    if not row.statuses:
        return [_line(row.client_id, row.stream_type, "")]
    lines = [_line(row.client_id, row.stream_type, row.statuses[0])]
    lines.extend(_line("", "", status) for status in row.statuses[1:])
    return lines


def format_status_report(snapshot: Snapshot, requested_ids: Sequence[str] = ()) -> str:
    """
    Render the per-client sync status table.

    Columns are left-aligned to fixed widths; a client reporting several configs
    gets continuation lines with blank id and type columns.
    """
    if snapshot.is_empty:
        message = NO_CLIENTS_MESSAGE
        if requested_ids:
            message = f"{message} Requested node IDs: {', '.join(requested_ids)}"
        return message + "\n"
    lines = [_line(*STATUS_HEADERS)]
    for row in summarize_status(snapshot):
        lines.extend(_row_lines(row))
    return "\n".join(lines) + "\n"
