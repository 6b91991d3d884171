from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from .util.errors import MalformedSnapshotError

# Control planes are expected to report the client's xDS stream type under this node metadata key.
STREAM_TYPE_METADATA_KEY = "XDS_STREAM_TYPE"


class ConfigKind(str, Enum):
    LDS = "LDS"
    RDS = "RDS"
    CDS = "CDS"
    SRDS = "SRDS"


# PerXdsConfig one-of field (JSON name) -> kind
CONFIG_VARIANT_FIELDS: Mapping[str, ConfigKind] = {
    "listenerConfig": ConfigKind.LDS,
    "routeConfig": ConfigKind.RDS,
    "clusterConfig": ConfigKind.CDS,
    "scopedRouteConfig": ConfigKind.SRDS,
}


@dataclass(frozen=True)
class ConfigEntry:
    """
    One PerXdsConfig of a client: at most one populated variant plus its sync status.

    kind is None for an entry that carries no config dump ("N/A").
    """

    kind: Optional[ConfigKind]
    payload: Mapping[str, Any] = field(default_factory=dict)
    status: str = ""

    def __post_init__(self) -> None:
        if self.kind is None and self.payload:
            raise MalformedSnapshotError("config entry payload given without a config kind")

    @property
    def label(self) -> str:
        return self.kind.value if self.kind is not None else "N/A"

    @classmethod
    def from_dict(cls, raw: Any) -> ConfigEntry:
        if not isinstance(raw, Mapping):
            raise MalformedSnapshotError(f"xdsConfig entry must be an object, got {type(raw).__name__}")
        populated = [key for key in CONFIG_VARIANT_FIELDS if raw.get(key) is not None]
        if len(populated) > 1:
            raise MalformedSnapshotError(
                f"xdsConfig entry has more than one populated config: {', '.join(populated)}"
            )
        status = raw.get("status") or ""
        if not isinstance(status, str):
            raise MalformedSnapshotError("xdsConfig status must be a string")
        if not populated:
            return cls(kind=None, status=status)
        key = populated[0]
        payload = raw[key]
        if not isinstance(payload, Mapping):
            raise MalformedSnapshotError(f"xdsConfig.{key} must be an object")
        return cls(kind=CONFIG_VARIANT_FIELDS[key], payload=payload, status=status)


@dataclass(frozen=True)
class ClientSnapshot:
    client_id: str = ""
    stream_type: str = ""
    entries: Tuple[ConfigEntry, ...] = ()

    def entries_of(self, kind: ConfigKind) -> List[ConfigEntry]:
        return [e for e in self.entries if e.kind is kind]


@dataclass(frozen=True)
class Snapshot:
    clients: Tuple[ClientSnapshot, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.clients

    @property
    def has_config(self) -> bool:
        return any(client.entries for client in self.clients)


def _node_fields(node: Any) -> Tuple[str, str]:
    if node is None:
        return "", ""
    if not isinstance(node, Mapping):
        raise MalformedSnapshotError("config.node must be an object")
    client_id = node.get("id") or ""
    metadata = node.get("metadata") or {}
    if not isinstance(metadata, Mapping):
        raise MalformedSnapshotError("config.node.metadata must be an object")
    stream_type = metadata.get(STREAM_TYPE_METADATA_KEY) or ""
    return str(client_id), str(stream_type)


def parse_client(raw: Any) -> ClientSnapshot:
    if not isinstance(raw, Mapping):
        raise MalformedSnapshotError(f"config entry must be an object, got {type(raw).__name__}")
    client_id, stream_type = _node_fields(raw.get("node"))
    xds_configs = raw.get("xdsConfig") or []
    if not isinstance(xds_configs, list):
        raise MalformedSnapshotError("config.xdsConfig must be a list")
    entries = tuple(ConfigEntry.from_dict(item) for item in xds_configs)
    return ClientSnapshot(client_id=client_id, stream_type=stream_type, entries=entries)


def parse_snapshot(data: Union[Mapping[str, Any], Snapshot]) -> Snapshot:
    """
    Build a Snapshot from the JSON form of a ClientStatusResponse.

    The input is the camelCase protobuf JSON mapping, e.g.
    {"config": [{"node": {...}, "xdsConfig": [{"status": "SYNCED", "listenerConfig": {...}}]}]}.
    """
    if isinstance(data, Snapshot):
        return data
    if not isinstance(data, Mapping):
        raise MalformedSnapshotError(f"response must be an object, got {type(data).__name__}")
    configs = data.get("config") or []
    if not isinstance(configs, list):
        raise MalformedSnapshotError("response.config must be a list")
    return Snapshot(clients=tuple(parse_client(c) for c in configs))


def snapshot_counts(snapshot: Snapshot) -> Dict[str, int]:
    counts: Dict[str, int] = {"clients": len(snapshot.clients)}
    for kind in ConfigKind:
        counts[kind.value] = sum(len(c.entries_of(kind)) for c in snapshot.clients)
    return counts
