from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

import yaml
from google.protobuf import json_format

from envoy.type.matcher.v3.node_pb2 import NodeMatcher

from ..util.errors import ConfigError

GCP_PROJECT_NUMBER_KEY = "TRAFFICDIRECTOR_GCP_PROJECT_NUMBER"
GCP_NETWORK_NAME_KEY = "TRAFFICDIRECTOR_NETWORK_NAME"

REQUIRED_METADATA_KEYS: Mapping[str, Sequence[str]] = {
    "gcp": (GCP_PROJECT_NUMBER_KEY, GCP_NETWORK_NAME_KEY),
}


def _parse_request_text(text: str, source: str) -> Dict[str, Any]:
    stripped = text.strip()
    try:
        if stripped.startswith("{"):
            data = json.loads(stripped)
        else:
            data = yaml.safe_load(stripped) or {}
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigError(f"Failed to parse request {source}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Request {source} must be an object with a 'node_matchers' list")
    return data


def _node_matchers_from(data: Mapping[str, Any], source: str) -> List[NodeMatcher]:
    raw = data.get("node_matchers", data.get("nodeMatchers"))
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ConfigError(f"'node_matchers' in request {source} must be a list")
    out: List[NodeMatcher] = []
    for i, item in enumerate(raw):
        try:
            out.append(json_format.ParseDict(item, NodeMatcher()))
        except json_format.ParseError as e:
            raise ConfigError(f"Invalid node_matchers[{i}] in request {source}: {e}") from e
    return out


def load_node_matchers(request_file: Optional[Path], request_yaml: Optional[str]) -> List[NodeMatcher]:
    """
    Load the CSDS request node matchers from a YAML file and/or an inline YAML/JSON string.

    When both are given, each inline matcher is merged into the file matcher at the
    same index (scalars override, repeated fields append) and extra inline matchers
    are appended.
    """
    if not request_file and not request_yaml:
        raise ConfigError("missing request yaml: provide --request-file or --request-yaml")

    matchers: List[NodeMatcher] = []
    if request_file:
        path = Path(request_file)
        if not path.is_file():
            raise ConfigError(f"Request file not found: {path}")
        data = _parse_request_text(path.read_text(encoding="utf-8"), f"file {path}")
        matchers = _node_matchers_from(data, f"file {path}")

    if request_yaml:
        inline = _node_matchers_from(_parse_request_text(request_yaml, "yaml"), "yaml")
        for i, matcher in enumerate(inline):
            if i < len(matchers):
                matchers[i].MergeFrom(matcher)
            else:
                matchers.append(matcher)
    return matchers


def get_metadata_value(node_matchers: Sequence[NodeMatcher], key: str) -> str:
    """
    Return the first exact string matched against node metadata path `key`, or "".
    """
    for matcher in node_matchers:
        for struct_matcher in matcher.node_metadatas:
            for segment in struct_matcher.path:
                if segment.key == key:
                    return struct_matcher.value.string_match.exact
    return ""


def validate_node_matchers(node_matchers: Sequence[NodeMatcher], platform: str) -> None:
    required = REQUIRED_METADATA_KEYS.get(platform)
    if required is None:
        supported = ", ".join(sorted(REQUIRED_METADATA_KEYS))
        raise ConfigError(f"{platform} platform is not supported, list of supported platforms: {supported}")
    for key in required:
        if not get_metadata_value(node_matchers, key):
            raise ConfigError(f"missing field {key} in NodeMatcher")


def requested_node_ids(node_matchers: Sequence[NodeMatcher]) -> List[str]:
    ids: List[str] = []
    for matcher in node_matchers:
        exact = matcher.node_id.exact
        if exact and exact not in ids:
            ids.append(exact)
    return ids
