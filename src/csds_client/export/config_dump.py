from __future__ import annotations

import json
from pathlib import Path
from typing import IO, Any, Dict, Mapping, Optional

from ..util.errors import ConfigError
from ..util.serialization import pretty_json_dumps, sanitize_for_json


def render_config_dump(response: Mapping[str, Any]) -> str:
    return pretty_json_dumps(sanitize_for_json(dict(response))) + "\n"


def write_config_dump(response: Mapping[str, Any], path: Optional[Path], stream: IO[str]) -> Optional[Path]:
    """
    Save the decoded ClientStatusResponse as indented JSON, or print it when no path is set.
    """
    text = render_config_dump(response)
    if path is None:
        stream.write(text)
        return None
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def load_config_dump(path: Path) -> Dict[str, Any]:
    """Read a config dump written by write_config_dump (or any CSDS response in JSON form)."""
    if not path.is_file():
        raise ConfigError(f"Config dump not found: {path}")
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ConfigError(f"Failed to parse config dump {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("Top-level config dump must be an object")
    return data
