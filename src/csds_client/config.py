from __future__ import annotations

import argparse
import json
import os
import warnings
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

from .util.errors import ConfigError

# --------
# Defaults
# --------
DEFAULT_SERVICE_URI = "trafficdirector.googleapis.com:443"
DEFAULT_PLATFORM = "gcp"
DEFAULT_AUTHN_MODE = "auto"
DEFAULT_API_VERSION = "v3"
AUTHN_MODES = {"auto", "jwt"}
PLATFORMS = {"gcp"}
API_VERSIONS = {"v3"}
ALLOWED_CONFIG_KEYS = {
    "service_uri",
    "platform",
    "authn_mode",
    "api_version",
    "request_file",
    "request_yaml",
    "jwt_file",
    "file_to_save_config",
    "monitor_interval",
    "visualization",
    "open_viewer",
    "outdir",
    "input",
    "log_level",
    "log_file",
    "json_logs",
}
BOOL_CONFIG_KEYS = {"visualization", "open_viewer", "json_logs"}
FLOAT_CONFIG_KEYS = {"monitor_interval"}
PATH_CONFIG_KEYS = {"request_file", "jwt_file", "file_to_save_config", "outdir", "input", "log_file"}
STR_CONFIG_KEYS = {"service_uri", "platform", "authn_mode", "api_version", "request_yaml", "log_level"}


@dataclass(frozen=True)
class RunConfig:
    # Control plane
    service_uri: str = DEFAULT_SERVICE_URI
    platform: str = DEFAULT_PLATFORM
    api_version: str = DEFAULT_API_VERSION

    # Auth
    authn_mode: str = DEFAULT_AUTHN_MODE  # auto|jwt
    jwt_file: Optional[Path] = None

    # Request
    request_file: Optional[Path] = None
    request_yaml: Optional[str] = None

    # Output
    file_to_save_config: Optional[Path] = None
    monitor_interval: float = 0.0  # seconds; 0 = fetch once
    visualization: bool = False
    open_viewer: bool = True
    outdir: Path = Path(".")
    input: Optional[Path] = None  # saved config dump for the graph command

    # Logging
    log_level: str = "INFO"
    log_file: Optional[Path] = None
    json_logs: bool = False

    @property
    def monitor(self) -> bool:
        return self.monitor_interval > 0


def _parse_config_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    text = path.read_text(encoding="utf-8")
    try:
        if path.suffix.lower() == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text) or {}
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ValueError(f"Failed to parse config file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ValueError("Top-level config must be an object")
    return data


def _env_str(name: str) -> Optional[str]:
    raw = os.getenv(name)
    if raw is None:
        return None
    raw = raw.strip()
    if not raw:
        return None
    return raw


def _env_bool(name: str) -> Optional[bool]:
    raw = os.getenv(name)
    if raw is None:
        return None
    raw = raw.strip().lower()
    if not raw:
        return None
    return raw in {"1", "true", "yes", "on"}


def _env_float(name: str) -> Optional[float]:
    raw = os.getenv(name)
    if raw is None:
        return None
    try:
        return float(raw)
    except ValueError:
        return None


def _coerce_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        raw = value.strip().lower()
        if raw in {"1", "true", "yes", "on"}:
            return True
        if raw in {"0", "false", "no", "off"}:
            return False
    raise ValueError(f"Config field '{key}' must be a boolean")


def _coerce_float(key: str, value: Any) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    if isinstance(value, str) and value.strip():
        try:
            return float(value)
        except ValueError:
            pass
    raise ValueError(f"Config field '{key}' must be a number")


def _normalize_config_file(data: Dict[str, Any]) -> Dict[str, Any]:
    unknown = sorted(set(data.keys()) - ALLOWED_CONFIG_KEYS)
    if unknown:
        warnings.warn(f"Unknown config keys ignored: {', '.join(unknown)}")
    normalized: Dict[str, Any] = {}
    for key, value in data.items():
        if key not in ALLOWED_CONFIG_KEYS:
            continue
        if value is None:
            normalized[key] = None
        elif key in BOOL_CONFIG_KEYS:
            normalized[key] = _coerce_bool(key, value)
        elif key in FLOAT_CONFIG_KEYS:
            normalized[key] = _coerce_float(key, value)
        elif key in PATH_CONFIG_KEYS:
            if isinstance(value, (str, Path)):
                normalized[key] = value
            else:
                raise ValueError(f"Config field '{key}' must be a string path")
        elif key in STR_CONFIG_KEYS:
            if key == "request_yaml" and isinstance(value, dict):
                # allow the request to be written inline as a mapping
                normalized[key] = json.dumps(value)
            elif isinstance(value, str):
                normalized[key] = value
            else:
                raise ValueError(f"Config field '{key}' must be a string")
    return _compact_dict(normalized)


def _compact_dict(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Drop keys with None values so they don't override lower-precedence config.
    """
    return {k: v for k, v in data.items() if v is not None}


def _merge_dicts(a: Dict[str, Any], b: Dict[str, Any]) -> Dict[str, Any]:
    """
    Shallow merge: values in b override a.
    """
    merged = dict(a)
    merged.update(b)
    return merged


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="csds-client", description="CSDS client status and config graph CLI")
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_common(p: argparse.ArgumentParser) -> None:
        p.add_argument("--config", type=Path, help="Optional YAML/JSON config file")
        p.add_argument(
            "--json-logs",
            action=argparse.BooleanOptionalAction,
            default=None,
            help="Enable JSON logs",
        )
        p.add_argument("--log-level", default=None, help="Log level (INFO, DEBUG, ...)")
        p.add_argument("--log-file", type=Path, default=None, help="Also write logs to this file")

    def add_connection(p: argparse.ArgumentParser) -> None:
        p.add_argument("--service-uri", default=None, help=f"Control plane to connect to (default {DEFAULT_SERVICE_URI})")
        p.add_argument("--platform", default=None, choices=sorted(PLATFORMS), help="Cloud platform (default: gcp)")
        p.add_argument(
            "--authn-mode", default=None, choices=sorted(AUTHN_MODES), help="Authentication method (default: auto)"
        )
        p.add_argument("--jwt-file", type=Path, default=None, help="Service account key file for --authn-mode jwt")
        p.add_argument("--request-file", type=Path, default=None, help="YAML file that defines the CSDS request")
        p.add_argument(
            "--request-yaml",
            default=None,
            help="YAML/JSON string that defines the CSDS request (merged over --request-file)",
        )

    def add_graph_output(p: argparse.ArgumentParser) -> None:
        p.add_argument("--outdir", type=Path, default=None, help="Directory for config_graph.dot (default: cwd)")
        p.add_argument(
            "--open-viewer",
            action=argparse.BooleanOptionalAction,
            default=None,
            help="Open the rendered graph in the hosted Graphviz viewer",
        )

    p_run = subparsers.add_parser("run", help="Fetch client status from the control plane")
    add_common(p_run)
    add_connection(p_run)
    add_graph_output(p_run)
    p_run.add_argument("--api-version", default=None, choices=sorted(API_VERSIONS), help="xDS API major version")
    p_run.add_argument(
        "--file-to-save-config", type=Path, default=None, help="Save the detailed config dump to this file"
    )
    p_run.add_argument(
        "--monitor-interval",
        type=float,
        default=None,
        help="Re-fetch every N seconds (monitor mode; never opens the viewer)",
    )
    p_run.add_argument(
        "--visualization",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Render the listener/route/cluster graph",
    )

    p_graph = subparsers.add_parser("graph", help="Render the config graph from a saved config dump")
    add_common(p_graph)
    add_graph_output(p_graph)
    p_graph.add_argument("--input", type=Path, default=None, help="Config dump JSON written by run")

    p_val = subparsers.add_parser("validate-auth", help="Validate authentication setup")
    add_common(p_val)
    add_connection(p_val)

    return parser


def load_run_config(
    args: Optional[argparse.Namespace] = None,
    argv: Optional[list[str]] = None,
) -> Tuple[str, RunConfig]:
    """
    Build RunConfig by merging defaults, optional config file, env vars, and CLI args.
    Precedence (low -> high): defaults < config file < env < CLI.

    Returns:
      (command, RunConfig) where command is one of run|graph|validate-auth
    """
    ns = args if args is not None else build_parser().parse_args(argv)
    command = ns.command

    base: Dict[str, Any] = {
        "service_uri": DEFAULT_SERVICE_URI,
        "platform": DEFAULT_PLATFORM,
        "authn_mode": DEFAULT_AUTHN_MODE,
        "api_version": DEFAULT_API_VERSION,
        "monitor_interval": 0.0,
        "visualization": False,
        "open_viewer": True,
        "json_logs": False,
        "log_level": "INFO",
    }

    file_cfg: Dict[str, Any] = {}
    if getattr(ns, "config", None):
        file_cfg = _normalize_config_file(_parse_config_file(Path(ns.config)))

    env_cfg: Dict[str, Any] = _compact_dict(
        {
            "service_uri": _env_str("CSDS_SERVICE_URI"),
            "platform": _env_str("CSDS_PLATFORM"),
            "authn_mode": _env_str("CSDS_AUTHN_MODE"),
            "api_version": _env_str("CSDS_API_VERSION"),
            "request_file": _env_str("CSDS_REQUEST_FILE"),
            "request_yaml": _env_str("CSDS_REQUEST_YAML"),
            "jwt_file": _env_str("CSDS_JWT_FILE"),
            "file_to_save_config": _env_str("CSDS_FILE_TO_SAVE_CONFIG"),
            "monitor_interval": _env_float("CSDS_MONITOR_INTERVAL"),
            "visualization": _env_bool("CSDS_VISUALIZATION"),
            "open_viewer": _env_bool("CSDS_OPEN_VIEWER"),
            "outdir": _env_str("CSDS_OUTDIR"),
            "log_level": _env_str("CSDS_LOG_LEVEL"),
            "log_file": _env_str("CSDS_LOG_FILE"),
            "json_logs": _env_bool("CSDS_JSON_LOGS"),
        }
    )

    cli_cfg: Dict[str, Any] = _compact_dict(
        {key: getattr(ns, key, None) for key in sorted(ALLOWED_CONFIG_KEYS)}
    )

    merged = _merge_dicts(base, _merge_dicts(file_cfg, _merge_dicts(env_cfg, cli_cfg)))

    platform = str(merged["platform"]).lower()
    if platform not in PLATFORMS:
        raise ConfigError(f"{platform} platform is not supported, list of supported platforms: {', '.join(sorted(PLATFORMS))}")
    api_version = str(merged["api_version"]).lower()
    if api_version not in API_VERSIONS:
        raise ConfigError(
            f"{api_version} api version is not supported, list of supported api versions: {', '.join(sorted(API_VERSIONS))}"
        )
    authn_mode = str(merged["authn_mode"]).lower()
    if authn_mode not in AUTHN_MODES:
        raise ConfigError(f"Config field 'authn_mode' must be one of: {', '.join(sorted(AUTHN_MODES))}")
    monitor_interval = float(merged["monitor_interval"] or 0.0)
    if monitor_interval < 0:
        raise ConfigError("monitor_interval must not be negative")

    def _path(key: str) -> Optional[Path]:
        raw = merged.get(key)
        return Path(raw) if raw else None

    cfg = RunConfig(
        service_uri=str(merged["service_uri"]),
        platform=platform,
        api_version=api_version,
        authn_mode=authn_mode,
        jwt_file=_path("jwt_file"),
        request_file=_path("request_file"),
        request_yaml=merged.get("request_yaml") or None,
        file_to_save_config=_path("file_to_save_config"),
        monitor_interval=monitor_interval,
        visualization=bool(merged["visualization"]),
        open_viewer=bool(merged["open_viewer"]),
        outdir=_path("outdir") or Path.cwd(),
        input=_path("input"),
        log_level=(merged.get("log_level") or "INFO").upper(),
        log_file=_path("log_file"),
        json_logs=bool(merged["json_logs"]),
    )
    return command, cfg


def dump_config(cfg: RunConfig) -> Dict[str, Any]:
    return {
        "service_uri": cfg.service_uri,
        "platform": cfg.platform,
        "api_version": cfg.api_version,
        "authn_mode": cfg.authn_mode,
        "jwt_file": str(cfg.jwt_file) if cfg.jwt_file else None,
        "request_file": str(cfg.request_file) if cfg.request_file else None,
        "request_yaml": cfg.request_yaml,
        "file_to_save_config": str(cfg.file_to_save_config) if cfg.file_to_save_config else None,
        "monitor_interval": cfg.monitor_interval,
        "visualization": cfg.visualization,
        "open_viewer": cfg.open_viewer,
        "outdir": str(cfg.outdir),
        "input": str(cfg.input) if cfg.input else None,
        "log_level": cfg.log_level,
        "log_file": str(cfg.log_file) if cfg.log_file else None,
        "json_logs": cfg.json_logs,
    }
