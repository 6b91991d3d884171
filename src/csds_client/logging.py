from __future__ import annotations

import json
import logging
import os
import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

# Attributes every LogRecord carries; anything else on a record came in through `extra=`.
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}

# gRPC and google-auth are chatty at INFO (channel state, token refresh).
QUIET_LOGGERS = ("grpc", "google.auth", "urllib3")


@dataclass(frozen=True)
class LogConfig:
    level: str = "INFO"
    json_logs: bool = False


def _utc_timestamp(record: logging.LogRecord, timespec: str) -> str:
    return datetime.fromtimestamp(record.created, timezone.utc).isoformat(timespec=timespec).replace("+00:00", "Z")


def _extra_fields(record: logging.LogRecord) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for key, value in vars(record).items():
        if key in _RECORD_ATTRS or value is None:
            continue
        try:
            json.dumps(value)
        except (TypeError, ValueError):
            continue
        out[key] = value
    return out


class JsonFormatter(logging.Formatter):
    """One JSON object per line; step/phase/duration_ms and other extras become top-level keys."""

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload = _extra_fields(record)
        payload.update(
            timestamp=_utc_timestamp(record, "milliseconds"),
            level=record.levelname,
            name=record.name,
            message=record.getMessage(),
        )
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, sort_keys=True)


class PlainFormatter(logging.Formatter):
    """`<ts> LEVEL name: [step:phase] message (duration_ms=N)`"""

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        message = record.getMessage()
        step = getattr(record, "step", None)
        phase = getattr(record, "phase", None)
        if step or phase:
            message = f"[{step or 'unknown'}:{phase or 'unknown'}] {message}"
        duration_ms = getattr(record, "duration_ms", None)
        if duration_ms is not None:
            message = f"{message} (duration_ms={duration_ms})"
        return f"{_utc_timestamp(record, 'seconds')} {record.levelname} {record.name}: {message}"


def _resolve_level(config: Optional[LogConfig]) -> int:
    name = (config.level if config else None) or os.getenv("CSDS_LOG_LEVEL") or "INFO"
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.INFO


def _resolve_json_logs(config: Optional[LogConfig]) -> bool:
    if config is not None and config.json_logs:
        return True
    return (os.getenv("CSDS_JSON_LOGS") or "").strip().lower() in {"1", "true", "yes"}


def setup_logging(config: Optional[LogConfig] = None) -> None:
    """
    Configure the root logger once; later calls are no-ops.

    Logs go to stderr so stdout stays clean for the status table and the config
    dump. CSDS_LOG_LEVEL / CSDS_JSON_LOGS apply when the config leaves them unset.
    """
    if getattr(setup_logging, "_configured", False):
        return

    level = _resolve_level(config)
    handler = logging.StreamHandler(stream=sys.stderr)
    handler.setFormatter(JsonFormatter() if _resolve_json_logs(config) else PlainFormatter())

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers = [handler]
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    setattr(setup_logging, "_configured", True)


def add_run_log_file(log_path: Path) -> None:
    """Also write logs to `log_path` (--log-file), using the console formatter."""
    log_path.parent.mkdir(parents=True, exist_ok=True)
    root = logging.getLogger()
    target = str(log_path.resolve())
    if any(isinstance(h, logging.FileHandler) and h.baseFilename == target for h in root.handlers):
        return

    handler = logging.FileHandler(log_path, encoding="utf-8")
    handler.setLevel(root.level)
    formatter = root.handlers[0].formatter if root.handlers else None
    handler.setFormatter(formatter or PlainFormatter())
    root.addHandler(handler)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
