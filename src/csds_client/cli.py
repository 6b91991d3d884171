from __future__ import annotations

import logging
import sys
from pathlib import Path
from time import perf_counter
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .auth.providers import AuthContext, make_channel, resolve_auth_or_raise
from .config import RunConfig, dump_config, load_run_config
from .export.config_dump import load_config_dump, write_config_dump
from .export.dot import GRAPH_FILE_NAME
from .export.graph import dangling_references, graph_summary
from .export.visualize import VisualizeResult, visualize
from .logging import LogConfig, add_run_log_file, get_logger, setup_logging
from .report import format_status_report
from .snapshot import parse_snapshot, snapshot_counts
from .util.errors import ConfigError, ViewerError, as_exit_code
from .util.rich_progress import MonitorProgress, render_graph_summary_table
from .xds.client import CsdsClient
from .xds.request import (
    GCP_PROJECT_NUMBER_KEY,
    get_metadata_value,
    load_node_matchers,
    requested_node_ids,
    validate_node_matchers,
)

LOG = get_logger(__name__)


class _StepTimers:
    def __init__(self) -> None:
        self._starts: Dict[str, float] = {}

    def start(self, key: str) -> None:
        self._starts[key] = perf_counter()

    def finish(self, key: str) -> Optional[int]:
        started = self._starts.pop(key, None)
        if started is None:
            return None
        return int((perf_counter() - started) * 1000)


def _log_event(
    logger: Any,
    level: int,
    message: str,
    *,
    step: str,
    phase: str,
    timers: Optional[_StepTimers] = None,
    timer_key: Optional[str] = None,
    **extra: Any,
) -> None:
    key = timer_key or step
    duration_ms = None
    if timers is not None:
        if phase == "start":
            timers.start(key)
        elif phase in {"complete", "error", "skipped"}:
            duration_ms = timers.finish(key)
    payload: Dict[str, Any] = {"step": step, "phase": phase, "event": f"{step}.{phase}"}
    if duration_ms is not None:
        payload["duration_ms"] = duration_ms
    payload.update(extra)
    logger.log(level, message, extra=payload)


def _console_enabled(cfg: RunConfig) -> bool:
    return sys.stdout.isatty() and not cfg.json_logs


def _load_request(cfg: RunConfig) -> List[Any]:
    node_matchers = load_node_matchers(cfg.request_file, cfg.request_yaml)
    validate_node_matchers(node_matchers, cfg.platform)
    return node_matchers


def _resolve_auth(cfg: RunConfig, node_matchers: Sequence[Any]) -> AuthContext:
    project_number = get_metadata_value(node_matchers, GCP_PROJECT_NUMBER_KEY) or None
    return resolve_auth_or_raise(
        cfg.authn_mode,
        cfg.platform,
        jwt_file=cfg.jwt_file,
        service_uri=cfg.service_uri,
        project_number=project_number,
    )


def _open_client(cfg: RunConfig, node_matchers: Sequence[Any]) -> CsdsClient:
    ctx = _resolve_auth(cfg, node_matchers)
    channel = make_channel(ctx, cfg.service_uri)
    LOG.debug("Channel opened", extra={"service_uri": cfg.service_uri, "method": ctx.method})
    return CsdsClient(channel, node_matchers, metadata=ctx.metadata)


def _render_graph(response: Mapping[str, Any], cfg: RunConfig, *, monitor: bool) -> VisualizeResult:
    timers = _StepTimers()
    _log_event(LOG, logging.INFO, "Graph rendering started", step="graph", phase="start", timers=timers)
    try:
        result = visualize(response, outdir=cfg.outdir, monitor=monitor or not cfg.open_viewer)
    except ViewerError as e:
        _log_event(LOG, logging.ERROR, "Graph viewer failed", step="graph", phase="error", timers=timers, error=str(e))
        # the DOT file is already on disk
        print(f"Config graph has been saved to {cfg.outdir / GRAPH_FILE_NAME}")
        raise
    except Exception as e:
        _log_event(LOG, logging.ERROR, "Graph rendering failed", step="graph", phase="error", timers=timers, error=str(e))
        raise
    summary = graph_summary(result.graph)
    for src, dst in dangling_references(result.graph):
        LOG.warning("Reference to unreported resource", extra={"source": src, "target": dst})
    _log_event(
        LOG,
        logging.INFO,
        "Graph rendering complete",
        step="graph",
        phase="complete",
        timers=timers,
        path=str(result.path),
        **summary,
    )
    print(f"Config graph has been saved to {result.path}")
    render_graph_summary_table(enabled=_console_enabled(cfg) and not monitor, summary=summary, path=str(result.path))
    return result


def process_response(response: Mapping[str, Any], cfg: RunConfig, *, requested_ids: Sequence[str] = ()) -> None:
    """
    Print the status table; when any client reported config, save the config dump
    and optionally render the graph.
    """
    snapshot = parse_snapshot(response)
    sys.stdout.write(format_status_report(snapshot, requested_ids))
    if not snapshot.has_config:
        return

    saved = write_config_dump(response, cfg.file_to_save_config, sys.stdout)
    if saved is not None:
        LOG.info("Config dump saved", extra={"step": "config_dump", "phase": "complete", "path": str(saved)})
        print(f"Config has been saved to {saved}")

    if cfg.visualization:
        _render_graph(response, cfg, monitor=cfg.monitor)


def cmd_run(cfg: RunConfig) -> int:
    node_matchers = _load_request(cfg)
    requested_ids = requested_node_ids(node_matchers)
    progress = MonitorProgress(enabled=_console_enabled(cfg))
    timers = _StepTimers()
    iteration = 0

    with _open_client(cfg, node_matchers) as client:
        try:
            while True:
                _log_event(
                    LOG, logging.INFO, "Fetching client status", step="fetch", phase="start", timers=timers, iteration=iteration
                )
                response = client.fetch()
                _log_event(
                    LOG,
                    logging.INFO,
                    "Client status received",
                    step="fetch",
                    phase="complete",
                    timers=timers,
                    iteration=iteration,
                    **snapshot_counts(parse_snapshot(response)),
                )
                process_response(response, cfg, requested_ids=requested_ids)
                if not cfg.monitor:
                    break
                progress.wait(cfg.monitor_interval, iteration=iteration, service_uri=cfg.service_uri)
                iteration += 1
        except KeyboardInterrupt:
            if not cfg.monitor:
                raise
            LOG.info("Monitor stopped", extra={"iterations": iteration + 1})
    return 0


def cmd_graph(cfg: RunConfig) -> int:
    if cfg.input is None:
        raise ConfigError("graph requires --input (a config dump written by run)")
    response = load_config_dump(Path(cfg.input))
    _render_graph(response, cfg, monitor=False)
    return 0


def cmd_validate_auth(cfg: RunConfig) -> int:
    node_matchers: List[Any] = []
    if cfg.request_file or cfg.request_yaml:
        node_matchers = _load_request(cfg)
    ctx = _resolve_auth(cfg, node_matchers)
    LOG.info("Authentication validated", extra={"method": ctx.method, "platform": ctx.platform})
    headers = ", ".join(k for k, _ in ctx.metadata)
    suffix = f"; call metadata: {headers}" if headers else ""
    print(f"OK: authentication validated (method={ctx.method}){suffix}")
    return 0


def main(argv: Optional[List[str]] = None) -> None:
    try:
        command, cfg = load_run_config(argv=argv)
        setup_logging(LogConfig(level=cfg.log_level, json_logs=cfg.json_logs))
        if cfg.log_file:
            add_run_log_file(cfg.log_file)
        LOG.debug("Configuration resolved", extra={"command": command, "config": dump_config(cfg)})

        if command == "run":
            code = cmd_run(cfg)
        elif command == "graph":
            code = cmd_graph(cfg)
        elif command == "validate-auth":
            code = cmd_validate_auth(cfg)
        else:
            raise ConfigError(f"Unknown command: {command}")

        sys.exit(code)
    except SystemExit:
        raise
    except BrokenPipeError:
        # Common when users pipe to `head` or similar tools.
        sys.exit(0)
    except Exception as e:
        # Map to consistent exit code and log
        setup_logging(LogConfig())  # no-op when already configured
        LOG.error("Execution failed", extra={"error": str(e)})
        sys.exit(as_exit_code(e))


if __name__ == "__main__":
    main()
