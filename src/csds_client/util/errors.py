from __future__ import annotations

from enum import IntEnum
from typing import Optional


class ExitCode(IntEnum):
    OK = 0
    CONFIG_ERROR = 2
    AUTH_ERROR = 3
    RPC_ERROR = 4
    RUNTIME_ERROR = 5


class CsdsError(Exception):
    """Base error for the CSDS client."""


class ConfigError(CsdsError):
    """Raised for configuration, argument or request-file issues."""


class AuthResolutionError(CsdsError):
    """Raised when credentials or the authenticated channel cannot be resolved."""


class CsdsRpcError(CsdsError):
    """Raised when the ClientStatusDiscoveryService stream fails."""


class ExtractionError(CsdsError):
    """Raised when a config snapshot cannot be turned into a graph."""


class MalformedSnapshotError(ExtractionError):
    """Raised when a ClientStatusResponse does not have the expected shape."""


class MalformedConfigError(ExtractionError):
    """Raised when a listener/route/cluster config dump is missing a field or has the wrong shape."""

    def __init__(self, category: str, detail: str) -> None:
        super().__init__(f"malformed {category} config: {detail}")
        self.category = category
        self.detail = detail


class ViewerError(CsdsError):
    """Raised when the rendered graph cannot be handed to a viewer."""


def as_exit_code(exc: BaseException) -> int:
    if isinstance(exc, (ConfigError, ValueError)):
        return int(ExitCode.CONFIG_ERROR)
    if isinstance(exc, AuthResolutionError):
        return int(ExitCode.AUTH_ERROR)
    if isinstance(exc, CsdsRpcError):
        return int(ExitCode.RPC_ERROR)
    if isinstance(exc, (ExtractionError, ViewerError, CsdsError, OSError)):
        return int(ExitCode.RUNTIME_ERROR)
    return 1


def _grpc_error_types() -> tuple[type[BaseException], ...]:
    try:
        import grpc  # type: ignore
    except Exception:
        return ()
    return (grpc.RpcError,)


def is_grpc_error(exc: BaseException) -> bool:
    """
    Return True if the exception looks like a grpc call error.
    """
    grpc_types = _grpc_error_types()
    if grpc_types and isinstance(exc, grpc_types):
        return True
    return exc.__class__.__module__.startswith("grpc")


def _grpc_error_detail(exc: BaseException) -> str:
    code = getattr(exc, "code", None)
    details = getattr(exc, "details", None)
    parts = []
    if callable(code):
        try:
            status = code()
            parts.append(getattr(status, "name", str(status)))
        except Exception:
            pass
    if callable(details):
        try:
            text = details()
            if text:
                parts.append(str(text))
        except Exception:
            pass
    return " ".join(parts) if parts else str(exc)


def map_grpc_error(exc: BaseException, context: str) -> Optional[CsdsRpcError]:
    """
    Wrap grpc errors with CsdsRpcError for consistent exit codes.
    """
    if not is_grpc_error(exc):
        return None
    return CsdsRpcError(f"{context}: {_grpc_error_detail(exc)}")
