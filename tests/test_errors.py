from __future__ import annotations

import grpc
import pytest

from csds_client.util.errors import (
    AuthResolutionError,
    ConfigError,
    CsdsRpcError,
    ExitCode,
    MalformedConfigError,
    ViewerError,
    as_exit_code,
    map_grpc_error,
)


class _UnavailableError(grpc.RpcError):
    def code(self) -> grpc.StatusCode:
        return grpc.StatusCode.UNAVAILABLE

    def details(self) -> str:
        return "connection refused"


@pytest.mark.parametrize(
    "exc, code",
    [
        (ConfigError("bad"), ExitCode.CONFIG_ERROR),
        (ValueError("bad"), ExitCode.CONFIG_ERROR),
        (AuthResolutionError("no creds"), ExitCode.AUTH_ERROR),
        (CsdsRpcError("stream"), ExitCode.RPC_ERROR),
        (MalformedConfigError("route", "x"), ExitCode.RUNTIME_ERROR),
        (ViewerError("no browser"), ExitCode.RUNTIME_ERROR),
        (OSError("disk"), ExitCode.RUNTIME_ERROR),
    ],
)
def test_as_exit_code(exc, code) -> None:
    assert as_exit_code(exc) == int(code)


def test_unexpected_errors_exit_one() -> None:
    assert as_exit_code(RuntimeError("boom")) == 1


def test_map_grpc_error_includes_status_and_details() -> None:
    mapped = map_grpc_error(_UnavailableError(), "receive client status error")

    assert isinstance(mapped, CsdsRpcError)
    assert str(mapped) == "receive client status error: UNAVAILABLE connection refused"


def test_map_grpc_error_ignores_other_errors() -> None:
    assert map_grpc_error(KeyError("x"), "ctx") is None
