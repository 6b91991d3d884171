from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Sequence, Tuple

from ..util.errors import AuthResolutionError

try:
    import google.auth  # type: ignore
    import google.auth.transport.grpc  # type: ignore
    import google.auth.transport.requests  # type: ignore
    from google.auth import exceptions as google_auth_exceptions  # type: ignore
    from google.oauth2 import service_account  # type: ignore
except Exception:  # pragma: no cover - import error surfaced at runtime/CI
    google = None  # type: ignore
    google_auth_exceptions = None  # type: ignore
    service_account = None  # type: ignore


CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"
TRAFFIC_DIRECTOR_URI = "trafficdirector.googleapis.com:443"
USER_PROJECT_HEADER = "x-goog-user-project"
AUTHN_MODES = {"auto", "jwt"}
PLATFORMS = {"gcp"}


@dataclass(frozen=True)
class AuthContext:
    """
    Resolved credentials plus the per-call metadata to send on the CSDS stream.
    """

    method: str  # auto|jwt (resolved final)
    platform: str
    credentials: Any
    metadata: Tuple[Tuple[str, str], ...] = ()


class AuthError(RuntimeError):
    pass


def _require_google_auth() -> None:
    if google is None or service_account is None:
        raise AuthError("google-auth not installed. Install dependencies and try again: pip install .")


def _credentials_error_types() -> Tuple[type, ...]:
    if google_auth_exceptions is None:
        return ()
    return (google_auth_exceptions.GoogleAuthError,)


def _user_project_metadata(service_uri: str, project_number: Optional[str]) -> Tuple[Tuple[str, str], ...]:
    # Traffic Director bills and authorizes CSDS calls against the mesh project.
    if service_uri == TRAFFIC_DIRECTOR_URI and project_number:
        return ((USER_PROJECT_HEADER, project_number),)
    return ()


def resolve_auth(
    method: str,
    platform: str,
    *,
    jwt_file: Optional[Path] = None,
    service_uri: str = TRAFFIC_DIRECTOR_URI,
    project_number: Optional[str] = None,
) -> AuthContext:
    """
    Resolve credentials for the control plane.
    - auto: Application Default Credentials; adds x-goog-user-project for Traffic Director
    - jwt: service account key file
    """
    _require_google_auth()
    method = (method or "auto").lower()
    if platform not in PLATFORMS:
        raise AuthError(f"{platform} platform is not supported, list of supported platforms: gcp")

    if method == "jwt":
        if not jwt_file:
            raise AuthError("missing jwt file")
        try:
            creds = service_account.Credentials.from_service_account_file(  # type: ignore[union-attr]
                str(jwt_file), scopes=[CLOUD_PLATFORM_SCOPE]
            )
        except (OSError, ValueError) + _credentials_error_types() as e:
            raise AuthError(f"Failed to load service account key {jwt_file}: {e}") from e
        return AuthContext(method="jwt", platform=platform, credentials=creds)

    if method == "auto":
        try:
            creds, _project = google.auth.default(scopes=[CLOUD_PLATFORM_SCOPE])  # type: ignore[union-attr]
        except _credentials_error_types() as e:
            raise AuthError(f"Failed to resolve Application Default Credentials: {e}") from e
        return AuthContext(
            method="auto",
            platform=platform,
            credentials=creds,
            metadata=_user_project_metadata(service_uri, project_number),
        )

    raise AuthError(f"invalid authn_mode: {method}, expected one of: {', '.join(sorted(AUTHN_MODES))}")


def resolve_auth_or_raise(
    method: str,
    platform: str,
    *,
    jwt_file: Optional[Path] = None,
    service_uri: str = TRAFFIC_DIRECTOR_URI,
    project_number: Optional[str] = None,
) -> AuthContext:
    try:
        return resolve_auth(
            method,
            platform,
            jwt_file=jwt_file,
            service_uri=service_uri,
            project_number=project_number,
        )
    except AuthError as e:
        raise AuthResolutionError(str(e)) from e


def make_channel(ctx: AuthContext, service_uri: str, *, options: Optional[Sequence[Tuple[str, Any]]] = None) -> Any:
    """
    Open a TLS gRPC channel that attaches the resolved credentials to every call.
    """
    _require_google_auth()
    request = google.auth.transport.requests.Request()  # type: ignore[union-attr]
    try:
        return google.auth.transport.grpc.secure_authorized_channel(  # type: ignore[union-attr]
            ctx.credentials, request, service_uri, options=options
        )
    except _credentials_error_types() as e:
        raise AuthResolutionError(f"Failed to open authenticated channel to {service_uri}: {e}") from e
