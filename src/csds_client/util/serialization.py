from __future__ import annotations

import json
from typing import Any

REDACTED_VALUE = "<redacted>"

# Lowercased substrings of Envoy config-dump keys that carry secrets, e.g.
# tlsCertificates[].privateKey, hmacSecret, accessToken.
SENSITIVE_KEY_SUBSTRINGS = (
    "privatekey",
    "private_key",
    "passphrase",
    "password",
    "token",
    "hmac",
)


def is_sensitive_key(key: str) -> bool:
    lowered = key.lower()
    return any(part in lowered for part in SENSITIVE_KEY_SUBSTRINGS)


def sanitize_for_json(value: Any) -> Any:
    """
    Copy a decoded config dump, replacing the value of every secret-looking key.

    Input is protobuf JSON (dicts, lists, scalars); tuples are emitted as lists.
    """
    if isinstance(value, dict):
        return {
            k: REDACTED_VALUE if isinstance(k, str) and is_sensitive_key(k) else sanitize_for_json(v)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [sanitize_for_json(v) for v in value]
    return value


def pretty_json_dumps(obj: Any) -> str:
    return json.dumps(obj, indent=2, ensure_ascii=False)
