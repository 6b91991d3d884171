from __future__ import annotations

import importlib
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple, Type

from google.protobuf import json_format
from google.protobuf.message import Message

ANY_FULL_NAME = "google.protobuf.Any"
TYPE_URL_PREFIX = "type.googleapis.com/"

# type URL -> (module, message class). Only these payloads are decoded; any other
# google.protobuf.Any is cleared before JSON conversion.
KNOWN_MESSAGE_TYPES: Mapping[str, Tuple[str, str]] = {
    TYPE_URL_PREFIX
    + "envoy.extensions.filters.network.http_connection_manager.v3.HttpConnectionManager": (
        "envoy.extensions.filters.network.http_connection_manager.v3.http_connection_manager_pb2",
        "HttpConnectionManager",
    ),
    TYPE_URL_PREFIX + "envoy.config.listener.v3.Listener": (
        "envoy.config.listener.v3.listener_pb2",
        "Listener",
    ),
    TYPE_URL_PREFIX + "envoy.config.route.v3.RouteConfiguration": (
        "envoy.config.route.v3.route_pb2",
        "RouteConfiguration",
    ),
    TYPE_URL_PREFIX + "envoy.config.cluster.v3.Cluster": (
        "envoy.config.cluster.v3.cluster_pb2",
        "Cluster",
    ),
    TYPE_URL_PREFIX + "envoy.extensions.filters.http.router.v3.Router": (
        "envoy.extensions.filters.http.router.v3.router_pb2",
        "Router",
    ),
}


class TypeResolver:
    """
    Lookup table from Any type URLs to protobuf message classes.

    find_message_by_url returns None for URLs outside the table.
    """

    def __init__(self, known: Mapping[str, Tuple[str, str]]) -> None:
        self._known = dict(known)
        self._cache: Dict[str, Type[Message]] = {}

    def known_type_urls(self) -> list[str]:
        return sorted(self._known.keys())

    def find_message_by_url(self, type_url: str) -> Optional[Type[Message]]:
        cached = self._cache.get(type_url)
        if cached is not None:
            return cached
        target = self._known.get(type_url)
        if target is None:
            return None
        module_name, class_name = target
        message_cls = getattr(importlib.import_module(module_name), class_name)
        self._cache[type_url] = message_cls
        return message_cls


_default_resolver = TypeResolver(KNOWN_MESSAGE_TYPES)


def find_message_by_url(type_url: str) -> Optional[Type[Message]]:
    return _default_resolver.find_message_by_url(type_url)


def _message_values(value: Any) -> Iterable[Message]:
    if isinstance(value, Message):
        return [value]
    values = getattr(value, "values", None)
    if callable(values):
        return [v for v in values() if isinstance(v, Message)]
    return [v for v in value if isinstance(v, Message)]


def _scrub_any(any_msg: Any, resolver: TypeResolver) -> int:
    message_cls = resolver.find_message_by_url(any_msg.type_url)
    if message_cls is None:
        any_msg.Clear()
        return 1
    inner = message_cls()
    if not any_msg.Unpack(inner):
        any_msg.Clear()
        return 1
    dropped = scrub_unresolvable(inner, resolver)
    if dropped:
        prefix = any_msg.type_url.rsplit("/", 1)[0] + "/"
        any_msg.Pack(inner, type_url_prefix=prefix)
    return dropped


def scrub_unresolvable(message: Message, resolver: Optional[TypeResolver] = None) -> int:
    """
    Clear every google.protobuf.Any in `message` whose type URL is not resolvable,
    recursing into the payloads that are. Returns the number of cleared payloads.
    """
    resolver = resolver or _default_resolver
    dropped = 0
    for field, value in message.ListFields():
        if field.message_type is None:
            continue
        for item in _message_values(value):
            if item.DESCRIPTOR.full_name == ANY_FULL_NAME:
                dropped += _scrub_any(item, resolver)
            else:
                dropped += scrub_unresolvable(item, resolver)
    return dropped


def decode_response(response: Message, resolver: Optional[TypeResolver] = None) -> Dict[str, Any]:
    """
    Convert a ClientStatusResponse into its camelCase JSON mapping.

    Typed extension payloads outside the resolver table are dropped first, so
    unknown extensions show up as empty objects instead of failing the decode.
    """
    resolver = resolver or _default_resolver
    for type_url in resolver.known_type_urls():
        # registers the descriptors json_format needs to expand Any payloads
        resolver.find_message_by_url(type_url)
    scrub_unresolvable(response, resolver)
    return json_format.MessageToDict(response)
