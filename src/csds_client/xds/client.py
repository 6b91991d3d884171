from __future__ import annotations

from queue import Queue
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple

from envoy.service.status.v3 import csds_pb2, csds_pb2_grpc
from envoy.type.matcher.v3.node_pb2 import NodeMatcher

from ..logging import get_logger
from ..util.errors import CsdsRpcError, map_grpc_error
from .resolver import decode_response

LOG = get_logger(__name__)

Metadata = Sequence[Tuple[str, str]]
StubFactory = Callable[[Any], Any]


class CsdsClient:
    """
    Bidirectional StreamClientStatus session.

    Each fetch() sends one ClientStatusRequest on the open stream and returns the
    next response in JSON form. The stream is opened lazily and reused across
    fetches, so monitor mode polls over a single call.
    """

    def __init__(
        self,
        channel: Any,
        node_matchers: Sequence[NodeMatcher],
        *,
        metadata: Optional[Metadata] = None,
        stub_factory: Optional[StubFactory] = None,
    ) -> None:
        self._channel = channel
        self._node_matchers: List[NodeMatcher] = list(node_matchers)
        self._metadata = tuple(metadata or ())
        self._stub = (stub_factory or csds_pb2_grpc.ClientStatusDiscoveryServiceStub)(channel)
        self._requests: Queue[Optional[csds_pb2.ClientStatusRequest]] = Queue()
        self._responses: Optional[Iterator[Any]] = None
        self._closed = False

    def _request_iter(self) -> Iterator[csds_pb2.ClientStatusRequest]:
        while True:
            request = self._requests.get()
            if request is None:
                return
            yield request

    def _open_stream(self) -> Iterator[Any]:
        if self._responses is None:
            try:
                self._responses = self._stub.StreamClientStatus(
                    self._request_iter(), metadata=self._metadata or None
                )
            except Exception as e:
                mapped = map_grpc_error(e, "stream client status error")
                if mapped:
                    raise mapped from e
                raise
        return self._responses

    def build_request(self) -> csds_pb2.ClientStatusRequest:
        return csds_pb2.ClientStatusRequest(node_matchers=self._node_matchers)

    def fetch_raw(self) -> csds_pb2.ClientStatusResponse:
        if self._closed:
            raise CsdsRpcError("CSDS stream is closed")
        responses = self._open_stream()
        self._requests.put(self.build_request())
        try:
            return next(responses)
        except StopIteration:
            # server half-closed without an answer; treat as an empty response
            LOG.warning("CSDS stream ended without a response")
            return csds_pb2.ClientStatusResponse()
        except Exception as e:
            mapped = map_grpc_error(e, "receive client status error")
            if mapped:
                raise mapped from e
            raise

    def fetch(self) -> Dict[str, Any]:
        return decode_response(self.fetch_raw())

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._requests.put(None)
        close = getattr(self._channel, "close", None)
        if callable(close):
            close()

    def __enter__(self) -> CsdsClient:
        return self

    def __exit__(self, exc_type: Any, exc: Any, exc_tb: Any) -> None:
        self.close()
