import logging
from dataclasses import dataclass
from typing import Mapping, Optional, Union

import httpx
from opentelemetry import trace

from web_proxy.proxy.headers import inject_headers
from web_proxy.proxy.mapper import OutboundRequest

logger = logging.getLogger("uvicorn.error")
tracer = trace.get_tracer(__name__)

_WIRE_HEADERS = {"host", "content-length"}


@dataclass(frozen=True)
class UpstreamResponse:
    """An open, still unread response from the target service."""

    response: httpx.Response


@dataclass(frozen=True)
class TransportFailure:
    reason: str
    error: Exception


ForwardResult = Union[UpstreamResponse, TransportFailure]


def _failure_reason(error: Exception) -> str:
    if isinstance(error, httpx.TimeoutException):
        return "timeout"
    if isinstance(error, httpx.ConnectError):
        return "connection_failed"
    if isinstance(error, (httpx.InvalidURL, httpx.UnsupportedProtocol)):
        return "invalid_url"
    return "transport_error"


class ForwardingClient:
    """
    Executes one outbound request per call on a shared, pooled httpx client.

    No body is sent. Besides the injected request headers only ``Host`` (and
    ``Content-Length: 0`` for POST and PUT) go on the wire. The response is
    returned unread so the caller can stream it; whoever receives an
    ``UpstreamResponse`` must close it.
    """

    def __init__(
        self,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self._client = httpx.Client(
            timeout=httpx.Timeout(timeout),
            follow_redirects=False,
            transport=transport,
        )

    def forward(
        self, outbound: OutboundRequest, request_headers: Mapping[str, str]
    ) -> ForwardResult:
        with tracer.start_as_current_span("proxy_request") as span:
            span.set_attribute("proxy.method", outbound.method.value)
            span.set_attribute("proxy.target_url", outbound.url)
            try:
                request = self._client.build_request(outbound.method.value, outbound.url)
                # Drop the client's default headers, keep the framing ones
                for name in [n for n in request.headers.keys() if n not in _WIRE_HEADERS]:
                    del request.headers[name]
                inject_headers(request.headers, request_headers)
                response = self._client.send(request, stream=True)
            except (httpx.TransportError, httpx.InvalidURL) as e:
                reason = _failure_reason(e)
                span.set_attribute("proxy.error", reason)
                return TransportFailure(reason=reason, error=e)

            span.set_attribute("proxy.status_code", response.status_code)
            return UpstreamResponse(response=response)

    def close(self) -> None:
        self._client.close()
