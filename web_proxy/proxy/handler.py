"""
Entry point of the forwarding pipeline.

Each inbound request is answered exactly once, either locally (preflight or
transport failure) or by relaying the target's response:

    OPTIONS  -> 200, injected response headers, empty body
    other    -> map -> inject request headers -> forward -> relay
    failure  -> 404, empty body, no injected headers
"""

import logging
from typing import Optional

from fastapi import Request
from fastapi.responses import Response

from web_proxy.proxy.client import ForwardingClient, TransportFailure
from web_proxy.proxy.config import ProxyConfig
from web_proxy.proxy.headers import inject_headers
from web_proxy.proxy.mapper import ProxyMethod, map_request
from web_proxy.proxy.relay import relay_response
from web_proxy.utils import describe_headers

logger = logging.getLogger("uvicorn.error")

TRANSPORT_FAILURE_STATUS = 404


def _raw_path(request: Request) -> str:
    """The request path as sent by the caller, still percent-encoded."""
    raw_path = request.scope.get("raw_path")
    if raw_path is None:
        return request.scope["path"]
    return raw_path.decode("latin-1").split("?", 1)[0]


class ProxyHandler:
    def __init__(
        self,
        config: ProxyConfig,
        mount_path: str,
        client: Optional[ForwardingClient] = None,
    ):
        self.config = config
        self.mount_path = mount_path
        self.client = client or ForwardingClient()
        logger.debug(
            f"Proxy handler initialized: mount={mount_path!r} baseUri={config.base_uri!r} "
            f"injectRequestHeaders=[{describe_headers(config.request_headers)}] "
            f"injectResponseHeaders=[{describe_headers(config.response_headers)}]"
        )

    def handle(self, request: Request) -> Response:
        if request.method == ProxyMethod.OPTIONS.value:
            return self.preflight()

        outbound = map_request(
            self.config,
            request.method,
            self.mount_path,
            _raw_path(request),
            request.scope.get("query_string", b"").decode("latin-1"),
        )
        logger.debug(f"Proxying {request.method}:{outbound.url}")

        result = self.client.forward(outbound, self.config.request_headers)
        if isinstance(result, TransportFailure):
            logger.error(
                f"Failed to make proxy request to {outbound.url} ({result.reason}): {result.error}",
                exc_info=result.error,
            )
            return Response(status_code=TRANSPORT_FAILURE_STATUS)

        return relay_response(result.response, self.config.response_headers)

    def preflight(self) -> Response:
        response = Response(status_code=200)
        inject_headers(response.headers, self.config.response_headers)
        logger.debug("Answered preflight request with status 200")
        return response

    def close(self) -> None:
        self.client.close()
