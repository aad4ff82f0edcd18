from dataclasses import dataclass
from enum import Enum
from typing import Optional
from urllib.parse import unquote

from web_proxy.proxy.config import ProxyConfig


class ProxyMethod(str, Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"


_METHODS = {method.value: method for method in ProxyMethod}


@dataclass(frozen=True)
class OutboundRequest:
    method: ProxyMethod
    url: str


def resolve_method(name: Optional[str]) -> ProxyMethod:
    """Map an inbound method name onto the forwarded method, GET for anything else."""
    return _METHODS.get(name, ProxyMethod.GET)


def path_suffix(request_path: str, mount_path: str) -> str:
    """
    Everything after the mount path in the (still percent-encoded) request path.

    Routing matches on the decoded path, so a mount path written with escapes
    (``/pro%78y`` for ``/proxy``) is located in the decoded form and the suffix
    is cut from the raw path at the same point, leaving it encoded.
    """
    index = request_path.find(mount_path)
    if index >= 0:
        return request_path[index + len(mount_path):]

    decoded = unquote(request_path)
    index = decoded.find(mount_path)
    if index < 0:
        return request_path
    prefix = decoded[: index + len(mount_path)]
    for end in range(len(request_path) + 1):
        if unquote(request_path[:end]) == prefix:
            return request_path[end:]
    return request_path


def build_target_url(
    base_uri: str, mount_path: str, request_path: str, query: Optional[str]
) -> str:
    """
    Join the base URI with whatever follows the mount path in the request path.

    Path and query are passed through verbatim. The ``?`` separator is always
    appended, so a request without a query string yields a trailing ``?``.
    """
    return f"{base_uri}{path_suffix(request_path, mount_path)}?{query or ''}"


def map_request(
    config: ProxyConfig,
    method: Optional[str],
    mount_path: str,
    request_path: str,
    query: Optional[str],
) -> OutboundRequest:
    return OutboundRequest(
        method=resolve_method(method),
        url=build_target_url(config.base_uri, mount_path, request_path, query),
    )
