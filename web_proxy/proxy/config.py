"""
Immutable forwarding configuration.

A ``ProxyConfig`` is built once at startup and shared read-only by every
request. Malformed input is rejected at construction time with
``ConfigurationError`` so a broken deployment never starts serving.
"""

import logging
import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

from web_proxy import vars as proxy_vars
from web_proxy.utils import describe_headers

logger = logging.getLogger("uvicorn.error")

# RFC 7230 token characters
_HEADER_NAME = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")


class ConfigurationError(ValueError):
    """Raised when the forwarding configuration cannot be used."""


def parse_headers(raw: str) -> dict:
    """
    Parse a serialized header set such as ``"X-Api-Key: abc, Accept: */*"``.

    Entries are separated by ``,`` and the first ``:`` of an entry splits the
    name from the value. Empty entries are skipped and later duplicates win.

    Raises:
        ConfigurationError: if an entry has no ``:`` or an empty name.
    """
    headers: dict = {}
    if not raw:
        return headers
    for entry in raw.split(","):
        entry = entry.strip()
        if not entry:
            continue
        if ":" not in entry:
            raise ConfigurationError(f"Malformed header entry (expected Name:Value): {entry!r}")
        name, value = entry.split(":", 1)
        name = name.strip()
        if not name:
            raise ConfigurationError(f"Malformed header entry (empty name): {entry!r}")
        headers[name] = value.strip()
    return headers


def _validated_headers(
    option: str, headers: Mapping[str, str], encoding: str
) -> Mapping[str, str]:
    if not isinstance(headers, Mapping):
        raise ConfigurationError(f"{option} must be a mapping, got {type(headers).__name__}")
    for name, value in headers.items():
        if not isinstance(name, str) or not _HEADER_NAME.match(name):
            raise ConfigurationError(f"{option}: invalid header name {name!r}")
        if not isinstance(value, str):
            raise ConfigurationError(f"{option}: value of {name!r} must be a string")
        if "\r" in value or "\n" in value:
            raise ConfigurationError(f"{option}: value of {name!r} contains a line break")
        try:
            value.encode(encoding)
        except UnicodeEncodeError:
            raise ConfigurationError(
                f"{option}: value of {name!r} is not {encoding} encodable"
            ) from None
    return MappingProxyType(dict(headers))


@dataclass(frozen=True)
class ProxyConfig:
    """Target base URI plus the header sets injected on each leg."""

    base_uri: str = ""
    request_headers: Mapping[str, str] = field(default_factory=dict)
    response_headers: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        # base_uri is used verbatim, no trailing slash normalization
        if not isinstance(self.base_uri, str):
            raise ConfigurationError("base_uri must be a string")
        # httpx encodes request header values as ascii, Starlette responses as latin-1
        object.__setattr__(
            self,
            "request_headers",
            _validated_headers("request_headers", self.request_headers, "ascii"),
        )
        object.__setattr__(
            self,
            "response_headers",
            _validated_headers("response_headers", self.response_headers, "latin-1"),
        )

    @classmethod
    def from_strings(
        cls, base_uri: str, request_headers: str = "", response_headers: str = ""
    ) -> "ProxyConfig":
        return cls(
            base_uri=base_uri or "",
            request_headers=parse_headers(request_headers),
            response_headers=parse_headers(response_headers),
        )


def load_proxy_config() -> ProxyConfig:
    """Build the configuration from the process environment."""
    config = ProxyConfig.from_strings(
        proxy_vars.BASE_URI,
        proxy_vars.INJECT_REQUEST_HEADERS,
        proxy_vars.INJECT_RESPONSE_HEADERS,
    )
    logger.debug(
        f"Proxy configured: baseUri={config.base_uri!r} "
        f"requestHeaders=[{describe_headers(config.request_headers)}] "
        f"responseHeaders=[{describe_headers(config.response_headers)}]"
    )
    return config
