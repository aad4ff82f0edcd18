import logging
from typing import Iterator, Mapping

import httpx
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from web_proxy.proxy.headers import inject_headers

logger = logging.getLogger("uvicorn.error")


def stream_body(response: httpx.Response) -> Iterator[bytes]:
    """
    Yield the upstream body exactly as received and close the response afterwards.

    Status and headers are already on the wire when this runs, so a failure
    here can only end the stream early.
    """
    try:
        if response.is_stream_consumed:
            # Already read into memory, e.g. a response built from bytes
            if response.content:
                yield response.content
            return
        for chunk in response.iter_raw():
            yield chunk
    except httpx.TransportError as e:
        logger.error(
            f"Upstream body stream failed, response to caller is truncated: {e}",
            exc_info=True,
        )
    finally:
        response.close()


def _copy_raw_headers(upstream: httpx.Response, relayed: StreamingResponse) -> None:
    # Byte pairs as received; each name replaces earlier values of the same name
    for name, value in upstream.headers.raw:
        key = name.lower()
        relayed.raw_headers[:] = [h for h in relayed.raw_headers if h[0] != key]
        relayed.raw_headers.append((key, value))


def relay_response(
    upstream: httpx.Response, response_headers: Mapping[str, str]
) -> StreamingResponse:
    """Copy status, headers and body of ``upstream`` and overlay the injected headers."""
    try:
        relayed = StreamingResponse(
            stream_body(upstream),
            status_code=upstream.status_code,
            # Releases the upstream connection once the body has been sent
            background=BackgroundTask(upstream.close),
        )
        _copy_raw_headers(upstream, relayed)
        inject_headers(relayed.headers, response_headers)
    except Exception:
        upstream.close()
        raise
    return relayed
