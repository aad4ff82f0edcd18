import logging

from fastapi import APIRouter, Request
from starlette.concurrency import run_in_threadpool
from starlette.types import Receive, Scope, Send

from web_proxy.proxy.handler import ProxyHandler

logger = logging.getLogger("uvicorn.error")


class ProxyEndpoint:
    """
    ASGI endpoint handing every request to the proxy handler.

    Starlette restricts plain function endpoints to GET unless a method list
    is given; an ASGI endpoint is routed for any method, including ones the
    target mapping does not know. The handler is synchronous and runs on a
    worker thread, one request per thread.
    """

    def __init__(self, handler: ProxyHandler):
        self.handler = handler

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        request = Request(scope, receive, send)
        response = await run_in_threadpool(self.handler.handle, request)
        await response(scope, receive, send)


def build_router(handler: ProxyHandler, mount_path: str) -> APIRouter:
    """Register the catch-all forwarding route under ``mount_path``."""
    router = APIRouter()
    endpoint = ProxyEndpoint(handler)

    router.add_route(mount_path or "/", endpoint, include_in_schema=False)
    router.add_route(f"{mount_path}/{{path:path}}", endpoint, include_in_schema=False)

    if mount_path:
        logger.info(f"Forwarding requests under {mount_path}")
    else:
        logger.info("No PROXY_MOUNT_PATH set, forwarding every path")
    return router
