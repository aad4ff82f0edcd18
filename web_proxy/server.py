from contextlib import asynccontextmanager
from typing import Optional, Sequence

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import ReadableSpan, TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    SpanExporter,
    SpanExportResult,
)
from prometheus_client import Info
from prometheus_fastapi_instrumentator import Instrumentator

from web_proxy.proxy.client import ForwardingClient
from web_proxy.proxy.config import ProxyConfig, load_proxy_config
from web_proxy.proxy.handler import ProxyHandler
from web_proxy.routes import build_router
from web_proxy.vars import (
    OTLP_ENDPOINT,
    OTLP_HEADERS,
    PROXY_MOUNT_PATH,
    PROXY_TIMEOUT,
    SERVICE_NAME,
)


class FilteringSpanExporter(SpanExporter):
    """
    Wrapper exporter that filters out noisy ASGI body spans from streamed responses.
    A relayed body produces one span per chunk otherwise.
    """

    def __init__(self, exporter: SpanExporter):
        self.exporter = exporter

    def export(self, spans: Sequence[ReadableSpan]) -> SpanExportResult:
        filtered_spans = [
            span
            for span in spans
            if not (
                span.attributes
                and span.attributes.get("asgi.event.type") == "http.response.body"
            )
        ]
        if filtered_spans:
            return self.exporter.export(filtered_spans)
        return SpanExportResult.SUCCESS

    def shutdown(self):
        return self.exporter.shutdown()

    def force_flush(self, timeout_millis: int = 30000):
        return self.exporter.force_flush(timeout_millis)


def create_app(
    config: Optional[ProxyConfig] = None,
    client: Optional[ForwardingClient] = None,
    mount_path: str = PROXY_MOUNT_PATH,
    instrument: bool = False,
) -> FastAPI:
    """
    Build the forwarding application.

    The configuration is read from the environment unless given; a malformed
    one raises ConfigurationError here, before anything is served.
    """
    handler = ProxyHandler(
        config or load_proxy_config(),
        mount_path,
        client or ForwardingClient(timeout=PROXY_TIMEOUT),
    )

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        yield
        handler.close()

    app = FastAPI(lifespan=lifespan)
    app.state.proxy_handler = handler
    if instrument:
        # Before the catch-all route, which would otherwise shadow /metrics
        Instrumentator().instrument(app).expose(app)
        configure_tracing(app)
    app.include_router(build_router(handler, mount_path))
    return app


def configure_tracing(app: FastAPI) -> None:
    trace.set_tracer_provider(
        TracerProvider(resource=Resource.create({"service.name": SERVICE_NAME}))
    )
    tracer_provider = trace.get_tracer_provider()
    if OTLP_ENDPOINT:
        otlp_exporter = OTLPSpanExporter(
            endpoint=OTLP_ENDPOINT,
            headers=((OTLP_HEADERS).split(",") if OTLP_HEADERS else None),
        )
        tracer_provider.add_span_processor(
            BatchSpanProcessor(FilteringSpanExporter(otlp_exporter))
        )

    FastAPIInstrumentor.instrument_app(
        app,
        excluded_urls="metrics",
        server_request_hook=None,
        client_request_hook=None,
    )


app = create_app(instrument=True)

# Add app_name to the metrics
app_info = Info("fastapi_app_info", "Application Info")
app_info.info({"app_name": SERVICE_NAME})
