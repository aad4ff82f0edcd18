import os

SERVICE_NAME = os.getenv("SERVICE_NAME", "web-proxy")

BASE_URI = os.environ.get("BASE_URI", "")
INJECT_REQUEST_HEADERS = os.environ.get("INJECT_REQUEST_HEADERS", "")
INJECT_RESPONSE_HEADERS = os.environ.get("INJECT_RESPONSE_HEADERS", "")

PROXY_MOUNT_PATH = os.environ.get("PROXY_MOUNT_PATH", "/proxy").rstrip("/")
# Unset means the outbound call may block for as long as the target takes
PROXY_TIMEOUT = (
    float(os.environ["PROXY_TIMEOUT"]) if os.environ.get("PROXY_TIMEOUT") else None
)

OTLP_ENDPOINT = os.getenv("OTLP_ENDPOINT")
OTLP_HEADERS = os.getenv("OTLP_HEADERS", "")
