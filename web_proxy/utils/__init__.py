import hashlib
from typing import Mapping, Optional


def mask_value(value: Optional[str]) -> str:
    """Provide a stable, low-leak identifier for a header value in logs."""
    if not value:
        return "<empty>"
    digest = hashlib.sha256(value.encode("utf-8")).hexdigest()[:12]
    return f"len={len(value)} sha256={digest}"


def describe_headers(headers: Mapping[str, str]) -> str:
    return ", ".join(f"{name}=<{mask_value(value)}>" for name, value in headers.items())
