from .config import ConfigurationError, ProxyConfig
from .handler import ProxyHandler

__all__ = ["ConfigurationError", "ProxyConfig", "ProxyHandler"]
