"""Transport layer — client configuration and the client factory."""

from httptask.transport.client import (
    HttpClient,
    HttpResponse,
    StreamingHttpClient,
    build_client,
)
from httptask.transport.config import TlsConfig, TransportConfig, build_transport_config

__all__ = [
    "HttpClient",
    "HttpResponse",
    "StreamingHttpClient",
    "TlsConfig",
    "TransportConfig",
    "build_client",
    "build_transport_config",
]
