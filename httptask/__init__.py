"""httptask — Declarative outbound HTTP requests for workflow tasks.

Turns a declarative description of an HTTP call (URI, method, headers, body
or multipart form, authentication, proxy, TLS trust policy, timeouts) into an
executable request and a configured httpx client.

Layers (bottom to top):
    1. Protocol  — request spec models, template rendering, constants
    2. Staging   — content references copied into execution-scoped scratch files
    3. Request   — request assembly (plain, URL-encoded, multipart bodies)
    4. Transport — client configuration and buffering / streaming clients
    5. Task      — execution context, task facade, CLI
"""

__version__ = "0.1.0"
__author__ = "httptask contributors"
__license__ = "Apache-2.0"

from httptask.context import RunContext
from httptask.protocol.models import HttpMethod, RequestSpec, TlsOptions, TransportOptions
from httptask.request.assembler import HttpRequest, RequestAssembler, assemble
from httptask.tags import tags
from httptask.task import HttpRequestTask
from httptask.transport.client import build_client
from httptask.transport.config import TransportConfig, build_transport_config

__all__ = [
    "__version__",
    "HttpMethod",
    "HttpRequest",
    "HttpRequestTask",
    "RequestAssembler",
    "RequestSpec",
    "RunContext",
    "TlsOptions",
    "TransportConfig",
    "TransportOptions",
    "assemble",
    "build_client",
    "build_transport_config",
    "tags",
]
