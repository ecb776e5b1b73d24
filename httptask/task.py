"""HTTP request task — the entry point the workflow layer invokes.

Ties the pieces together for one execution:

    spec ──► RequestAssembler ──► HttpRequest
      │                               │
      └─► build_transport_config ─► build_client ──► execute / stream ──► tags
"""

from __future__ import annotations

import time
from collections.abc import Iterator
from typing import Any, Mapping

import httpx

from httptask.context import RunContext
from httptask.logging import get_logger
from httptask.protocol.models import RequestSpec
from httptask.request.assembler import HttpRequest, RequestAssembler
from httptask.tags import tags
from httptask.transport.client import HttpResponse, build_client
from httptask.transport.config import TransportConfig, build_transport_config

log = get_logger(__name__)


class HttpRequestTask:
    """Executes one declarative HTTP call.

    Usage::

        task = HttpRequestTask.from_mapping({
            "uri": "https://api.example.com/items/{{ inputs.id }}",
            "method": "GET",
        })
        with RunContext.from_settings(variables={"inputs": {"id": 7}}) as ctx:
            response = task.run(ctx)
    """

    def __init__(
        self,
        spec: RequestSpec,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.spec = spec
        self._transport = transport

    @classmethod
    def from_mapping(
        cls, data: Mapping[str, Any], transport: httpx.BaseTransport | None = None
    ) -> "HttpRequestTask":
        """Build a task from YAML/JSON-shaped data (camelCase keys accepted)."""
        return cls(RequestSpec.model_validate(dict(data)), transport=transport)

    def request(self, ctx: RunContext) -> HttpRequest:
        """Assemble the request without sending it."""
        return RequestAssembler(ctx.render, ctx.stager).assemble(self.spec)

    def configuration(self, ctx: RunContext) -> TransportConfig:
        return build_transport_config(
            self.spec.options,
            self.spec.method,
            tls_options=self.spec.tls_options,
            render=ctx.render,
        )

    def run(self, ctx: RunContext) -> HttpResponse:
        """Send the request and return the buffered response."""
        request = self.request(ctx)
        config = self.configuration(ctx)
        start = time.monotonic()
        with build_client(request.url, config, transport=self._transport) as client:
            response = client.execute(request)
        log.info(
            "http_request_completed",
            url=request.url,
            elapsed_ms=round((time.monotonic() - start) * 1000, 1),
            size=len(response.content),
            **dict(tags(request, response)),
        )
        return response

    def stream(self, ctx: RunContext, chunk_size: int | None = None) -> Iterator[bytes]:
        """Send the request and yield the response body lazily.

        The request is assembled immediately; nothing is sent until the first
        chunk is requested.
        """
        request = self.request(ctx)
        config = self.configuration(ctx)
        return self._stream(request, config, chunk_size)

    def _stream(
        self, request: HttpRequest, config: TransportConfig, chunk_size: int | None
    ) -> Iterator[bytes]:
        seen: list[httpx.Response] = []
        kwargs: dict[str, Any] = {"on_response": seen.append}
        if chunk_size is not None:
            kwargs["chunk_size"] = chunk_size

        received = 0
        with build_client(
            request.url, config, streaming=True, transport=self._transport
        ) as client:
            for chunk in client.stream(request, **kwargs):
                received += len(chunk)
                yield chunk

        log.info(
            "http_stream_completed",
            url=request.url,
            size=received,
            **dict(tags(request, seen[0] if seen else None)),
        )
