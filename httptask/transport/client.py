"""Client factory — buffering and streaming clients over one ``TransportConfig``.

``build_client`` checks the target endpoint once and returns either:
  - ``HttpClient``: sends a request and buffers the whole response body,
    refusing bodies larger than ``max_content_length``;
  - ``StreamingHttpClient``: sends a request and yields the body lazily, chunk
    by chunk.  Each ``stream()`` call opens a new exchange; the connection is
    released when the iterator is exhausted or closed.

Both own a single ``httpx.Client`` and are context managers.  Network errors
surface as ``httpx.HTTPError`` subclasses; nothing is retried.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from types import TracebackType
from typing import Any, Callable

import httpx

from httptask.exceptions import ConnectionSetupError, ContentLengthExceededError
from httptask.logging import get_logger
from httptask.protocol.constants import DEFAULT_CHUNK_SIZE
from httptask.request.assembler import HttpRequest
from httptask.transport.config import TransportConfig

log = get_logger(__name__)

_SUPPORTED_SCHEMES = ("http", "https")


@dataclass(frozen=True)
class HttpResponse:
    """A fully-read response."""

    status_code: int
    headers: httpx.Headers
    content: bytes
    url: str
    encoding: str

    @property
    def text(self) -> str:
        return self.content.decode(self.encoding, errors="replace")

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300


class _BaseClient:
    def __init__(
        self,
        endpoint: httpx.URL,
        config: TransportConfig,
        streaming: bool,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._endpoint = endpoint
        self._config = config
        kwargs: dict[str, Any] = config.client_kwargs(streaming=streaming)
        if transport is not None:
            kwargs["transport"] = transport
        if config.log_level is not None and (level := config.log_level.to_stdlib()) is not None:
            kwargs["event_hooks"] = _trace_hooks(level)
        self._client = httpx.Client(**kwargs)

    @property
    def endpoint(self) -> httpx.URL:
        """Scheme, host and port every request of this client targets."""
        return self._endpoint

    @property
    def config(self) -> TransportConfig:
        return self._config

    def close(self) -> None:
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


class HttpClient(_BaseClient):
    """Single-response client: the body is read fully before returning."""

    def __init__(
        self,
        endpoint: httpx.URL,
        config: TransportConfig,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        super().__init__(endpoint, config, streaming=False, transport=transport)

    def execute(self, request: HttpRequest) -> HttpResponse:
        """Send *request* and return the buffered response.

        Raises:
            ContentLengthExceededError: The body is larger than the configured limit.
            httpx.HTTPError: The exchange failed at the network level.
        """
        with request.open(self._config.default_charset) as outgoing:
            response = self._client.send(outgoing, stream=True, auth=request.auth)
            try:
                content = self._read_limited(response)
            finally:
                response.close()

        return HttpResponse(
            status_code=response.status_code,
            headers=response.headers,
            content=content,
            url=str(response.url),
            encoding=response.charset_encoding or self._config.default_charset,
        )

    def _read_limited(self, response: httpx.Response) -> bytes:
        limit = self._config.max_content_length
        declared = response.headers.get("content-length")
        if declared is not None and declared.isdigit() and int(declared) > limit:
            raise ContentLengthExceededError(str(response.url), limit, int(declared))

        buffer = bytearray()
        for chunk in response.iter_bytes():
            buffer.extend(chunk)
            if len(buffer) > limit:
                raise ContentLengthExceededError(str(response.url), limit, len(buffer))
        return bytes(buffer)


class StreamingHttpClient(_BaseClient):
    """Streaming client: the body is exposed as a lazy iterator of chunks."""

    def __init__(
        self,
        endpoint: httpx.URL,
        config: TransportConfig,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        super().__init__(endpoint, config, streaming=True, transport=transport)

    def stream(
        self,
        request: HttpRequest,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        on_response: Callable[[httpx.Response], None] | None = None,
    ) -> Iterator[bytes]:
        """Yield the response body of *request* chunk by chunk.

        Nothing is sent until the first chunk is requested.  Closing the
        iterator early releases the connection.  *on_response* is called once
        with the response (status and headers available, body unread).
        """
        with request.open(self._config.default_charset) as outgoing:
            response = self._client.send(outgoing, stream=True, auth=request.auth)
            try:
                if on_response is not None:
                    on_response(response)
                yield from response.iter_bytes(chunk_size)
            finally:
                response.close()


def build_client(
    uri: str,
    config: TransportConfig,
    streaming: bool = False,
    transport: httpx.BaseTransport | None = None,
) -> HttpClient | StreamingHttpClient:
    """Build a client for the endpoint of *uri*.

    Args:
        uri:       Resolved target URI.
        config:    Transport configuration shared by every exchange.
        streaming: Return a ``StreamingHttpClient`` instead of an ``HttpClient``.
        transport: Optional httpx transport (e.g. ``httpx.MockTransport``).

    Raises:
        ConnectionSetupError: The URI has no host or an unsupported scheme.
    """
    try:
        url = httpx.URL(uri)
    except (httpx.InvalidURL, TypeError) as exc:
        raise ConnectionSetupError(str(uri), str(exc)) from exc
    if url.scheme not in _SUPPORTED_SCHEMES:
        raise ConnectionSetupError(
            uri, f"Unsupported scheme '{url.scheme}'. Supported: {', '.join(_SUPPORTED_SCHEMES)}."
        )
    if not url.host:
        raise ConnectionSetupError(uri, "URI has no host.")

    endpoint = httpx.URL(scheme=url.scheme, host=url.host, port=url.port)
    log.debug(
        "client_built",
        endpoint=str(endpoint),
        streaming=streaming,
        proxy_type=config.proxy_type.value,
        insecure=config.tls.insecure_trust_all_certificates,
    )
    if streaming:
        return StreamingHttpClient(endpoint, config, transport=transport)
    return HttpClient(endpoint, config, transport=transport)


def _trace_hooks(level: int) -> dict[str, list[Callable[[Any], None]]]:
    def on_request(request: httpx.Request) -> None:
        log.log(level, "http_request", method=request.method, url=str(request.url))

    def on_response(response: httpx.Response) -> None:
        log.log(
            level,
            "http_response",
            method=response.request.method,
            url=str(response.request.url),
            status_code=response.status_code,
        )

    return {"request": [on_request], "response": [on_response]}
