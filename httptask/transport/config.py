"""Transport configuration — translate ``TransportOptions`` into client settings.

The builder only writes what the options carry: a field left as ``None`` keeps
the platform default of ``TransportConfig``.  Options fields that have a
documented default (read timeout, charset, …) are therefore always applied.
HEAD requests never truncate: their content limit is forced to unbounded.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Any, Callable

import httpx

from httptask.logging import get_logger
from httptask.protocol.constants import (
    DEFAULT_CHARSET,
    DEFAULT_CONNECTION_POOL_IDLE_TIMEOUT_SECONDS,
    DEFAULT_FOLLOW_REDIRECTS,
    DEFAULT_MAX_CONTENT_LENGTH,
    DEFAULT_READ_IDLE_TIMEOUT_SECONDS,
    DEFAULT_READ_TIMEOUT_SECONDS,
    UNBOUNDED_CONTENT_LENGTH,
)
from httptask.protocol.models import (
    HttpMethod,
    LogLevel,
    ProxyType,
    TlsOptions,
    TransportOptions,
)

log = get_logger(__name__)

_PROXY_SCHEMES = {ProxyType.HTTP: "http", ProxyType.SOCKS: "socks5"}
# httpx's own defaults, used for phases the options leave unset.
_HTTPX_DEFAULT_TIMEOUT = httpx.Timeout(5.0)


@dataclass(frozen=True)
class TlsConfig:
    insecure_trust_all_certificates: bool = False


@dataclass(frozen=True)
class TransportConfig:
    """Resolved client settings.  Durations are in seconds.

    ``connect_timeout`` of ``None`` means "use httpx's own default".
    """

    connect_timeout: float | None = None
    read_timeout: float = DEFAULT_READ_TIMEOUT_SECONDS
    read_idle_timeout: float = DEFAULT_READ_IDLE_TIMEOUT_SECONDS
    connection_pool_idle_timeout: float = DEFAULT_CONNECTION_POOL_IDLE_TIMEOUT_SECONDS
    max_content_length: int = DEFAULT_MAX_CONTENT_LENGTH
    proxy_type: ProxyType = ProxyType.DIRECT
    proxy_address: tuple[str, int] | None = None
    proxy_username: str | None = None
    proxy_password: str | None = field(default=None, repr=False)
    default_charset: str = DEFAULT_CHARSET
    follow_redirects: bool = DEFAULT_FOLLOW_REDIRECTS
    log_level: LogLevel | None = None
    tls: TlsConfig = field(default_factory=TlsConfig)

    # ------------------------------------------------------------------
    # httpx mapping
    # ------------------------------------------------------------------

    def timeout(self, streaming: bool = False) -> httpx.Timeout:
        """Per-phase timeouts.

        A buffering exchange uses ``read_timeout`` between reads; a streaming
        exchange may legitimately pause longer and uses ``read_idle_timeout``.
        """
        read = self.read_idle_timeout if streaming else self.read_timeout
        connect = self.connect_timeout
        if connect is None:
            connect = _HTTPX_DEFAULT_TIMEOUT.connect
        return httpx.Timeout(
            _HTTPX_DEFAULT_TIMEOUT.pool, connect=connect, read=read, write=read
        )

    def limits(self) -> httpx.Limits:
        if self.connection_pool_idle_timeout > 0:
            return httpx.Limits(keepalive_expiry=self.connection_pool_idle_timeout)
        return httpx.Limits()

    def proxy(self) -> httpx.Proxy | None:
        """Return the proxy endpoint, or None for direct connections."""
        if self.proxy_type == ProxyType.DIRECT or self.proxy_address is None:
            return None
        host, port = self.proxy_address
        if ":" in host and not host.startswith("["):
            host = f"[{host}]"
        url = f"{_PROXY_SCHEMES[self.proxy_type]}://{host}:{port}"
        if self.proxy_username is not None:
            return httpx.Proxy(url, auth=(self.proxy_username, self.proxy_password or ""))
        return httpx.Proxy(url)

    @property
    def verify(self) -> bool:
        return not self.tls.insecure_trust_all_certificates

    def client_kwargs(self, streaming: bool = False) -> dict[str, Any]:
        """Keyword arguments for ``httpx.Client``."""
        return {
            "timeout": self.timeout(streaming),
            "limits": self.limits(),
            "proxy": self.proxy(),
            "verify": self.verify,
            "follow_redirects": self.follow_redirects,
            "default_encoding": self.default_charset,
        }


def build_transport_config(
    options: TransportOptions | None,
    method: HttpMethod,
    tls_options: TlsOptions | None = None,
    render: Callable[[str], str] | None = None,
) -> TransportConfig:
    """Overlay *options* onto the platform defaults.

    Args:
        options:     Transport options of the request, or None for defaults.
        method:      HTTP method of the request; HEAD lifts the content limit.
        tls_options: TLS trust policy; absent fields keep verification on.
        render:      Renders the templated fields (proxy address, user,
                     password).  Identity when omitted.

    Raises:
        UnresolvedTemplateError: A templated field could not be rendered.
    """
    render = render or _identity
    overrides: dict[str, Any] = {}

    if options is not None:
        if options.connect_timeout is not None:
            overrides["connect_timeout"] = options.connect_timeout.total_seconds()
        overrides["read_timeout"] = options.read_timeout.total_seconds()
        overrides["read_idle_timeout"] = options.read_idle_timeout.total_seconds()
        overrides["connection_pool_idle_timeout"] = (
            options.connection_pool_idle_timeout.total_seconds()
        )
        overrides["max_content_length"] = options.max_content_length
        overrides["proxy_type"] = options.proxy_type

        if options.proxy_address is not None and options.proxy_port is not None:
            overrides["proxy_address"] = (render(options.proxy_address), options.proxy_port)
        elif options.proxy_address is not None or options.proxy_port is not None:
            log.debug(
                "proxy_ignored",
                reason="proxy_address and proxy_port must both be set",
                has_address=options.proxy_address is not None,
                has_port=options.proxy_port is not None,
            )

        if options.proxy_username is not None:
            overrides["proxy_username"] = render(options.proxy_username)
        if options.proxy_password is not None:
            overrides["proxy_password"] = render(options.proxy_password)

        overrides["default_charset"] = options.default_charset
        overrides["follow_redirects"] = options.follow_redirects

        if options.log_level is not None:
            overrides["log_level"] = options.log_level

    if method == HttpMethod.HEAD:
        overrides["max_content_length"] = UNBOUNDED_CONTENT_LENGTH

    tls = TlsConfig()
    if tls_options is not None and tls_options.insecure_trust_all_certificates is not None:
        tls = TlsConfig(
            insecure_trust_all_certificates=tls_options.insecure_trust_all_certificates
        )
    overrides["tls"] = tls

    return dataclasses.replace(TransportConfig(), **overrides)


def _identity(template: str) -> str:
    return template
