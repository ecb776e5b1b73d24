"""HTTP task — Canonical data models.

Declarative description of one outbound HTTP call, validated through
Pydantic v2.  Do not add business logic here — only data shapes and their
invariants.  All models are frozen: a spec is built once per execution and
never mutated.

Field names are snake_case; camelCase aliases (``formData``, ``readTimeout``,
``sslOptions`` …) are accepted so workflow definitions can be loaded as-is.
"""

from __future__ import annotations

import codecs
import logging
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Annotated, Any, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from httptask.protocol.constants import (
    DEFAULT_CHARSET,
    DEFAULT_CONNECTION_POOL_IDLE_TIMEOUT_SECONDS,
    DEFAULT_FOLLOW_REDIRECTS,
    DEFAULT_MAX_CONTENT_LENGTH,
    DEFAULT_READ_IDLE_TIMEOUT_SECONDS,
    DEFAULT_READ_TIMEOUT_SECONDS,
)


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class HttpMethod(str, Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    PATCH = "PATCH"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"


class ProxyType(str, Enum):
    """How the client reaches the target host."""

    DIRECT = "DIRECT"
    HTTP = "HTTP"
    SOCKS = "SOCKS"


class LogLevel(str, Enum):
    """Level at which the client traces each exchange."""

    TRACE = "TRACE"
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"
    OFF = "OFF"

    def to_stdlib(self) -> int | None:
        """Return the stdlib logging level, or None when tracing is off."""
        return {
            LogLevel.TRACE: logging.DEBUG,
            LogLevel.DEBUG: logging.DEBUG,
            LogLevel.INFO: logging.INFO,
            LogLevel.WARN: logging.WARNING,
            LogLevel.ERROR: logging.ERROR,
            LogLevel.OFF: None,
        }[self]


# ---------------------------------------------------------------------------
# Form-data values
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TextValue:
    """A literal string, promoted to a content reference when it renders to one."""

    value: str


@dataclass(frozen=True)
class RemoteRef:
    """Content reference staged into an anonymous scratch file."""

    ref: str


@dataclass(frozen=True)
class NamedRemoteRef:
    """Content reference staged into a scratch file renamed to ``name``."""

    name: str
    content: str


@dataclass(frozen=True)
class StructuredValue:
    """Any other value; sent as its JSON text."""

    value: Any


FormValue = Union[TextValue, RemoteRef, NamedRemoteRef, StructuredValue]


def form_value(raw: Any) -> FormValue:
    """Classify a raw YAML/JSON form-data value by its declared shape."""
    if isinstance(raw, (TextValue, RemoteRef, NamedRemoteRef, StructuredValue)):
        return raw
    if isinstance(raw, str):
        return TextValue(raw)
    if isinstance(raw, dict) and "name" in raw and "content" in raw:
        return NamedRemoteRef(name=str(raw["name"]), content=str(raw["content"]))
    return StructuredValue(raw)


# ---------------------------------------------------------------------------
# Options
# ---------------------------------------------------------------------------


class _OptionsModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )


class TransportOptions(_OptionsModel):
    """Connection, proxy and authentication options of one request.

    Fields left as ``None`` keep the transport's own defaults.  Fields with a
    documented default are always applied, set or not.
    """

    connect_timeout: timedelta | None = None
    read_timeout: timedelta = timedelta(seconds=DEFAULT_READ_TIMEOUT_SECONDS)
    read_idle_timeout: timedelta = timedelta(seconds=DEFAULT_READ_IDLE_TIMEOUT_SECONDS)
    connection_pool_idle_timeout: timedelta = timedelta(
        seconds=DEFAULT_CONNECTION_POOL_IDLE_TIMEOUT_SECONDS
    )
    max_content_length: Annotated[int, Field(ge=0)] = DEFAULT_MAX_CONTENT_LENGTH
    proxy_type: ProxyType = ProxyType.DIRECT
    proxy_address: str | None = None
    proxy_port: Annotated[int, Field(ge=1, le=65535)] | None = None
    proxy_username: str | None = None
    proxy_password: str | None = None
    default_charset: str = DEFAULT_CHARSET
    follow_redirects: bool = DEFAULT_FOLLOW_REDIRECTS
    log_level: LogLevel | None = None
    basic_auth_user: str | None = None
    basic_auth_password: str | None = None

    @field_validator("default_charset")
    @classmethod
    def known_charset(cls, v: str) -> str:
        try:
            return codecs.lookup(v).name
        except LookupError as exc:
            raise ValueError(f"Unknown charset '{v}'") from exc


class TlsOptions(_OptionsModel):
    insecure_trust_all_certificates: bool | None = Field(
        default=None,
        description=(
            "Disable verification of the remote TLS certificate. Insecure; "
            "use only for testing."
        ),
    )


# ---------------------------------------------------------------------------
# Request
# ---------------------------------------------------------------------------


class RequestSpec(_OptionsModel):
    """Declarative description of one HTTP call."""

    uri: str = Field(min_length=1)
    method: HttpMethod = HttpMethod.GET
    body: str | None = None
    form_data: dict[str, FormValue] | None = None
    content_type: str | None = None
    headers: dict[str, str] | None = None
    options: TransportOptions | None = None
    tls_options: TlsOptions | None = Field(default=None, alias="sslOptions")

    @field_validator("method", mode="before")
    @classmethod
    def upper_method(cls, v: object) -> object:
        return v.upper() if isinstance(v, str) else v

    @field_validator("form_data", mode="before")
    @classmethod
    def classify_form_values(cls, v: object) -> object:
        if isinstance(v, dict):
            return {str(key): form_value(raw) for key, raw in v.items()}
        return v

    @field_validator("headers", mode="before")
    @classmethod
    def stringify_headers(cls, v: object) -> object:
        if isinstance(v, dict):
            return {str(key): str(value) for key, value in v.items()}
        return v
