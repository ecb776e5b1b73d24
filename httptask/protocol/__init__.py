"""Protocol layer — request spec models, template rendering and constants."""

from httptask.protocol.models import (
    FormValue,
    HttpMethod,
    LogLevel,
    NamedRemoteRef,
    ProxyType,
    RemoteRef,
    RequestSpec,
    StructuredValue,
    TextValue,
    TlsOptions,
    TransportOptions,
    form_value,
)
from httptask.protocol.template import Renderer, TemplateRenderer, render_value

__all__ = [
    "FormValue",
    "HttpMethod",
    "LogLevel",
    "NamedRemoteRef",
    "ProxyType",
    "RemoteRef",
    "Renderer",
    "RequestSpec",
    "StructuredValue",
    "TemplateRenderer",
    "TextValue",
    "TlsOptions",
    "TransportOptions",
    "form_value",
    "render_value",
]
