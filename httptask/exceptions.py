"""httptask — Exception hierarchy.

All exceptions raised by the HTTP task core inherit from HttpTaskError so that
the invoking task layer can catch the full family with a single except clause.

Hierarchy:
    HttpTaskError
    ├── UnresolvedTemplateError
    ├── MalformedUriError
    ├── ContentStagingError
    └── TransportError
        ├── ConnectionSetupError
        └── ContentLengthExceededError
"""

from __future__ import annotations

from typing import Any


class HttpTaskError(Exception):
    """Base exception for all httptask errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context: dict[str, Any] = context or {}

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, context={self.context})"


# ---------------------------------------------------------------------------
# Request assembly
# ---------------------------------------------------------------------------


class UnresolvedTemplateError(HttpTaskError):
    """A ``{{ ... }}`` expression could not be rendered."""

    def __init__(self, template: str, reason: str) -> None:
        super().__init__(
            f"Cannot render template '{template}': {reason}",
            context={"template": template, "reason": reason},
        )
        self.template = template
        self.reason = reason


class MalformedUriError(HttpTaskError):
    """The rendered target URI (or proxy address) is not a valid absolute URI."""

    def __init__(self, uri: str, reason: str) -> None:
        super().__init__(
            f"Malformed URI '{uri}': {reason}",
            context={"uri": uri, "reason": reason},
        )
        self.uri = uri
        self.reason = reason


class ContentStagingError(HttpTaskError):
    """Copying referenced content to a scratch file, or renaming it, failed."""

    def __init__(self, reference: str, reason: str) -> None:
        super().__init__(
            f"Cannot stage content '{reference}': {reason}",
            context={"reference": reference, "reason": reason},
        )
        self.reference = reference
        self.reason = reason


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------


class TransportError(HttpTaskError):
    """Base for client construction and exchange errors."""


class ConnectionSetupError(TransportError):
    """The target URI cannot be turned into a network endpoint."""

    def __init__(self, uri: str, reason: str) -> None:
        super().__init__(
            f"Cannot set up a client for '{uri}': {reason}",
            context={"uri": uri, "reason": reason},
        )
        self.uri = uri


class ContentLengthExceededError(TransportError):
    """The response body is larger than the configured ``max_content_length``."""

    def __init__(self, uri: str, limit: int, received: int) -> None:
        super().__init__(
            f"Response from '{uri}' exceeds max content length: "
            f"{received} > {limit} bytes",
            context={"uri": uri, "limit": limit, "received": received},
        )
        self.limit = limit
        self.received = received
