"""Observability labels for a completed exchange."""

from __future__ import annotations

from typing import Protocol

from httptask.protocol.constants import TAG_REQUEST_METHOD, TAG_RESPONSE_CODE
from httptask.protocol.models import HttpMethod


class _HasMethod(Protocol):
    method: HttpMethod


class _HasStatus(Protocol):
    status_code: int


def tags(request: _HasMethod, response: _HasStatus | None = None) -> list[tuple[str, str]]:
    """Return ``(key, value)`` labels: the method, plus the status when known."""
    method = request.method
    labels = [(TAG_REQUEST_METHOD, method.value if isinstance(method, HttpMethod) else str(method))]
    if response is not None:
        labels.append((TAG_RESPONSE_CODE, str(response.status_code)))
    return labels
