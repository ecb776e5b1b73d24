"""Template rendering engine.

Renders ``{{ vars.path.to.value }}``-style expressions found in task
parameters before the request is assembled.

Template syntax:
    {{ <name> }}                 Top-level variable
    {{ <name>.<key>.<key> }}     Nested mapping access, any depth
    {{ env.<VAR_NAME> }}         OS environment variable (when allowed)

Every call returns a ``str``.  A non-string value produced by a template that
spans the whole input is serialized as JSON, embedded values are cast with
``str()``.
"""

from __future__ import annotations

import json
import os
import re
from typing import Any, Mapping, Protocol

from httptask.exceptions import UnresolvedTemplateError
from httptask.protocol.constants import (
    TEMPLATE_CLOSE,
    TEMPLATE_OPEN,
    TEMPLATE_PREFIX_ENV,
)

_TEMPLATE_RE = re.compile(
    re.escape(TEMPLATE_OPEN) + r"\s*([A-Za-z_][\w-]*(?:\.[\w-]+)*)\s*" + re.escape(TEMPLATE_CLOSE)
)


class Renderer(Protocol):
    """Maps a template string to its expanded value."""

    def __call__(self, template: str) -> str: ...


class TemplateRenderer:
    """Renders template expressions against a variables mapping.

    Usage::

        render = TemplateRenderer({"inputs": {"id": 42}})
        render("https://api.example.com/items/{{ inputs.id }}")
        # "https://api.example.com/items/42"
    """

    def __init__(
        self,
        variables: Mapping[str, Any] | None = None,
        allow_env: bool = True,
    ) -> None:
        self._variables: Mapping[str, Any] = variables or {}
        self._allow_env = allow_env

    def __call__(self, template: str) -> str:
        return self.render(template)

    def render(self, template: str) -> str:
        """Return *template* with every expression substituted.

        Raises:
            UnresolvedTemplateError: An expression references an undefined
                variable, or the input is not a string.
        """
        if not isinstance(template, str):
            raise UnresolvedTemplateError(
                repr(template), f"Expected a string, got {type(template).__name__}."
            )

        matches = list(_TEMPLATE_RE.finditer(template))
        if not matches:
            return template

        # A single expression spanning the whole input keeps structured values intact.
        if len(matches) == 1 and matches[0].group(0) == template:
            return _to_text(self._lookup(matches[0].group(1), template))

        return _TEMPLATE_RE.sub(
            lambda m: str(self._lookup(m.group(1), m.group(0))), template
        )

    # ------------------------------------------------------------------
    # Private
    # ------------------------------------------------------------------

    def _lookup(self, path: str, original: str) -> Any:
        head, _, rest = path.partition(".")
        if head == TEMPLATE_PREFIX_ENV and head not in self._variables:
            return self._resolve_env(rest, original)

        if head not in self._variables:
            raise UnresolvedTemplateError(
                original,
                f"Variable '{head}' is not defined. "
                f"Available variables: {sorted(self._variables.keys())}",
            )

        value = self._variables[head]
        walked = head
        for key in rest.split(".") if rest else []:
            if not isinstance(value, Mapping):
                raise UnresolvedTemplateError(
                    original,
                    f"'{walked}' is not a mapping — cannot access '{key}'.",
                )
            if key not in value:
                raise UnresolvedTemplateError(
                    original,
                    f"'{walked}' has no key '{key}'. Available keys: {sorted(value.keys())}",
                )
            value = value[key]
            walked = f"{walked}.{key}"
        return value

    def _resolve_env(self, var_name: str, original: str) -> str:
        if not self._allow_env:
            raise UnresolvedTemplateError(
                original, "Environment variable access is disabled."
            )
        value = os.environ.get(var_name)
        if value is None:
            raise UnresolvedTemplateError(
                original, f"Environment variable '{var_name}' is not set."
            )
        return value


def _to_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, default=str)


def render_value(render: Renderer, value: Any) -> Any:
    """Render every string leaf of *value*, walking dicts and lists.

    Keys and non-string leaves are returned unchanged.
    """
    if isinstance(value, str):
        return render(value)
    if isinstance(value, dict):
        return {k: render_value(render, v) for k, v in value.items()}
    if isinstance(value, list):
        return [render_value(render, item) for item in value]
    return value
