"""Request assembly — turn a ``RequestSpec`` into an executable ``HttpRequest``.

Steps, in order:
  1. Render and validate the target URI.
  2. Create the request shell (method + URI).
  3. Attach HTTP Basic credentials when both user and password are set.
  4. Select the body — multipart form, URL-encoded form, plain body, or none.
     Multipart parts that reference stored content are staged into scratch
     files, one at a time, in form-data order.
  5. An explicit content type overrides the one inferred in step 4.
  6. Render and attach headers (values only; keys are verbatim).

Any failure aborts the assembly; no request is returned.  Scratch files
staged before the failure are left to the execution context to delete.
"""

from __future__ import annotations

import json
import os
from collections.abc import Iterator
from contextlib import ExitStack, contextmanager
from dataclasses import dataclass, field

import httpx

from httptask.exceptions import MalformedUriError
from httptask.logging import get_logger
from httptask.protocol.constants import (
    DEFAULT_CHARSET,
    MEDIA_TYPE_FORM_URLENCODED,
    MEDIA_TYPE_MULTIPART_FORM_DATA,
)
from httptask.protocol.models import (
    FormValue,
    HttpMethod,
    NamedRemoteRef,
    RemoteRef,
    RequestSpec,
    StructuredValue,
    TextValue,
)
from httptask.protocol.template import Renderer, render_value
from httptask.request.staging import ContentStager, ScratchFile

log = get_logger(__name__)


@dataclass(frozen=True)
class MultipartPart:
    """One part of a multipart body: literal text or a staged file."""

    key: str
    text: str | None = None
    file: ScratchFile | None = None

    @property
    def is_file(self) -> bool:
        return self.file is not None


@dataclass
class HttpRequest:
    """An assembled request, ready to be sent by a client.

    Exactly one of ``content``, ``form`` or ``parts`` is set, or none of them
    for a body-less request.  ``auth`` is handed to the client when the request
    is sent.
    """

    method: HttpMethod
    url: str
    headers: httpx.Headers = field(default_factory=httpx.Headers)
    content: str | None = None
    form: dict[str, str] | None = None
    parts: list[MultipartPart] | None = None
    auth: httpx.BasicAuth | None = None

    @property
    def content_type(self) -> str | None:
        return self.headers.get("content-type")

    @property
    def is_multipart(self) -> bool:
        return self.parts is not None

    @contextmanager
    def open(self, charset: str = DEFAULT_CHARSET) -> Iterator[httpx.Request]:
        """Yield an ``httpx.Request`` for this request.

        File-backed parts are opened here and closed when the block exits, so
        the exchange must happen inside the block.  The multipart body is
        streamed from the files, never loaded whole.
        """
        headers = self.headers.copy()
        with ExitStack() as stack:
            if self.parts is not None:
                files: list[tuple[str, tuple]] = []
                for part in self.parts:
                    if part.file is not None:
                        handle = stack.enter_context(part.file.path.open("rb"))
                        files.append((part.key, (part.file.name, handle)))
                    else:
                        files.append((part.key, (None, part.text or "")))
                _ensure_boundary(headers)
                yield httpx.Request(self.method.value, self.url, headers=headers, files=files)
            elif self.form is not None:
                yield httpx.Request(self.method.value, self.url, headers=headers, data=self.form)
            elif self.content is not None:
                yield httpx.Request(
                    self.method.value,
                    self.url,
                    headers=headers,
                    content=self.content.encode(charset),
                )
            else:
                yield httpx.Request(self.method.value, self.url, headers=headers)


class RequestAssembler:
    """Builds ``HttpRequest`` objects from specs.

    Args:
        render: Renders every templated value of the spec.
        stager: Copies referenced content into scratch files for multipart
                parts; its resolver decides what counts as a reference.
    """

    def __init__(self, render: Renderer, stager: ContentStager) -> None:
        self._render = render
        self._stager = stager

    def assemble(self, spec: RequestSpec) -> HttpRequest:
        """Assemble *spec* into a request.

        Raises:
            UnresolvedTemplateError: Any template could not be rendered.
            MalformedUriError:       The rendered URI is not absolute.
            ContentStagingError:     Staging a multipart part failed.
        """
        url = self.resolve_uri(spec.uri)
        request = HttpRequest(method=spec.method, url=url)
        options = spec.options

        if (
            options is not None
            and options.basic_auth_user is not None
            and options.basic_auth_password is not None
        ):
            request.auth = httpx.BasicAuth(
                self._render(options.basic_auth_user),
                self._render(options.basic_auth_password),
            )

        content_type = (
            self._render(spec.content_type) if spec.content_type is not None else None
        )

        if spec.form_data is not None:
            if _media_type(content_type) == MEDIA_TYPE_MULTIPART_FORM_DATA:
                request.headers["Content-Type"] = MEDIA_TYPE_MULTIPART_FORM_DATA
                request.parts = [
                    self._part(self._render(key), value)
                    for key, value in spec.form_data.items()
                ]
            else:
                request.headers["Content-Type"] = MEDIA_TYPE_FORM_URLENCODED
                request.form = {
                    key: _form_text(render_value(self._render, _raw_value(value)))
                    for key, value in spec.form_data.items()
                }
        elif spec.body is not None:
            request.content = self._render(spec.body)

        if content_type is not None:
            request.headers["Content-Type"] = content_type

        if spec.headers is not None:
            rendered = [(key, self._render(value)) for key, value in spec.headers.items()]
            for key, value in rendered:
                request.headers[key] = value
            # An explicit Authorization header wins over the Basic credentials.
            if "authorization" in request.headers:
                request.auth = None

        log.debug(
            "request_assembled",
            method=request.method.value,
            url=request.url,
            content_type=request.content_type,
            parts=len(request.parts) if request.parts is not None else None,
        )
        return request

    def resolve_uri(self, template: str) -> str:
        """Render *template* and check it is an absolute URI."""
        rendered = self._render(template)
        try:
            url = httpx.URL(rendered)
        except (httpx.InvalidURL, TypeError) as exc:
            raise MalformedUriError(rendered, str(exc)) from exc
        if not url.scheme or not url.host:
            raise MalformedUriError(rendered, "URI must be absolute (scheme and host).")
        return str(url)

    # ------------------------------------------------------------------
    # Private
    # ------------------------------------------------------------------

    def _part(self, key: str, value: FormValue) -> MultipartPart:
        if isinstance(value, TextValue):
            rendered = self._render(value.value)
            if self._stager.resolver.is_reference(rendered):
                return MultipartPart(key, file=self._stager.stage(rendered))
            return MultipartPart(key, text=rendered)
        if isinstance(value, RemoteRef):
            return MultipartPart(key, file=self._stager.stage(self._render(value.ref)))
        if isinstance(value, NamedRemoteRef):
            name = self._render(value.name)
            content = self._render(value.content)
            return MultipartPart(key, file=self._stager.stage(content, name))
        return MultipartPart(key, text=_json_text(value.value))


def assemble(spec: RequestSpec, render: Renderer, stager: ContentStager) -> HttpRequest:
    """Shortcut for ``RequestAssembler(render, stager).assemble(spec)``."""
    return RequestAssembler(render, stager).assemble(spec)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _media_type(content_type: str | None) -> str | None:
    if content_type is None:
        return None
    return content_type.split(";", 1)[0].strip().lower()


def _raw_value(value: FormValue) -> object:
    if isinstance(value, TextValue):
        return value.value
    if isinstance(value, RemoteRef):
        return value.ref
    if isinstance(value, NamedRemoteRef):
        return {"name": value.name, "content": value.content}
    return value.value


def _form_text(value: object) -> str:
    return value if isinstance(value, str) else _json_text(value)


def _json_text(value: object) -> str:
    if isinstance(value, StructuredValue):
        value = value.value
    return json.dumps(value, separators=(",", ":"), default=str)


def _ensure_boundary(headers: httpx.Headers) -> None:
    """Make a multipart content type carry the boundary httpx will use.

    httpx only reads the boundary from a header whose media type is spelled
    ``multipart/form-data`` in lowercase, so the media type is normalised and
    a boundary is generated when none is declared.
    """
    content_type = headers.get("content-type")
    if _media_type(content_type) != MEDIA_TYPE_MULTIPART_FORM_DATA:
        return
    params = [p.strip() for p in content_type.split(";")[1:] if p.strip()]
    if not any(p.lower().startswith("boundary=") for p in params):
        params.append(f"boundary={os.urandom(16).hex()}")
    headers["Content-Type"] = "; ".join([MEDIA_TYPE_MULTIPART_FORM_DATA, *params])
