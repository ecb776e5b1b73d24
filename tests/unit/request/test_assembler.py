"""Unit tests — RequestAssembler."""

from __future__ import annotations

import base64

import httpx
import pytest

from httptask.exceptions import ContentStagingError, MalformedUriError, UnresolvedTemplateError
from httptask.protocol.constants import MEDIA_TYPE_FORM_URLENCODED
from httptask.protocol.models import HttpMethod, RequestSpec, TransportOptions
from httptask.protocol.template import TemplateRenderer
from httptask.request.assembler import RequestAssembler, assemble
from httptask.request.staging import ContentStager
from httptask.storage import LocalStorage
from httptask.transport.client import build_client
from httptask.transport.config import TransportConfig


@pytest.fixture
def assembler(render: TemplateRenderer, stager: ContentStager) -> RequestAssembler:
    return RequestAssembler(render, stager)


def _spec(**fields) -> RequestSpec:
    fields.setdefault("uri", "https://{{ host }}/items/{{ inputs.id }}")
    return RequestSpec(**fields)


def _sent(request) -> httpx.Request:
    with request.open() as outgoing:
        outgoing.read()
        return outgoing


def _boundary(content_type: str) -> str:
    for param in content_type.split(";")[1:]:
        name, _, value = param.strip().partition("=")
        if name.lower() == "boundary":
            return value
    raise AssertionError(f"no boundary in {content_type!r}")


@pytest.mark.unit
class TestUri:
    def test_rendered(self, assembler: RequestAssembler) -> None:
        request = assembler.assemble(_spec())
        assert request.url == "https://api.example.com/items/42"
        assert request.method == HttpMethod.GET

    @pytest.mark.parametrize("uri", ["not a uri", "/relative/path", "https://"])
    def test_malformed(self, assembler: RequestAssembler, uri: str) -> None:
        with pytest.raises(MalformedUriError):
            assembler.assemble(_spec(uri=uri))

    def test_unresolved(self, assembler: RequestAssembler) -> None:
        with pytest.raises(UnresolvedTemplateError):
            assembler.assemble(_spec(uri="https://{{ nowhere }}/"))


@pytest.mark.unit
class TestPlainBody:
    def test_body_rendered(self, assembler: RequestAssembler) -> None:
        request = assembler.assemble(_spec(method="POST", body='{"id": {{ inputs.id }}}'))
        assert request.content == '{"id": 42}'
        assert request.content_type is None

    def test_no_body(self, assembler: RequestAssembler) -> None:
        request = assembler.assemble(_spec())
        assert request.content is None
        assert request.form is None
        assert request.parts is None
        assert _sent(request).content == b""

    def test_explicit_content_type(self, assembler: RequestAssembler) -> None:
        request = assembler.assemble(_spec(method="POST", body="{}", content_type="application/json"))
        assert request.content_type == "application/json"

    def test_form_data_wins_over_body(self, assembler: RequestAssembler) -> None:
        request = assembler.assemble(_spec(method="POST", body="ignored", form_data={"a": "1"}))
        assert request.content is None
        assert request.form == {"a": "1"}


@pytest.mark.unit
class TestUrlEncodedForm:
    def test_default_form_is_urlencoded(self, assembler: RequestAssembler) -> None:
        request = assembler.assemble(
            _spec(method="POST", form_data={"name": "{{ inputs.name }}", "n": 5, "obj": {"k": "v"}})
        )
        assert request.content_type == MEDIA_TYPE_FORM_URLENCODED
        assert request.form == {"name": "report.csv", "n": "5", "obj": '{"k":"v"}'}

    def test_structured_value_leaves_rendered_before_encoding(self, assembler: RequestAssembler) -> None:
        request = assembler.assemble(
            _spec(
                method="POST",
                form_data={"obj": {"id": "{{ inputs.id }}", "tags": ["{{ inputs.name }}", 3]}},
            )
        )
        assert request.form == {"obj": '{"id":"42","tags":["report.csv",3]}'}

    def test_rendered_leaf_not_rendered_twice(self, storage: LocalStorage, stager: ContentStager) -> None:
        render = TemplateRenderer({"inputs": {"raw": "{{ not_a_variable }}"}}, allow_env=False)
        request = assemble(
            _spec(uri="https://example.com", method="POST", form_data={"obj": {"v": "{{ inputs.raw }}"}}),
            render,
            stager,
        )
        assert request.form == {"obj": '{"v":"{{ not_a_variable }}"}'}

    def test_encoded_on_the_wire(self, assembler: RequestAssembler) -> None:
        request = assembler.assemble(_spec(method="POST", form_data={"q": "a b", "x": "1"}))
        assert _sent(request).content == b"q=a+b&x=1"

    def test_custom_content_type_kept(self, assembler: RequestAssembler) -> None:
        request = assembler.assemble(
            _spec(method="POST", form_data={"a": "1"}, content_type="application/x-custom")
        )
        assert request.form == {"a": "1"}
        assert request.content_type == "application/x-custom"

    def test_explicit_json_content_type_wins(self, assembler: RequestAssembler) -> None:
        request = assembler.assemble(
            _spec(
                method="POST",
                form_data={"doc": {"name": "a.txt", "content": "storage:///a"}, "n": 1},
                content_type="application/json",
            )
        )
        assert request.content_type == "application/json"
        assert not request.is_multipart


@pytest.mark.unit
class TestMultipart:
    def test_parts_in_declared_order(self, assembler: RequestAssembler) -> None:
        request = assembler.assemble(
            _spec(
                method="POST",
                content_type="multipart/form-data",
                form_data={"zeta": "1", "alpha": "2", "mid": {"nested": True}},
            )
        )
        assert [part.key for part in request.parts] == ["zeta", "alpha", "mid"]
        assert request.parts[2].text == '{"nested":true}'

        body = _sent(request).content
        assert body.index(b'name="zeta"') < body.index(b'name="alpha"') < body.index(b'name="mid"')

    @pytest.mark.parametrize(
        "content_type,declared",
        [
            ("Multipart/Form-Data", None),
            ("multipart/form-data; charset=utf-8", None),
            ("MULTIPART/FORM-DATA; Charset=utf-8", None),
            ("multipart/form-data; boundary=abc", "abc"),
            ("Multipart/Form-Data; boundary=xyz123", "xyz123"),
        ],
    )
    def test_header_boundary_matches_body(
        self, assembler: RequestAssembler, content_type: str, declared: str | None
    ) -> None:
        request = assembler.assemble(
            _spec(method="POST", content_type=content_type, form_data={"a": "1", "b": "2"})
        )
        assert request.is_multipart

        outgoing = _sent(request)
        header = outgoing.headers["content-type"]
        assert header.startswith("multipart/form-data;")
        boundary = _boundary(header)
        if declared is not None:
            assert boundary == declared
        assert outgoing.content.startswith(f"--{boundary}\r\n".encode())
        assert outgoing.content.endswith(f"--{boundary}--\r\n".encode())

    def test_charset_param_kept(self, assembler: RequestAssembler) -> None:
        request = assembler.assemble(
            _spec(method="POST", content_type="multipart/form-data; charset=utf-8", form_data={"a": "1"})
        )
        assert "charset=utf-8" in _sent(request).headers["content-type"]

    def test_boundary_added(self, assembler: RequestAssembler) -> None:
        request = assembler.assemble(
            _spec(method="POST", content_type="multipart/form-data", form_data={"a": "1"})
        )
        outgoing = _sent(request)
        content_type = outgoing.headers["content-type"]
        assert content_type.startswith("multipart/form-data; boundary=")
        boundary = content_type.split("boundary=", 1)[1]
        assert outgoing.content.startswith(f"--{boundary}".encode())

    def test_reference_staged_byte_exact(self, assembler: RequestAssembler, storage: LocalStorage) -> None:
        payload = b"\x00\x01binary\xff" * 100
        ref = storage.put(payload, "blob.bin")

        request = assembler.assemble(
            _spec(method="POST", content_type="multipart/form-data", form_data={"file": ref, "note": "hi"})
        )
        file_part, text_part = request.parts
        assert file_part.is_file
        assert file_part.file.path.read_bytes() == payload
        assert text_part.text == "hi"
        assert payload in _sent(request).content

    def test_templated_reference_staged(self, storage: LocalStorage, stager: ContentStager) -> None:
        ref = storage.put(b"abc", "data.txt")
        render = TemplateRenderer({"inputs": {"file": ref}}, allow_env=False)
        request = assemble(
            _spec(
                uri="https://example.com",
                method="POST",
                content_type="multipart/form-data",
                form_data={"upload": "{{ inputs.file }}"},
            ),
            render,
            stager,
        )
        assert request.parts[0].file.path.read_bytes() == b"abc"

    def test_named_reference(self, assembler: RequestAssembler, storage: LocalStorage) -> None:
        ref = storage.put(b"a,b\n1,2\n", "blob")
        request = assembler.assemble(
            _spec(
                method="POST",
                content_type="multipart/form-data",
                form_data={"doc": {"name": "{{ inputs.name }}", "content": ref}},
            )
        )
        part = request.parts[0]
        assert part.file.name == "report.csv"
        assert part.file.path.read_bytes() == b"a,b\n1,2\n"
        assert b'filename="report.csv"' in _sent(request).content

    def test_missing_reference_aborts(self, assembler: RequestAssembler) -> None:
        with pytest.raises(ContentStagingError):
            assembler.assemble(
                _spec(
                    method="POST",
                    content_type="multipart/form-data",
                    form_data={"file": "storage:///missing.bin"},
                )
            )

    def test_plain_text_not_staged(self, assembler: RequestAssembler) -> None:
        request = assembler.assemble(
            _spec(method="POST", content_type="multipart/form-data", form_data={"url": "https://example.com/x"})
        )
        assert request.parts[0].text == "https://example.com/x"
        assert not request.parts[0].is_file


@pytest.mark.unit
class TestHeaders:
    def test_values_rendered_keys_verbatim(self, assembler: RequestAssembler) -> None:
        request = assembler.assemble(
            _spec(headers={"X-Item": "{{ inputs.id }}", "X-{{ host }}": "static"})
        )
        assert request.headers["X-Item"] == "42"
        assert request.headers["X-{{ host }}"] == "static"

    def test_unresolved_header_aborts(self, assembler: RequestAssembler) -> None:
        with pytest.raises(UnresolvedTemplateError):
            assembler.assemble(_spec(headers={"X-Ok": "1", "X-Bad": "{{ unknown }}"}))

    def test_header_overrides_inferred_content_type(self, assembler: RequestAssembler) -> None:
        request = assembler.assemble(
            _spec(method="POST", form_data={"a": "1"}, headers={"Content-Type": "text/plain"})
        )
        assert request.content_type == "text/plain"


def _send(request) -> httpx.Request:
    seen: list[httpx.Request] = []

    def handler(outgoing: httpx.Request) -> httpx.Response:
        seen.append(outgoing)
        return httpx.Response(200)

    with build_client(request.url, TransportConfig(), transport=httpx.MockTransport(handler)) as client:
        client.execute(request)
    return seen[0]


@pytest.mark.unit
class TestBasicAuth:
    def test_both_credentials(self, assembler: RequestAssembler) -> None:
        request = assembler.assemble(
            _spec(options=TransportOptions(basic_auth_user="bob", basic_auth_password="{{ inputs.token }}"))
        )
        assert isinstance(request.auth, httpx.BasicAuth)
        assert "Authorization" not in request.headers

        expected = base64.b64encode(b"bob:s3cr3t").decode()
        assert _send(request).headers["Authorization"] == f"Basic {expected}"

    def test_explicit_header_wins(self, assembler: RequestAssembler) -> None:
        request = assembler.assemble(
            _spec(
                headers={"Authorization": "Bearer {{ inputs.token }}"},
                options=TransportOptions(basic_auth_user="bob", basic_auth_password="pw"),
            )
        )
        assert request.auth is None
        assert _send(request).headers["Authorization"] == "Bearer s3cr3t"

    @pytest.mark.parametrize(
        "options",
        [TransportOptions(basic_auth_user="bob"), TransportOptions(basic_auth_password="pw")],
    )
    def test_partial_credentials_ignored(self, assembler: RequestAssembler, options: TransportOptions) -> None:
        request = assembler.assemble(_spec(options=options))
        assert request.auth is None
        assert "Authorization" not in request.headers
        assert "authorization" not in _send(request).headers
