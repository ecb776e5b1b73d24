"""Unit tests — HttpRequestTask end to end over a mock transport."""

from __future__ import annotations

import httpx
import pytest

from httptask.context import RunContext
from httptask.exceptions import ContentLengthExceededError, UnresolvedTemplateError
from httptask.protocol.models import HttpMethod
from httptask.task import HttpRequestTask


@pytest.mark.unit
class TestRun:
    def test_get(self, run_context: RunContext) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, text="hello")

        task = HttpRequestTask.from_mapping(
            {"uri": "https://{{ host }}/items/{{ inputs.id }}", "headers": {"X-Token": "{{ inputs.token }}"}},
            transport=httpx.MockTransport(handler),
        )
        response = task.run(run_context)

        assert response.status_code == 200
        assert response.text == "hello"
        assert str(seen[0].url) == "https://api.example.com/items/42"
        assert seen[0].headers["X-Token"] == "s3cr3t"

    def test_multipart_upload(self, run_context: RunContext) -> None:
        ref = run_context.storage.put(b"col\n1\n", "blob")
        bodies: list[bytes] = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(request.content)
            return httpx.Response(201)

        task = HttpRequestTask.from_mapping(
            {
                "uri": "https://api.example.com/upload",
                "method": "POST",
                "contentType": "multipart/form-data",
                "formData": {"meta": {"kind": "csv"}, "file": {"name": "data.csv", "content": ref}},
            },
            transport=httpx.MockTransport(handler),
        )
        response = task.run(run_context)

        assert response.status_code == 201
        body = bodies[0]
        assert b'{"kind":"csv"}' in body
        assert b'filename="data.csv"' in body
        assert b"col\n1\n" in body
        assert body.index(b'name="meta"') < body.index(b'name="file"')

    def test_head_ignores_content_limit(self, run_context: RunContext) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(200, content=b"x" * 64))
        task = HttpRequestTask.from_mapping(
            {"uri": "https://api.example.com", "method": "HEAD", "options": {"maxContentLength": 1}},
            transport=transport,
        )
        assert task.configuration(run_context).max_content_length > 64
        assert task.run(run_context).status_code == 200

    def test_content_limit_enforced(self, run_context: RunContext) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(200, content=b"x" * 64))
        task = HttpRequestTask.from_mapping(
            {"uri": "https://api.example.com", "options": {"maxContentLength": 8}},
            transport=transport,
        )
        with pytest.raises(ContentLengthExceededError):
            task.run(run_context)

    def test_assembly_error_sends_nothing(self, run_context: RunContext) -> None:
        calls: list[httpx.Request] = []
        transport = httpx.MockTransport(lambda request: calls.append(request) or httpx.Response(200))
        task = HttpRequestTask.from_mapping(
            {"uri": "https://api.example.com", "headers": {"X-Missing": "{{ nope }}"}},
            transport=transport,
        )
        with pytest.raises(UnresolvedTemplateError):
            task.run(run_context)
        assert calls == []

    def test_request_without_sending(self, run_context: RunContext) -> None:
        task = HttpRequestTask.from_mapping({"uri": "https://{{ host }}/", "method": "delete"})
        request = task.request(run_context)
        assert request.method == HttpMethod.DELETE
        assert request.url == "https://api.example.com/"


@pytest.mark.unit
class TestStream:
    def test_lazy_stream(self, run_context: RunContext) -> None:
        calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200, content=b"0123456789")

        task = HttpRequestTask.from_mapping(
            {"uri": "https://api.example.com/file"}, transport=httpx.MockTransport(handler)
        )
        chunks = task.stream(run_context, chunk_size=4)
        assert calls == []
        assert list(chunks) == [b"0123", b"4567", b"89"]
        assert len(calls) == 1

    def test_assembly_errors_raised_eagerly(self, run_context: RunContext) -> None:
        task = HttpRequestTask.from_mapping({"uri": "https://{{ nope }}/"})
        with pytest.raises(UnresolvedTemplateError):
            task.stream(run_context)

    def test_closing_early_releases(self, run_context: RunContext) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(200, content=b"abcdef"))
        task = HttpRequestTask.from_mapping({"uri": "https://api.example.com"}, transport=transport)
        chunks = task.stream(run_context, chunk_size=2)
        assert next(chunks) == b"ab"
        chunks.close()
