"""Shared pytest fixtures for the httptask test suite."""

from __future__ import annotations

from pathlib import Path

import pytest

from httptask.config import Settings, override_settings
from httptask.context import RunContext, ScratchSpace
from httptask.protocol.template import TemplateRenderer
from httptask.request.staging import ContentStager
from httptask.storage import LocalStorage


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("httptask.config._settings", None)


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    settings = Settings(
        storage={"base_dir": str(tmp_path / "storage")},
        scratch={"root": str(tmp_path / "scratch")},
        logging={"level": "debug", "format": "console"},
    )
    override_settings(settings)
    return settings


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------


@pytest.fixture
def storage(tmp_path: Path) -> LocalStorage:
    return LocalStorage(tmp_path / "storage")


@pytest.fixture
def scratch(tmp_path: Path) -> ScratchSpace:
    space = ScratchSpace(tmp_path / "scratch")
    yield space
    space.cleanup()


@pytest.fixture
def stager(storage: LocalStorage, scratch: ScratchSpace) -> ContentStager:
    return ContentStager(storage, scratch)


@pytest.fixture
def variables() -> dict:
    return {
        "inputs": {"id": 42, "token": "s3cr3t", "name": "report.csv"},
        "host": "api.example.com",
    }


@pytest.fixture
def render(variables: dict) -> TemplateRenderer:
    return TemplateRenderer(variables, allow_env=False)


@pytest.fixture
def run_context(
    render: TemplateRenderer, storage: LocalStorage, scratch: ScratchSpace
) -> RunContext:
    ctx = RunContext(render=render, storage=storage, scratch=scratch)
    yield ctx
    ctx.close()
