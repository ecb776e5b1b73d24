"""Temporary content staging.

Copies the bytes behind a content reference into a local scratch file so the
file can be streamed as a multipart part.  The copy is synchronous and
complete; both streams are released on every exit path.  Scratch files are
owned by the execution context, which deletes them when it ends.
"""

from __future__ import annotations

import os
import shutil
from dataclasses import dataclass
from pathlib import Path, PurePath
from typing import Protocol

from httptask.exceptions import ContentStagingError
from httptask.logging import get_logger
from httptask.protocol.constants import COPY_BUFFER_SIZE
from httptask.storage import ContentResolver

log = get_logger(__name__)


class ScratchProvider(Protocol):
    """Hands out fresh, empty, execution-scoped files."""

    def new_file(self) -> Path: ...


@dataclass(frozen=True)
class ScratchFile:
    path: Path
    size: int

    @property
    def name(self) -> str:
        return self.path.name


class ContentStager:
    """Stages referenced content into scratch files.

    Usage::

        stager = ContentStager(storage, scratch)
        staged = stager.stage("storage:///exports/report.csv", "report.csv")
        staged.path.name  # "report.csv"
    """

    def __init__(self, resolver: ContentResolver, scratch: ScratchProvider) -> None:
        self._resolver = resolver
        self._scratch = scratch

    @property
    def resolver(self) -> ContentResolver:
        return self._resolver

    def stage(self, reference: str, logical_name: str | None = None) -> ScratchFile:
        """Copy *reference* into a new scratch file, optionally renamed.

        Args:
            reference:    Content reference to copy from.
            logical_name: Bare file name the scratch file must carry.

        Raises:
            ContentStagingError: Opening, copying or renaming failed, or
                *logical_name* is not a bare file name.
        """
        if logical_name is not None:
            _check_file_name(reference, logical_name)

        try:
            target = self._scratch.new_file()
            with self._resolver.open(reference) as source, target.open("wb") as sink:
                shutil.copyfileobj(source, sink, COPY_BUFFER_SIZE)
            size = target.stat().st_size
        except ContentStagingError:
            raise
        except OSError as exc:
            raise ContentStagingError(reference, f"Copy failed: {exc}") from exc

        if logical_name is not None and logical_name != target.name:
            renamed = target.with_name(logical_name)
            try:
                os.replace(target, renamed)
            except OSError as exc:
                raise ContentStagingError(reference, f"Rename failed: {exc}") from exc
            target = renamed

        log.debug("content_staged", reference=reference, path=str(target), size=size)
        return ScratchFile(path=target, size=size)


def _check_file_name(reference: str, name: str) -> None:
    if name in ("", ".", "..") or PurePath(name).name != name or "\\" in name:
        raise ContentStagingError(
            reference, f"Logical name '{name}' must be a bare file name."
        )
