"""Execution context — per-execution collaborators and scratch-file lifecycle.

A ``RunContext`` bundles everything one task execution needs from its host:
the template renderer, the content storage, a scratch space and the stager
that copies referenced content into it.
Used as a context manager, it binds its flow, task and execution ids to every
log record emitted inside the block, and deletes its scratch directory on
exit, whether the execution succeeded or failed.
"""

from __future__ import annotations

import os
import shutil
import tempfile
import uuid
from pathlib import Path
from types import TracebackType
from typing import Any, Mapping

from httptask.config import Settings, get_settings
from httptask.logging import bind_task_context, clear_task_context, get_logger
from httptask.protocol.template import Renderer, TemplateRenderer
from httptask.request.staging import ContentStager
from httptask.storage import ContentResolver, LocalStorage

log = get_logger(__name__)


class ScratchSpace:
    """A private temporary directory handing out fresh empty files.

    Each file lives in its own sub-directory so a staged file can be renamed
    to any logical name without colliding with its siblings.
    """

    def __init__(self, root: Path | None = None, prefix: str = "httptask-") -> None:
        if root is not None:
            root.mkdir(parents=True, exist_ok=True)
        self._dir = Path(tempfile.mkdtemp(prefix=prefix, dir=root))
        self._closed = False

    @property
    def directory(self) -> Path:
        return self._dir

    def new_file(self) -> Path:
        slot = self._dir / uuid.uuid4().hex
        slot.mkdir()
        handle, name = tempfile.mkstemp(dir=slot)
        os.close(handle)
        return Path(name)

    def cleanup(self) -> None:
        if self._closed:
            return
        shutil.rmtree(self._dir, ignore_errors=True)
        self._closed = True
        log.debug("scratch_cleaned", directory=str(self._dir))


class RunContext:
    """Collaborators of one task execution.

    Usage::

        with RunContext.from_settings(variables={"inputs": {"id": 7}}) as ctx:
            response = HttpRequestTask(spec).run(ctx)
    """

    def __init__(
        self,
        render: Renderer,
        storage: ContentResolver,
        scratch: ScratchSpace,
        keep_scratch: bool = False,
        flow_id: str | None = None,
        task_id: str | None = None,
        execution_id: str | None = None,
    ) -> None:
        self.render = render
        self.storage = storage
        self.scratch = scratch
        self.stager = ContentStager(storage, scratch)
        self.flow_id = flow_id
        self.task_id = task_id
        self.execution_id = execution_id or uuid.uuid4().hex
        self._keep_scratch = keep_scratch

    @classmethod
    def from_settings(
        cls,
        variables: Mapping[str, Any] | None = None,
        settings: Settings | None = None,
        storage_dir: Path | None = None,
        flow_id: str | None = None,
        task_id: str | None = None,
        execution_id: str | None = None,
    ) -> "RunContext":
        settings = settings or get_settings()
        storage = LocalStorage(
            storage_dir or settings.storage.base_dir, scheme=settings.storage.scheme
        )
        return cls(
            render=TemplateRenderer(variables),
            storage=storage,
            scratch=ScratchSpace(settings.scratch.root),
            keep_scratch=settings.scratch.keep,
            flow_id=flow_id,
            task_id=task_id,
            execution_id=execution_id,
        )

    def close(self) -> None:
        try:
            if self._keep_scratch:
                log.info("scratch_kept", directory=str(self.scratch.directory))
            else:
                self.scratch.cleanup()
        finally:
            clear_task_context()

    def __enter__(self) -> "RunContext":
        bind_task_context(
            flow_id=self.flow_id,
            task_id=self.task_id,
            execution_id=self.execution_id,
        )
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()
