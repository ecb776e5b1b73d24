"""Internal content storage — resolves content references to byte streams.

A content reference is an opaque URI of the internal storage scheme, e.g.
``storage:///flows/main/report.csv``.  ``LocalStorage`` maps such references
onto a base directory on local disk; other backends only need to satisfy the
``ContentResolver`` protocol.
"""

from __future__ import annotations

import uuid
from pathlib import Path, PurePosixPath
from typing import BinaryIO, Protocol
from urllib.parse import unquote, urlsplit

from httptask.exceptions import ContentStagingError
from httptask.logging import get_logger
from httptask.protocol.constants import DEFAULT_STORAGE_SCHEME

log = get_logger(__name__)


class ContentResolver(Protocol):
    """Opens a read stream for a content reference."""

    scheme: str

    def is_reference(self, value: str) -> bool: ...

    def open(self, reference: str) -> BinaryIO: ...


class LocalStorage:
    """Content references backed by a local directory."""

    def __init__(self, base_dir: Path, scheme: str = DEFAULT_STORAGE_SCHEME) -> None:
        self._base_dir = Path(base_dir).expanduser().resolve()
        self.scheme = scheme

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    def is_reference(self, value: str) -> bool:
        return value.startswith(f"{self.scheme}://")

    def open(self, reference: str) -> BinaryIO:
        """Open *reference* for binary reading.

        Raises:
            ContentStagingError: The reference is not of this storage's scheme,
                escapes the base directory, or cannot be opened.
        """
        path = self.path_of(reference)
        try:
            return path.open("rb")
        except OSError as exc:
            raise ContentStagingError(reference, str(exc)) from exc

    def put(self, data: bytes, name: str) -> str:
        """Store *data* under a fresh prefix and return its reference."""
        relative = PurePosixPath(uuid.uuid4().hex) / PurePosixPath(name).name
        target = self._base_dir.joinpath(*relative.parts)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        log.debug("storage_put", path=str(target), size=len(data))
        return f"{self.scheme}:///{relative.as_posix()}"

    def path_of(self, reference: str) -> Path:
        parts = urlsplit(reference)
        if parts.scheme != self.scheme:
            raise ContentStagingError(
                reference, f"Expected a '{self.scheme}://' reference."
            )
        relative = unquote(parts.netloc + parts.path).lstrip("/")
        if not relative:
            raise ContentStagingError(reference, "Reference has no path.")
        path = (self._base_dir / relative).resolve()
        if not path.is_relative_to(self._base_dir):
            raise ContentStagingError(reference, "Reference escapes the storage directory.")
        return path
