"""Replayable multipart form bodies.

A ``MultipartForm`` does not hold an encoded body. It holds the *sources* of
its parts and renders fresh ``data``/``files`` arguments for httpx every time
:meth:`MultipartForm.open` is entered, so a request that is retried after a
``401`` sends the same payload twice.

Part sources:
    - ``bytes`` are sent as-is on every attempt.
    - ``str`` / ``Path`` name a file that is reopened for every attempt.
    - Seekable binary file objects are rewound to their starting offset.
    - Non-seekable file objects (pipes, sockets) can be rendered once; a second
      rendering raises ``UnreplayableBodyError`` instead of sending an empty part.
"""

import io
from collections.abc import Iterator
from contextlib import ExitStack, contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, BinaryIO

from core.exceptions import UnreplayableBodyError

DEFAULT_CONTENT_TYPE = "application/octet-stream"


@dataclass
class _FilePart:
    name: str
    source: bytes | Path | BinaryIO
    filename: str
    content_type: str
    start: int | None = None
    rendered: bool = False

    @property
    def replayable(self) -> bool:
        return isinstance(self.source, (bytes, Path)) or self.start is not None


class MultipartForm:
    """Multipart form whose body can be produced again for each attempt."""

    def __init__(self) -> None:
        self._fields: dict[str, str] = {}
        self._files: list[_FilePart] = []

    def text(self, name: str, value: Any) -> "MultipartForm":
        """Add a plain text field."""
        self._fields[name] = str(value)
        return self

    def file(
        self,
        name: str,
        source: bytes | str | Path | BinaryIO,
        filename: str | None = None,
        content_type: str = DEFAULT_CONTENT_TYPE,
    ) -> "MultipartForm":
        """Add a file part from bytes, a filesystem path or an open binary file."""
        if isinstance(source, str):
            source = Path(source)
        if filename is None:
            filename = _default_filename(name, source)
        part = _FilePart(name, source, filename, content_type)
        if not isinstance(source, (bytes, Path)):
            part.start = _tell(source)
        self._files.append(part)
        return self

    @property
    def replayable(self) -> bool:
        """True when every part can be rendered any number of times."""
        return all(part.replayable for part in self._files)

    @contextmanager
    def open(self) -> Iterator[tuple[dict[str, str], list[tuple[str, Any]]]]:
        """Render ``(data, files)`` arguments for one attempt.

        Files opened for the attempt are closed when the context exits.
        """
        with ExitStack() as stack:
            files = [
                (part.name, (part.filename, self._open_part(part, stack), part.content_type))
                for part in self._files
            ]
            yield dict(self._fields), files

    def _open_part(self, part: _FilePart, stack: ExitStack) -> bytes | BinaryIO:
        if isinstance(part.source, bytes):
            return part.source
        if isinstance(part.source, Path):
            return stack.enter_context(part.source.open("rb"))
        if part.start is not None:
            part.source.seek(part.start)
            return _Window(part.source, part.start)
        if part.rendered:
            raise UnreplayableBodyError(
                f"multipart part '{part.name}' is a one-shot stream and was already sent"
            )
        part.rendered = True
        return part.source


class _Window(io.RawIOBase):
    """Read-only view of a seekable file starting at a fixed offset.

    httpx rewinds file parts to offset 0 before streaming them; this keeps a
    file object that was handed over mid-way from being sent from the start.
    """

    def __init__(self, inner: BinaryIO, start: int) -> None:
        super().__init__()
        self._inner = inner
        self._start = start

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return True

    def read(self, size: int = -1) -> bytes:
        return self._inner.read(size)

    def readinto(self, buffer: Any) -> int:
        data = self._inner.read(len(buffer))
        buffer[: len(data)] = data
        return len(data)

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        if whence == io.SEEK_SET:
            offset += self._start
        return self._inner.seek(offset, whence) - self._start

    def tell(self) -> int:
        return self._inner.tell() - self._start


def _tell(source: BinaryIO) -> int | None:
    """Return the current offset of a seekable file, or None for streams."""
    try:
        if not source.seekable():
            return None
        return source.tell()
    except (AttributeError, OSError, io.UnsupportedOperation):
        return None


def _default_filename(name: str, source: bytes | Path | BinaryIO) -> str:
    if isinstance(source, Path):
        return source.name
    file_name = getattr(source, "name", None)
    if isinstance(file_name, str):
        return Path(file_name).name
    return name
