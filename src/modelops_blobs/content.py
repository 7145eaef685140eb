"""Upload content sources and body regenerators.

A request body that is a stream can only be sent once. When the transport has
to replay a request (for example after a 401 challenge consumed the original
body) it asks the request's regenerator for a fresh, independently readable
stream over the same bytes.
"""

import io
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Callable, Optional, Protocol, Union, runtime_checkable


@runtime_checkable
class BodyRegenerator(Protocol):
    """Produces a fresh stream over the same logical bytes on every call.

    Streams returned by ``regenerate`` belong to the caller of ``regenerate``.
    """

    def regenerate(self) -> BinaryIO:
        ...


class BytesRegenerator:
    """Regenerator over an in-memory byte string."""

    def __init__(self, data: bytes):
        self._data = bytes(data)

    def regenerate(self) -> BinaryIO:
        return io.BytesIO(self._data)


class FileRegenerator:
    """Regenerator that reopens a file from disk."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def regenerate(self) -> BinaryIO:
        return self.path.open("rb")


class CallableRegenerator:
    """Adapter for a zero-argument function returning a fresh stream."""

    def __init__(self, fn: Callable[[], BinaryIO]):
        self._fn = fn

    def regenerate(self) -> BinaryIO:
        return self._fn()


@dataclass
class ContentSource:
    """Blob bytes to upload plus an optional way to re-read them.

    The caller owns ``stream``; the transfer never closes it.
    """
    stream: BinaryIO
    regenerator: Optional[BodyRegenerator] = None

    @classmethod
    def from_bytes(cls, data: bytes) -> "ContentSource":
        regenerator = BytesRegenerator(data)
        return cls(stream=regenerator.regenerate(), regenerator=regenerator)

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> "ContentSource":
        """Open ``path`` for upload.

        The returned source holds an open file; close ``source.stream`` when
        done (or use the source as a context manager).
        """
        regenerator = FileRegenerator(path)
        return cls(stream=regenerator.regenerate(), regenerator=regenerator)

    def __enter__(self) -> "ContentSource":
        return self

    def __exit__(self, *exc) -> None:
        self.stream.close()


__all__ = [
    "BodyRegenerator",
    "BytesRegenerator",
    "FileRegenerator",
    "CallableRegenerator",
    "ContentSource",
]
