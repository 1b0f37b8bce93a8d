"""Read-only byte source for a single associative memory file."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Union


class ByteSource:
    """Immutable, randomly addressable view over the bytes of one file.

    The file is read once; every component shares the same buffer through
    ``view``/``read`` without copying it back out or mutating it.
    """

    __slots__ = ("_data", "name")

    def __init__(self, data: bytes, name: str = "<memory>"):
        self._data = bytes(data)
        self.name = name

    @classmethod
    def from_path(cls, path: Union[str, os.PathLike]) -> "ByteSource":
        """Load the whole file, named by the path as given.

        Raises OSError if it cannot be read.
        """
        return cls(Path(path).read_bytes(), name=os.fspath(path))

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"ByteSource({self.name!r}, {len(self._data)} bytes)"

    @property
    def data(self) -> bytes:
        return self._data

    def contains(self, start: int, size: int = 1) -> bool:
        """True if ``[start, start+size)`` lies inside the file."""
        return start >= 0 and size >= 0 and start + size <= len(self._data)

    def view(self, start: int, end: int) -> memoryview:
        """Zero-copy view of ``[start, end)``, clipped to the file."""
        start = max(0, start)
        end = min(len(self._data), end)
        return memoryview(self._data)[start:max(start, end)]

    def read(self, start: int, size: int) -> bytes:
        return bytes(self.view(start, start + size))
