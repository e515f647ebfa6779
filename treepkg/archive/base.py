"""The named-entry container a package is stored in."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol


class PackageArchive(Protocol):
    """What the engine needs from an archive: named entries holding bytes.

    Entry names are canonical ``./``-prefixed relative paths.
    """

    def names(self) -> list[str]:
        ...

    def has(self, name: str) -> bool:
        ...

    def read(self, name: str) -> bytes:
        """Return an entry's content; ``KeyError`` if it does not exist."""
        ...

    def copy_to(self, name: str, dest: Path) -> None:
        """Stream an entry's content into a file on disk."""
        ...

    def is_directory(self, name: str) -> bool:
        ...

    def mode(self, name: str) -> int:
        ...

    def add_bytes(self, name: str, data: bytes, mode: int = 0o644) -> None:
        ...

    def add_file(self, name: str, source: Path) -> None:
        ...

    def add_directory(self, name: str) -> None:
        ...
