"""Normalized relative paths.

Every path that enters a manifest, a checksums table or an archive goes
through ``RelPath.parse`` exactly once. From then on code compares and
sorts ``RelPath`` values instead of inspecting ``./`` prefixes.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import total_ordering
from pathlib import Path

PREFIX = "./"


@total_ordering
@dataclass(frozen=True)
class RelPath:
    """A POSIX path relative to a package root, never the root itself."""

    value: str

    @classmethod
    def parse(cls, text: str) -> "RelPath":
        """Normalize ``a/b``, ``./a/b``, ``a/b/`` and ``a//b`` to one form.

        Raises:
            ValueError: for absolute paths, ``..`` segments, or the root.
        """
        if text.startswith("/"):
            raise ValueError(f"absolute path not allowed: {text}")
        parts = [p for p in text.split("/") if p not in ("", ".")]
        if ".." in parts:
            raise ValueError(f"parent reference not allowed: {text}")
        if not parts:
            raise ValueError(f"not a path below the root: {text!r}")
        return cls("/".join(parts))

    @classmethod
    def from_fs(cls, path: Path, root: Path) -> "RelPath":
        """Build from a filesystem path located under ``root``.

        The OS separator is translated here; ``parse`` only ever splits on
        ``/``, so a backslash is an ordinary filename character.
        """
        return cls.parse("/".join(Path(path).relative_to(root).parts))

    def __str__(self) -> str:
        return PREFIX + self.value

    def __lt__(self, other: "RelPath") -> bool:
        if not isinstance(other, RelPath):
            return NotImplemented
        return str(self) < str(other)

    @property
    def name(self) -> str:
        return self.value.rsplit("/", 1)[-1]

    @property
    def depth(self) -> int:
        return self.value.count("/") + 1

    @property
    def parent(self) -> "RelPath | None":
        """The containing directory, or ``None`` for a top-level entry."""
        if "/" not in self.value:
            return None
        return RelPath(self.value.rsplit("/", 1)[0])

    @property
    def parents(self) -> list["RelPath"]:
        """Proper ancestors, nearest first."""
        result = []
        current = self.parent
        while current is not None:
            result.append(current)
            current = current.parent
        return result

    def is_relative_to(self, other: "RelPath") -> bool:
        return self == other or self.value.startswith(other.value + "/")

    def on(self, root: str | Path) -> Path:
        """Resolve against a directory on disk."""
        return Path(root).joinpath(*self.value.split("/"))
