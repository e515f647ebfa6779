"""Unified diff producers."""

from __future__ import annotations

import difflib
import logging
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)

NO_NEWLINE = "\\ No newline at end of file\n"


class Differ(Protocol):
    def unified_diff(self, old: str, new: str, old_label: str, new_label: str) -> str:
        ...


class DifflibDiffer:
    """In-process diff using ``difflib``."""

    name = "builtin"

    def unified_diff(self, old: str, new: str, old_label: str, new_label: str) -> str:
        lines = difflib.unified_diff(
            old.splitlines(keepends=True),
            new.splitlines(keepends=True),
            fromfile=old_label,
            tofile=new_label,
        )
        out = []
        for line in lines:
            if line.endswith("\n"):
                out.append(line)
            else:
                out.append(line + "\n" + NO_NEWLINE)
        return "".join(out)


class ExternalDiffer:
    """``diff -u`` run over two scratch files."""

    name = "external"

    def __init__(self, binary: str):
        self.binary = binary

    def unified_diff(self, old: str, new: str, old_label: str, new_label: str) -> str:
        with tempfile.TemporaryDirectory(prefix="treepkg_diff_") as tmpdir:
            old_path = Path(tmpdir) / "old"
            new_path = Path(tmpdir) / "new"
            old_path.write_text(old, encoding="utf-8")
            new_path.write_text(new, encoding="utf-8")
            proc = subprocess.run(
                [self.binary, "-u", "-L", old_label, "-L", new_label,
                 str(old_path), str(new_path)],
                capture_output=True,
                text=True,
                errors="replace",
            )
        # diff exits 1 when the inputs differ
        if proc.returncode not in (0, 1):
            raise OSError(f"{self.binary} failed: {proc.stderr.strip()}")
        return proc.stdout


def get_differ(preference: str = "auto") -> Differ:
    """Choose a diff implementation.

    ``builtin`` and ``auto`` use difflib; ``external`` uses the ``diff``
    binary when it is installed and falls back to difflib otherwise.
    """
    if preference == "external":
        binary = shutil.which("diff")
        if binary:
            return ExternalDiffer(binary)
        logger.warning("diff is not installed, using the builtin differ")
    return DifflibDiffer()


def is_binary(data: bytes, sample_size: int = 8192) -> bool:
    """Treat content with a NUL byte near the start as binary."""
    return b"\x00" in data[:sample_size]
