"""Status reporter — classify every path an installed tree knows or holds."""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from treepkg.core.checksum import checksum
from treepkg.core.collector import VCS_DIRS
from treepkg.core.manifest import is_reserved
from treepkg.core.paths import RelPath
from treepkg.core.state import InstalledState
from treepkg.errors import MissingManifest


class Classification(Enum):
    UNKNOWN = "?"  # Present on disk, not part of the package
    MISSING = "!"  # Recorded, but gone from disk
    UP_TO_DATE = " "
    MODIFIED = "M"  # Present, content differs from the record


@dataclass(frozen=True)
class StatusEntry:
    path: RelPath
    classification: Classification

    def __str__(self) -> str:
        return f"{self.classification.value} {self.path}"


def status(target_dir: str | Path) -> list[StatusEntry]:
    """Classify the union of recorded and present paths, sorted by path.

    Raises:
        MissingManifest: if ``target_dir`` has no checksums table.
    """
    state = InstalledState.load(target_dir)
    if not state.has_checksums:
        raise MissingManifest(f"{target_dir} has no installed package to report on")

    target = state.target_dir
    recorded = state.checksums
    present = set(scan_tree(target))

    entries = []
    for path in sorted(present | set(recorded)):
        expected = recorded.get(path)
        if expected is None:
            classification = Classification.UNKNOWN
        elif path not in present:
            classification = Classification.MISSING
        elif checksum(path.on(target)) == expected:
            classification = Classification.UP_TO_DATE
        else:
            classification = Classification.MODIFIED
        entries.append(StatusEntry(path, classification))
    return entries


def scan_tree(target: Path) -> list[RelPath]:
    """Every file and directory below ``target`` except reserved files.

    VCS metadata directories are skipped along with their contents.
    """
    found = []
    for dirpath, dirnames, filenames in os.walk(target):
        current = Path(dirpath)
        dirnames[:] = sorted(d for d in dirnames if d not in VCS_DIRS)
        for name in dirnames + sorted(filenames):
            path = RelPath.from_fs(current / name, target)
            if not is_reserved(path):
                found.append(path)
    return found
