"""Diff engine — show how an installed tree differs from a package."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterator

from treepkg.archive.base import PackageArchive
from treepkg.config import Options
from treepkg.core.checksum import checksum, is_directory_checksum
from treepkg.core.manifest import is_reserved, read_manifest
from treepkg.core.paths import RelPath
from treepkg.utils.differ import DifflibDiffer, Differ, is_binary

logger = logging.getLogger(__name__)


def diff(
    archive: PackageArchive,
    target_dir: str | Path,
    files: list[str] | None = None,
    options: Options | None = None,
    differ: Differ | None = None,
) -> Iterator[str]:
    """Yield diff text for every path whose local content left the package's.

    Args:
        archive: The package to compare against.
        target_dir: Directory holding the local copy.
        files: Paths to compare; defaults to every file in the package.
        options: ``reverse`` makes the local copy the old side, so the patch
            turns the local copy back into the packaged one.
        differ: Unified diff implementation (difflib when omitted).

    Unchanged paths produce no output. Binary content is only reported as
    differing, never diffed.
    """
    options = options or Options()
    differ = differ or DifflibDiffer()
    target = Path(target_dir)
    table = read_manifest(archive).checksums

    if files:
        paths = []
        for name in files:
            try:
                paths.append(RelPath.parse(name))
            except ValueError:
                yield f"{name}: not in package\n"
    else:
        paths = [p for p, c in table.items() if not is_directory_checksum(c)]

    for path in paths:
        if is_reserved(path):
            continue
        recorded = table.get(path)
        if recorded is None:
            yield f"{path}: not in package\n"
            continue
        if is_directory_checksum(recorded):
            continue

        live = path.on(target)
        if not live.exists():
            yield f"{path}: not found\n"
            continue
        if live.is_dir():
            yield f"{path}: is a directory\n"
            continue
        if checksum(live) == recorded:
            continue

        packaged = archive.read(str(path))
        local = live.read_bytes()
        old, new = (local, packaged) if options.reverse else (packaged, local)
        old_label, new_label = f"a/{path.value}", f"b/{path.value}"

        if is_binary(old) or is_binary(new):
            yield f"Binary files {old_label} and {new_label} differ\n"
            continue

        logger.debug("Diffing %s", path)
        yield differ.unified_diff(
            old.decode("utf-8", errors="replace"),
            new.decode("utf-8", errors="replace"),
            old_label,
            new_label,
        )
