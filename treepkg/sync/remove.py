"""Remover — take an installed package back out of a target directory.

Validation happens first: the installed state must be complete and no
recorded file may have been modified (unless forced). Deletion itself is
best effort; a file or directory that cannot be removed becomes a warning
and the rest of the removal carries on. Nothing is rolled back.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from treepkg.config import Options
from treepkg.core.checksum import checksum, is_directory_checksum
from treepkg.core.paths import RelPath
from treepkg.core.state import InstalledState
from treepkg.errors import ConflictError

logger = logging.getLogger(__name__)


@dataclass
class RemoveResult:
    package_name: str
    version: str
    removed_files: list[RelPath] = field(default_factory=list)
    removed_directories: list[RelPath] = field(default_factory=list)
    attempted_directories: list[RelPath] = field(default_factory=list)
    overridden_conflicts: list[RelPath] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.warnings

    def summary(self) -> str:
        text = (
            f"{self.package_name} {self.version} removed: "
            f"{len(self.removed_files)} file(s), {len(self.removed_directories)} director(ies)"
        )
        if self.warnings:
            text += f", {len(self.warnings)} warning(s)"
        return text


def directory_removal_order(paths) -> list[RelPath]:
    """Deepest directories first, so children go before their parents."""
    return sorted(paths, key=lambda p: (p.depth, len(p.value), p.value), reverse=True)


def find_remove_conflicts(state: InstalledState) -> list[RelPath]:
    """Recorded files that exist but no longer match their checksum."""
    conflicts = []
    for path, recorded in state.checksums.items():
        if is_directory_checksum(recorded):
            continue
        live = path.on(state.target_dir)
        if live.exists() and checksum(live) != recorded:
            conflicts.append(path)
    return sorted(conflicts)


def remove(target_dir: str | Path, options: Options | None = None) -> RemoveResult:
    """Remove the package installed in ``target_dir``.

    Raises:
        MissingManifest: if the version record or checksums table is absent.
        CorruptManifest: if either cannot be parsed.
        ConflictError: if recorded files were modified and ``options.force``
            is false.
    """
    options = options or Options()
    state = InstalledState.load(target_dir).require_complete()
    target = state.target_dir

    conflicts = find_remove_conflicts(state)
    if conflicts and not options.force:
        raise ConflictError(conflicts)
    for path in conflicts:
        logger.warning("Removing locally modified %s", path)

    result = RemoveResult(
        package_name=state.package_name,
        version=state.version,
        overridden_conflicts=conflicts,
    )

    directories = []
    for path, recorded in sorted(state.checksums.items()):
        if is_directory_checksum(recorded):
            directories.append(path)
            continue
        if _unlink(path.on(target), str(path), result):
            result.removed_files.append(path)

    for reserved in state.reserved_files():
        if reserved.exists():
            _unlink(reserved, reserved.name, result)

    for path in directory_removal_order(directories):
        result.attempted_directories.append(path)
        try:
            path.on(target).rmdir()
        except OSError as e:
            _warn(result, f"could not remove directory {path}: {e.strerror or e}")
        else:
            result.removed_directories.append(path)

    logger.info(result.summary())
    return result


def _unlink(path: Path, label: str, result: RemoveResult) -> bool:
    try:
        path.unlink()
    except FileNotFoundError:
        _warn(result, f"{label} was already missing")
        return False
    except OSError as e:
        _warn(result, f"could not delete {label}: {e.strerror or e}")
        return False
    return True


def _warn(result: RemoveResult, message: str) -> None:
    logger.warning(message)
    result.warnings.append(message)
