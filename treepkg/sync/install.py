"""Installer — lay a package down over a target directory.

All checks run before anything is written: a package with a different
name is refused outright, and files changed since the last install are
only overwritten with ``force``. Files dropped by a newer package version
stay where they are. The one thing an install removes is a path whose kind
changes (a file becoming a directory or the reverse), and only when the
old path is part of the installed package and unmodified, or when forced.
"""

from __future__ import annotations

import logging
import os
import shutil
from dataclasses import dataclass, field
from pathlib import Path

from treepkg.archive.base import PackageArchive
from treepkg.config import Options
from treepkg.core.checksum import checksum, is_directory_checksum
from treepkg.core.manifest import METADATA_ENTRY, RESERVED_PATHS, Manifest, read_manifest
from treepkg.core.paths import RelPath
from treepkg.core.state import InstalledState
from treepkg.errors import ConflictError, CorruptManifest, NameMismatch

logger = logging.getLogger(__name__)


@dataclass
class InstallResult:
    package_name: str
    version: str
    previous_version: str = ""
    files_written: list[RelPath] = field(default_factory=list)
    directories_created: list[RelPath] = field(default_factory=list)
    replaced_paths: list[RelPath] = field(default_factory=list)
    overridden_conflicts: list[RelPath] = field(default_factory=list)

    @property
    def is_upgrade(self) -> bool:
        return bool(self.previous_version)

    def summary(self) -> str:
        action = (
            f"upgraded from {self.previous_version}" if self.is_upgrade else "installed"
        )
        return (
            f"{self.package_name} {self.version} {action}: "
            f"{len(self.files_written)} file(s) written"
        )


def find_install_conflicts(
    state: InstalledState, manifest: Manifest, target_dir: Path
) -> list[RelPath]:
    """Recorded paths whose live content matches neither side.

    A file that was changed locally but already matches what the incoming
    package carries is not a conflict, so re-installing the same package
    over itself is always clean. Files that no longer exist are not
    conflicts either; the install recreates them.
    """
    if not state.has_checksums:
        return []

    incoming = manifest.checksums
    conflicts = []
    for path, recorded in state.checksums.items():
        live_path = path.on(target_dir)
        if not live_path.exists():
            continue
        live = checksum(live_path)
        if live != recorded and live != incoming.get(path):
            logger.debug("Conflict on %s: live %s, recorded %s", path, live, recorded)
            conflicts.append(path)
    return sorted(conflicts)


def find_kind_changes(
    state: InstalledState, manifest: Manifest, target_dir: Path
) -> tuple[list[RelPath], list[RelPath]]:
    """Paths on disk that are a file where the package needs a directory, or the reverse.

    Returns ``(replaceable, conflicts)``. A path is replaceable when it and
    everything below it is recorded in the installed state and unmodified;
    anything else in the way is a conflict. Paths below one already found
    are not reported again.
    """
    recorded = state.checksums or {}
    replaceable: list[RelPath] = []
    conflicts: list[RelPath] = []
    for path, needs_dir in sorted(_needed_kinds(manifest).items()):
        if any(path.is_relative_to(p) for p in replaceable + conflicts):
            continue
        live = path.on(target_dir)
        if not _kind_differs(live, needs_dir):
            continue
        if _is_pristine(live, path, recorded):
            replaceable.append(path)
        else:
            logger.debug("%s is in the way of the incoming package", path)
            conflicts.append(path)
    return replaceable, conflicts


def install(archive: PackageArchive, target_dir: str | Path, options: Options | None = None) -> InstallResult:
    """Install ``archive`` into ``target_dir``.

    Raises:
        CorruptManifest: if the archive or the installed state is unreadable.
        NameMismatch: if the target holds a different package, even with force.
        ConflictError: if local modifications would be overwritten, or an
            unrecorded or modified path has the wrong kind, and
            ``options.force`` is false.
    """
    options = options or Options()
    target = Path(target_dir)
    manifest = read_manifest(archive)
    missing = [str(e.path) for e in manifest.files if not archive.has(str(e.path))]
    if missing:
        raise CorruptManifest(f"package lists entries it does not contain: {', '.join(missing)}")
    state = InstalledState.load(target)

    if state.has_version and state.package_name != manifest.package_name:
        raise NameMismatch(state.package_name, manifest.package_name)

    replaceable, blocked = find_kind_changes(state, manifest, target)
    conflicts = sorted(set(find_install_conflicts(state, manifest, target)) | set(blocked))
    if conflicts and not options.force:
        raise ConflictError(conflicts)
    for path in conflicts:
        logger.warning("Overwriting locally modified %s", path)

    result = InstallResult(
        package_name=manifest.package_name,
        version=manifest.version,
        previous_version=state.version,
        overridden_conflicts=conflicts,
    )

    target.mkdir(parents=True, exist_ok=True)
    for path in sorted(replaceable + blocked):
        logger.debug("Replacing %s", path)
        _clear(path.on(target))
        result.replaced_paths.append(path)

    for entry in manifest.entries:
        dest = entry.path.on(target)
        if entry.is_directory:
            if not dest.is_dir():
                dest.mkdir(parents=True, exist_ok=True)
                result.directories_created.append(entry.path)
            continue
        _materialize(archive, str(entry.path), dest)
        result.files_written.append(entry.path)

    # Reserved entries are written after all content
    for reserved in sorted(RESERVED_PATHS):
        if archive.has(str(reserved)):
            _materialize(archive, str(reserved), reserved.on(target))
        elif reserved == METADATA_ENTRY and reserved.on(target).is_file():
            reserved.on(target).unlink()

    logger.info(result.summary())
    return result


def _needed_kinds(manifest: Manifest) -> dict[RelPath, bool]:
    """Every path the package occupies, mapped to True where it must be a directory."""
    needed: dict[RelPath, bool] = {}
    for entry in manifest.entries:
        needed.setdefault(entry.path, entry.is_directory)
        for parent in entry.path.parents:
            needed[parent] = True
    return needed


def _kind_differs(live: Path, needs_dir: bool) -> bool:
    if needs_dir:
        return os.path.lexists(live) and not live.is_dir()
    return live.is_dir() and not live.is_symlink()


def _is_pristine(live: Path, path: RelPath, recorded: dict[RelPath, str]) -> bool:
    """Recorded and unmodified; for a directory, holding nothing else."""
    expected = recorded.get(path)
    if expected is None or live.is_symlink():
        return False
    if live.is_dir():
        return is_directory_checksum(expected) and all(
            _is_pristine(child, RelPath(f"{path.value}/{child.name}"), recorded)
            for child in live.iterdir()
        )
    return checksum(live) == expected


def _clear(live: Path) -> None:
    if live.is_dir() and not live.is_symlink():
        shutil.rmtree(live)
    else:
        live.unlink()


def _materialize(archive: PackageArchive, name: str, dest: Path) -> None:
    dest.parent.mkdir(parents=True, exist_ok=True)
    if dest.is_symlink() or dest.is_file():
        dest.unlink()
    archive.copy_to(name, dest)
    dest.chmod(archive.mode(name))
