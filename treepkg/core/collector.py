"""File collector — turn selection rules into the set of packaged paths."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path

from treepkg.core.paths import RelPath
from treepkg.spec.parser import SPEC_FILENAME, RuleSet

logger = logging.getLogger(__name__)

PACKAGE_SUFFIX = ".tpkg"

# VCS bookkeeping directories, pruned unless Prune is off
VCS_DIRS = {".git", ".hg", ".svn", "CVS"}


@dataclass
class FileSet:
    """Selected files plus the directories needed to recreate them."""

    files: set[RelPath] = field(default_factory=set)
    directories: set[RelPath] = field(default_factory=set)

    def add_file(self, path: RelPath, directories=()) -> None:
        self.files.add(path)
        self.directories.update(directories)

    def sorted(self) -> list[tuple[RelPath, bool]]:
        """``(path, is_dir)`` pairs in lexicographic path order."""
        entries = [(p, False) for p in self.files]
        entries += [(p, True) for p in self.directories - self.files]
        return sorted(entries, key=lambda e: e[0])

    def __contains__(self, path: RelPath) -> bool:
        return path in self.files or path in self.directories

    def __len__(self) -> int:
        return len(self.files | self.directories)


def collect(rules: RuleSet, base_dir: str | Path = ".", prune_vcs: bool = True) -> FileSet:
    """Walk every Add root under ``base_dir`` and apply the exclusion rules.

    Exclude patterns prune whole subtrees and win over everything else.
    MatchExclude patterns are searched against the path without its ``./``
    prefix and skip only the matching entry; the walk still descends into
    a skipped directory.

    Raises:
        FileNotFoundError: if an Add root does not exist.
    """
    base = Path(base_dir)
    excludes = rules.excludes
    patterns = rules.match_excludes
    file_set = FileSet()

    for root_pattern in rules.roots:
        root_rel = _root_relpath(root_pattern)
        root_path = root_rel.on(base) if root_rel is not None else base
        if not root_path.exists():
            raise FileNotFoundError(f"Add root does not exist: {root_path}")

        if root_rel is not None and _is_excluded(root_rel, excludes):
            logger.debug("Add root %s is excluded", root_rel)
            continue

        if root_path.is_file():
            if root_rel is not None and not _skipped(root_rel, patterns):
                file_set.add_file(root_rel, _ancestors(root_rel, None, patterns))
            continue

        _walk(base, root_path, root_rel, excludes, patterns, prune_vcs, file_set)

    logger.debug(
        "Collected %d file(s) and %d director(ies)",
        len(file_set.files),
        len(file_set.directories),
    )
    return file_set


def _walk(
    base: Path,
    root_path: Path,
    root_rel: RelPath | None,
    excludes: set[RelPath],
    patterns: list[re.Pattern],
    prune_vcs: bool,
    file_set: FileSet,
) -> None:
    for dirpath, dirnames, filenames in os.walk(root_path):
        current = Path(dirpath)

        kept = []
        for name in sorted(dirnames):
            rel = RelPath.from_fs(current / name, base)
            if _is_excluded(rel, excludes) or (prune_vcs and name in VCS_DIRS):
                logger.debug("Pruning %s", rel)
                continue
            kept.append(name)
        dirnames[:] = kept

        for name in sorted(filenames):
            if _is_own_artifact(name):
                continue
            rel = RelPath.from_fs(current / name, base)
            if _is_excluded(rel, excludes) or _skipped(rel, patterns):
                continue
            file_set.add_file(rel, _ancestors(rel, root_rel, patterns))


def _root_relpath(pattern: str) -> RelPath | None:
    """The Add root as a RelPath, or None when it names the base itself."""
    try:
        return RelPath.parse(pattern)
    except ValueError:
        if pattern.strip("./") == "":
            return None
        raise


def _is_own_artifact(name: str) -> bool:
    return name == SPEC_FILENAME or name.endswith(PACKAGE_SUFFIX)


def _is_excluded(path: RelPath, excludes: set[RelPath]) -> bool:
    return path in excludes


def _skipped(path: RelPath, patterns: list[re.Pattern]) -> bool:
    return any(p.search(path.value) for p in patterns)


def _ancestors(path: RelPath, root: RelPath | None, patterns: list[re.Pattern]) -> list[RelPath]:
    """Directories between ``root`` (exclusive) and ``path`` to record.

    A directory matched by a MatchExclude pattern is left out even when it
    has selected descendants; install recreates it as a plain parent.
    """
    result = []
    for parent in path.parents:
        if parent == root:
            break
        if not _skipped(parent, patterns):
            result.append(parent)
    return result
