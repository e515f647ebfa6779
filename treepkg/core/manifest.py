"""Manifest — what a package says it contains.

A manifest is persisted as three reserved entries, both inside a package
archive and, after install, as plain files in the target directory:

- ``./.treepkg.sums``: one ``<digest|DIR> <path>`` line per entry
- ``./.treepkg.version``: ``<name> <version>``
- ``./.treepkg.meta``: ``<Field>: <value>`` lines, only when metadata is set

The reserved entries are never part of the package's own file list.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from treepkg.archive.base import PackageArchive
from treepkg.core.checksum import DIR_SENTINEL, checksum, is_directory_checksum
from treepkg.core.collector import FileSet
from treepkg.core.paths import RelPath
from treepkg.errors import CorruptManifest
from treepkg.spec.fields import METADATA_FIELDS, ConfigField

logger = logging.getLogger(__name__)

CHECKSUMS_ENTRY = RelPath(".treepkg.sums")
VERSION_ENTRY = RelPath(".treepkg.version")
METADATA_ENTRY = RelPath(".treepkg.meta")

RESERVED_PATHS = frozenset({CHECKSUMS_ENTRY, VERSION_ENTRY, METADATA_ENTRY})

_DIGEST_RE = re.compile(r"^[0-9a-fA-F]+$")


def is_reserved(path: RelPath) -> bool:
    return path in RESERVED_PATHS


@dataclass(frozen=True)
class FileEntry:
    """One packaged path and its checksum (or the ``DIR`` sentinel)."""

    path: RelPath
    checksum: str

    @property
    def is_directory(self) -> bool:
        return is_directory_checksum(self.checksum)


@dataclass
class Manifest:
    """Name, version, metadata and the ordered path → checksum table."""

    package_name: str
    version: str
    metadata: dict[ConfigField, str] = field(default_factory=dict)
    entries: tuple[FileEntry, ...] = ()

    def __post_init__(self):
        self.entries = tuple(sorted(self.entries, key=lambda e: e.path))

    @property
    def checksums(self) -> dict[RelPath, str]:
        return {e.path: e.checksum for e in self.entries}

    @property
    def files(self) -> list[FileEntry]:
        return [e for e in self.entries if not e.is_directory]

    @property
    def directories(self) -> list[FileEntry]:
        return [e for e in self.entries if e.is_directory]

    def finalize(self) -> "Manifest":
        """Check the rules a manifest must satisfy before it is written.

        Raises:
            ValueError: on an empty or space-containing name, an empty
                version, duplicate paths or a reserved path among entries.
        """
        if not self.package_name or any(c.isspace() for c in self.package_name):
            raise ValueError(f"invalid package name: {self.package_name!r}")
        if not self.version.strip():
            raise ValueError("package version must not be empty")
        seen = set()
        for entry in self.entries:
            if entry.path in seen:
                raise ValueError(f"duplicate path in manifest: {entry.path}")
            if is_reserved(entry.path):
                raise ValueError(f"reserved name used as package content: {entry.path}")
            seen.add(entry.path)
        return self

    def summary(self) -> str:
        return (
            f"{self.package_name} {self.version}: "
            f"{len(self.files)} file(s), {len(self.directories)} director(ies)"
        )


# ── Build ────────────────────────────────────────────────────────────


def build_manifest(
    file_set: FileSet,
    base_dir: str | Path,
    name: str,
    version: str,
    fields: dict[ConfigField, str] | None = None,
    vcs: str | None = None,
    built: datetime | None = None,
) -> Manifest:
    """Checksum every selected path and assemble a finalized manifest.

    Only metadata fields from the whitelist are copied from ``fields``;
    ``Built`` is always stamped and ``VCS`` is stamped when given.
    """
    base = Path(base_dir)
    entries = []
    for path, is_dir in file_set.sorted():
        digest = DIR_SENTINEL if is_dir else checksum(path.on(base))
        entries.append(FileEntry(path=path, checksum=digest))

    metadata = {
        key: value
        for key, value in (fields or {}).items()
        if key.is_metadata and not key.is_read_only and value
    }
    stamp = built or datetime.now(timezone.utc)
    metadata[ConfigField.BUILT] = stamp.strftime("%Y-%m-%dT%H:%M:%SZ")
    if vcs:
        metadata[ConfigField.VCS] = vcs

    return Manifest(
        package_name=name,
        version=version,
        metadata=metadata,
        entries=tuple(entries),
    ).finalize()


# ── Text formats ─────────────────────────────────────────────────────


def format_checksums(entries) -> str:
    return "".join(f"{e.checksum} {e.path}\n" for e in sorted(entries, key=lambda e: e.path))


def parse_checksums(text: str) -> dict[RelPath, str]:
    """Parse a checksums table; the digest is the first whitespace-separated token.

    Raises:
        CorruptManifest: on a line without a path, a bad digest, a bad path
            or a path listed twice.
    """
    table: dict[RelPath, str] = {}
    for number, line in enumerate(text.splitlines(), start=1):
        if not line.strip():
            continue
        parts = line.split(None, 1)
        if len(parts) != 2:
            raise CorruptManifest(f"checksums line {number} has no path: {line!r}")
        digest, raw_path = parts[0], parts[1].rstrip("\r")
        if digest != DIR_SENTINEL and not _DIGEST_RE.match(digest):
            raise CorruptManifest(f"checksums line {number} has a bad digest: {line!r}")
        try:
            path = RelPath.parse(raw_path)
        except ValueError as e:
            raise CorruptManifest(f"checksums line {number}: {e}") from None
        if path in table:
            raise CorruptManifest(f"checksums table lists {path} twice")
        table[path] = digest.lower() if digest != DIR_SENTINEL else digest
    return table


def format_version(name: str, version: str) -> str:
    return f"{name} {version}"


def parse_version(text: str) -> tuple[str, str]:
    """Parse ``<name> <version>``.

    Raises:
        CorruptManifest: unless both parts are present.
    """
    parts = text.strip().split(None, 1)
    if len(parts) != 2:
        raise CorruptManifest(f"malformed version record: {text.strip()!r}")
    return parts[0], parts[1].strip()


def format_metadata(metadata: dict[ConfigField, str]) -> str:
    return "".join(
        f"{key.value}: {metadata[key]}\n" for key in METADATA_FIELDS if metadata.get(key)
    )


def parse_metadata(text: str) -> dict[ConfigField, str]:
    """Parse metadata lines; unknown fields and stray lines are ignored."""
    metadata: dict[ConfigField, str] = {}
    for line in text.splitlines():
        key, sep, value = line.partition(":")
        if not sep:
            continue
        field_key = ConfigField.lookup(key)
        if field_key is None or not field_key.is_metadata:
            logger.debug("Ignoring metadata line: %s", line)
            continue
        metadata[field_key] = value.strip()
    return metadata


# ── Archive I/O ──────────────────────────────────────────────────────


def write_manifest(manifest: Manifest, archive: PackageArchive) -> None:
    """Store the reserved entries describing ``manifest`` in ``archive``."""
    archive.add_bytes(str(CHECKSUMS_ENTRY), format_checksums(manifest.entries).encode("utf-8"))
    archive.add_bytes(
        str(VERSION_ENTRY),
        format_version(manifest.package_name, manifest.version).encode("utf-8"),
    )
    if manifest.metadata:
        archive.add_bytes(str(METADATA_ENTRY), format_metadata(manifest.metadata).encode("utf-8"))


def read_manifest(archive: PackageArchive) -> Manifest:
    """Rebuild a manifest from an archive's reserved entries.

    Raises:
        CorruptManifest: if the checksums table or version record is
            missing or malformed.
    """
    for required in (CHECKSUMS_ENTRY, VERSION_ENTRY):
        if not archive.has(str(required)):
            raise CorruptManifest(f"package has no {required} entry")

    table = parse_checksums(_decode(archive.read(str(CHECKSUMS_ENTRY)), CHECKSUMS_ENTRY))
    name, version = parse_version(_decode(archive.read(str(VERSION_ENTRY)), VERSION_ENTRY))

    metadata: dict[ConfigField, str] = {}
    if archive.has(str(METADATA_ENTRY)):
        metadata = parse_metadata(_decode(archive.read(str(METADATA_ENTRY)), METADATA_ENTRY))

    for path in table:
        if is_reserved(path):
            raise CorruptManifest(f"checksums table lists reserved entry {path}")

    return Manifest(
        package_name=name,
        version=version,
        metadata=metadata,
        entries=tuple(FileEntry(path=p, checksum=c) for p, c in table.items()),
    )


def _decode(data: bytes, entry: RelPath) -> str:
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        raise CorruptManifest(f"{entry} is not valid UTF-8") from None
