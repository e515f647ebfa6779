"""Installed state — the reserved manifest files left in a target directory."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from treepkg.core.manifest import (
    CHECKSUMS_ENTRY,
    METADATA_ENTRY,
    VERSION_ENTRY,
    parse_checksums,
    parse_metadata,
    parse_version,
)
from treepkg.core.paths import RelPath
from treepkg.errors import CorruptManifest, MissingManifest
from treepkg.spec.fields import ConfigField


@dataclass
class InstalledState:
    """What a target directory believes it has installed.

    Any of the three files may be absent; callers decide which ones they
    require.
    """

    target_dir: Path
    package_name: str = ""
    version: str = ""
    checksums: dict[RelPath, str] | None = None
    metadata: dict[ConfigField, str] = field(default_factory=dict)

    @classmethod
    def load(cls, target_dir: str | Path) -> "InstalledState":
        """Read whichever reserved files exist under ``target_dir``.

        Raises:
            CorruptManifest: if an existing file cannot be parsed.
        """
        target = Path(target_dir)
        state = cls(target_dir=target)

        version_text = _read_text(VERSION_ENTRY.on(target))
        if version_text is not None:
            state.package_name, state.version = parse_version(version_text)

        sums_text = _read_text(CHECKSUMS_ENTRY.on(target))
        if sums_text is not None:
            state.checksums = parse_checksums(sums_text)

        meta_text = _read_text(METADATA_ENTRY.on(target))
        if meta_text is not None:
            state.metadata = parse_metadata(meta_text)

        return state

    @property
    def has_version(self) -> bool:
        return bool(self.package_name)

    @property
    def has_checksums(self) -> bool:
        return self.checksums is not None

    def require_complete(self) -> "InstalledState":
        """Raise ``MissingManifest`` unless both version and checksums exist."""
        missing = []
        if not self.has_version:
            missing.append(str(VERSION_ENTRY))
        if not self.has_checksums:
            missing.append(str(CHECKSUMS_ENTRY))
        if missing:
            raise MissingManifest(
                f"{self.target_dir} has no installed package (missing {', '.join(missing)})"
            )
        return self

    def reserved_files(self) -> list[Path]:
        return [p.on(self.target_dir) for p in (CHECKSUMS_ENTRY, VERSION_ENTRY, METADATA_ENTRY)]


def _read_text(path: Path) -> str | None:
    if not path.is_file():
        return None
    try:
        return path.read_text(encoding="utf-8")
    except UnicodeDecodeError:
        raise CorruptManifest(f"{path} is not valid UTF-8") from None
