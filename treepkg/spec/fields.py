"""The fixed set of ``Key: value`` fields a package spec may set."""

from __future__ import annotations

from enum import Enum


class ConfigField(Enum):
    """Recognized spec and metadata fields, in metadata record order."""

    NAME = "Name"  # Package name override (default: module basename)
    DESTINATION = "Destination"  # Directory the archive is written to
    FORMAT = "Format"  # Archive base name, %n = name, %v = version
    PRUNE = "Prune"  # yes | no: prune VCS metadata directories
    AUTHOR = "Author"
    PACKAGER = "Packager"
    DESCRIPTION = "Description"
    HOMEPAGE = "Homepage"
    LICENSE = "License"
    BUILT = "Built"  # Read-only, stamped at build time
    VCS = "VCS"  # Read-only, checkout kind used

    @classmethod
    def lookup(cls, key: str) -> "ConfigField | None":
        return _BY_KEY.get(key.strip().lower())

    @property
    def is_metadata(self) -> bool:
        return self in METADATA_FIELDS

    @property
    def is_read_only(self) -> bool:
        return self in READ_ONLY_FIELDS


_BY_KEY = {f.value.lower(): f for f in ConfigField}

# Fields copied into the manifest's metadata record
METADATA_FIELDS = (
    ConfigField.AUTHOR,
    ConfigField.PACKAGER,
    ConfigField.DESCRIPTION,
    ConfigField.HOMEPAGE,
    ConfigField.LICENSE,
    ConfigField.BUILT,
    ConfigField.VCS,
)

# Set only by the packaging step, never by a spec file
READ_ONLY_FIELDS = frozenset({ConfigField.BUILT, ConfigField.VCS})

DEFAULT_FORMAT = "%n-%v"


def format_archive_name(template: str, name: str, version: str) -> str:
    """Expand ``%n``, ``%v`` and ``%%`` in an archive name template."""
    out = []
    i = 0
    while i < len(template):
        ch = template[i]
        if ch == "%" and i + 1 < len(template):
            token = template[i + 1]
            if token == "n":
                out.append(name)
            elif token == "v":
                out.append(version)
            elif token == "%":
                out.append("%")
            else:
                out.append(template[i : i + 2])
            i += 2
            continue
        out.append(ch)
        i += 1
    return "".join(out)


def parse_flag(value: str | None, default: bool = True) -> bool:
    if value is None or not value.strip():
        return default
    return value.strip().lower() in ("yes", "true", "on", "1")
