"""Packager — build a ``.tpkg`` archive from a module checkout.

Flow: check out the module at a tag into a scratch directory, read
``treepkg.spec`` from the checkout root, collect the selected files,
checksum them into a manifest, and write the archive. The scratch
checkout is removed however the build ends.
"""

from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from treepkg.archive.base import PackageArchive
from treepkg.archive.tar_archive import TarPackageArchive
from treepkg.config import Options, Settings
from treepkg.core.collector import PACKAGE_SUFFIX, collect
from treepkg.core.manifest import Manifest, build_manifest, write_manifest
from treepkg.errors import ParseError
from treepkg.spec.fields import DEFAULT_FORMAT, ConfigField, format_archive_name, parse_flag
from treepkg.spec.parser import SPEC_FILENAME, load_spec
from treepkg.utils.vcs import get_checkout, module_basename

logger = logging.getLogger(__name__)


@dataclass
class PackageResult:
    archive_path: Path
    manifest: Manifest

    def summary(self) -> str:
        return f"{self.manifest.summary()} -> {self.archive_path}"


def package(
    module: str,
    tag: str,
    settings: Settings | None = None,
    options: Options | None = None,
    output_base: str | Path = ".",
) -> PackageResult:
    """Check out ``module`` at ``tag`` and package it.

    Args:
        module: Module name, repository URL, or (for ``local``) a directory.
        tag: Tag or branch to check out; also the package version.
        settings: VCS kind, repository root and packager identity.
        options: ``vcs`` overrides the settings' VCS kind.
        output_base: Directory the spec's ``Destination`` is relative to.

    Raises:
        VcsUnavailable, CheckoutError: if the checkout cannot be made.
        FileNotFoundError: if the checkout has no spec file.
        ParseError: if the spec file is invalid.
    """
    settings = (settings or Settings()).with_options(options or Options())
    checkout = get_checkout(settings.vcs, settings.repository)

    with tempfile.TemporaryDirectory(prefix="treepkg_") as scratch:
        root = checkout.checkout(module, tag, Path(scratch) / "checkout")
        if checkout.kind == "local":
            default_name = Path(module).resolve().name
        else:
            default_name = module_basename(module)
        return build_package(
            root, default_name, tag, settings, vcs=checkout.kind, output_base=output_base
        )


def build_package(
    source_dir: str | Path,
    default_name: str,
    version: str,
    settings: Settings | None = None,
    vcs: str | None = None,
    output_base: str | Path = ".",
    built: datetime | None = None,
) -> PackageResult:
    """Package an already materialized source tree.

    ``built`` (default: now) is both the recorded build time and the
    timestamp of every archive entry.
    """
    settings = settings or Settings()
    built = built or datetime.now(timezone.utc)
    source = Path(source_dir)
    spec_path = source / SPEC_FILENAME
    if not spec_path.is_file():
        raise FileNotFoundError(f"no {SPEC_FILENAME} in {source}")

    spec = load_spec(spec_path)
    if not spec.rules.roots:
        raise ParseError(f"{spec_path} selects nothing (no '+' rules)")

    name = spec.get(ConfigField.NAME) or default_name
    fields = dict(spec.fields)
    if not fields.get(ConfigField.PACKAGER) and settings.packager:
        fields[ConfigField.PACKAGER] = settings.packager

    file_set = collect(spec.rules, source, prune_vcs=parse_flag(spec.get(ConfigField.PRUNE)))
    try:
        manifest = build_manifest(file_set, source, name, version, fields, vcs=vcs, built=built)
    except ValueError as e:
        raise ParseError(str(e)) from None

    dest_dir = Path(output_base) / (spec.get(ConfigField.DESTINATION) or ".")
    dest_dir.mkdir(parents=True, exist_ok=True)
    template = spec.get(ConfigField.FORMAT) or DEFAULT_FORMAT
    archive_path = dest_dir / (format_archive_name(template, name, version) + PACKAGE_SUFFIX)

    _write_atomically(manifest, source, archive_path, built.timestamp())
    result = PackageResult(archive_path=archive_path, manifest=manifest)
    logger.info(result.summary())
    return result


def write_package(manifest: Manifest, source_dir: Path, archive: PackageArchive) -> None:
    """Store every manifest entry, then the reserved manifest entries."""
    for entry in manifest.entries:
        if entry.is_directory:
            archive.add_directory(str(entry.path))
        else:
            archive.add_file(str(entry.path), entry.path.on(source_dir))
    write_manifest(manifest, archive)


def _write_atomically(manifest: Manifest, source: Path, archive_path: Path, mtime: float) -> None:
    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{archive_path.name}.", suffix=".partial", dir=archive_path.parent
    )
    os.close(fd)
    try:
        with TarPackageArchive.create(tmp_name, mtime=mtime) as archive:
            write_package(manifest, source, archive)
        os.chmod(tmp_name, 0o644)
        os.replace(tmp_name, archive_path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
