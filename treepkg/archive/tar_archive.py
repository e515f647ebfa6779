"""Tar-backed package archives.

Packages are written as gzip-compressed tar files. Reading accepts any
compression ``tarfile`` understands, so a package fetched from a mirror
that recompressed it still opens.
"""

from __future__ import annotations

import gzip
import io
import logging
import shutil
import tarfile
import time
from pathlib import Path

from treepkg.core.paths import RelPath
from treepkg.errors import CorruptManifest

logger = logging.getLogger(__name__)


class TarPackageArchive:
    """Named-entry view over a ``tarfile.TarFile``.

    Use as a context manager so the underlying file is closed::

        with TarPackageArchive.open("widget-1.0.tpkg") as archive:
            manifest = read_manifest(archive)
    """

    def __init__(self, tar: tarfile.TarFile, source: str = "", mtime: float | None = None):
        self._tar = tar
        self.source = source
        self._mtime = int(mtime if mtime is not None else time.time())
        self._members: dict[str, tarfile.TarInfo] = {}
        self._streams: list = []  # Outer files closed after the tar, outermost last
        if tar.mode == "r":
            self._index()

    # -- construction -------------------------------------------------------

    @classmethod
    def open(cls, path: str | Path) -> "TarPackageArchive":
        """Open an existing package for reading.

        Raises:
            CorruptManifest: if the file is not a readable tar archive.
        """
        try:
            tar = tarfile.open(path, mode="r:*")
        except tarfile.TarError as e:
            raise CorruptManifest(f"{path} is not a package archive: {e}") from None
        return cls(tar, source=str(path))

    @classmethod
    def from_bytes(cls, data: bytes, source: str = "") -> "TarPackageArchive":
        """Open a package from an already-fetched byte stream."""
        try:
            tar = tarfile.open(fileobj=io.BytesIO(data), mode="r:*")
        except tarfile.TarError as e:
            raise CorruptManifest(f"{source or 'stream'} is not a package archive: {e}") from None
        return cls(tar, source=source)

    @classmethod
    def create(cls, path: str | Path, mtime: float | None = None) -> "TarPackageArchive":
        """Create a new gzip-compressed package for writing.

        The gzip header and every entry carry the same ``mtime``, so the same
        content written with the same ``mtime`` gives identical bytes.
        """
        stamp = int(mtime if mtime is not None else time.time())
        raw = open(path, "wb")
        gz = gzip.GzipFile(filename="", mode="wb", fileobj=raw, mtime=stamp)
        tar = tarfile.open(fileobj=gz, mode="w", format=tarfile.PAX_FORMAT)
        archive = cls(tar, source=str(path), mtime=stamp)
        archive._streams = [gz, raw]
        return archive

    def __enter__(self) -> "TarPackageArchive":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def close(self) -> None:
        self._tar.close()
        for stream in self._streams:
            stream.close()

    # -- reading ------------------------------------------------------------

    def _index(self) -> None:
        for member in self._tar.getmembers():
            if member.name.strip("./") == "":
                continue
            try:
                name = str(RelPath.parse(member.name))
            except ValueError as e:
                raise CorruptManifest(f"unsafe member in {self.source}: {e}") from None
            if not (member.isfile() or member.isdir()):
                logger.warning("Skipping unsupported member %s in %s", name, self.source)
                continue
            self._members[name] = member

    def names(self) -> list[str]:
        return sorted(self._members)

    def has(self, name: str) -> bool:
        return name in self._members

    def _member(self, name: str) -> tarfile.TarInfo:
        try:
            return self._members[name]
        except KeyError:
            raise KeyError(f"no entry {name} in {self.source}") from None

    def read(self, name: str) -> bytes:
        member = self._member(name)
        if member.isdir():
            raise IsADirectoryError(name)
        f = self._tar.extractfile(member)
        with f:
            return f.read()

    def copy_to(self, name: str, dest: Path) -> None:
        """Stream an entry's content into ``dest``, replacing it."""
        member = self._member(name)
        src = self._tar.extractfile(member)
        with src, open(dest, "wb") as out:
            shutil.copyfileobj(src, out)

    def is_directory(self, name: str) -> bool:
        return self._member(name).isdir()

    def mode(self, name: str) -> int:
        return self._member(name).mode & 0o7777

    # -- writing ------------------------------------------------------------

    def _info(self, name: str, mode: int) -> tarfile.TarInfo:
        info = tarfile.TarInfo(name)
        info.mode = mode
        info.mtime = self._mtime
        info.uid = info.gid = 0
        info.uname = info.gname = ""
        return info

    def add_bytes(self, name: str, data: bytes, mode: int = 0o644) -> None:
        info = self._info(name, mode)
        info.size = len(data)
        self._tar.addfile(info, io.BytesIO(data))
        self._members[name] = info

    def add_file(self, name: str, source: Path) -> None:
        """Add a file from disk, following symlinks and keeping mode bits."""
        st = Path(source).stat()
        info = self._info(name, st.st_mode & 0o7777)
        info.size = st.st_size
        with open(source, "rb") as f:
            self._tar.addfile(info, f)
        self._members[name] = info

    def add_directory(self, name: str) -> None:
        info = self._info(name, 0o755)
        info.type = tarfile.DIRTYPE
        self._tar.addfile(info)
        self._members[name] = info
