"""Content fingerprints for files and the directory sentinel."""

from __future__ import annotations

import hashlib
from pathlib import Path

DIR_SENTINEL = "DIR"

CHUNK_SIZE = 1024 * 1024


def checksum(path: str | Path) -> str:
    """Return the hex MD5 of a file, or ``DIR`` for a directory.

    Directories are never read. Files are streamed in chunks so size does
    not matter. An unreadable path raises ``OSError``.
    """
    path = Path(path)
    if path.is_dir():
        return DIR_SENTINEL

    digest = hashlib.md5()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def checksum_bytes(data: bytes) -> str:
    return hashlib.md5(data).hexdigest()


def is_directory_checksum(value: str) -> bool:
    return value == DIR_SENTINEL
