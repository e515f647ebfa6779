"""Resolve a package location to an open archive.

A location is a local path or a URL::

    widget-1.0.tpkg
    https://pkgs.example.org/widget-1.0.tpkg
    ftp://mirror.example.org/pub/widget-1.0.tpkg
    sftp://deploy@build.example.org:2222/srv/pkgs/widget-1.0.tpkg

Remote packages are fetched fully into memory and then opened exactly like
a local file.
"""

from __future__ import annotations

import logging
import re
import shutil
import subprocess
import tempfile
import urllib.error
import urllib.request
from pathlib import Path

import httpx

from treepkg.archive.tar_archive import TarPackageArchive
from treepkg.config import Settings
from treepkg.errors import NetworkError

logger = logging.getLogger(__name__)

_SSH_URL_RE = re.compile(
    r"^s(?:sh|ftp)://(?:(?P<user>[^@/]+)@)?(?P<host>[^:/]+)(?::(?P<port>\d+))?(?P<path>/.*)$"
)


def is_remote(location: str) -> bool:
    return location.startswith(("http://", "https://", "ftp://", "ssh://", "sftp://"))


def open_package(location: str, settings: Settings | None = None) -> TarPackageArchive:
    """Open the package at ``location`` for reading.

    Raises:
        FileNotFoundError: for a local path that does not exist.
        NetworkError: if a remote fetch fails.
        CorruptManifest: if the bytes are not a package archive.
    """
    settings = settings or Settings()
    if not is_remote(location):
        path = Path(location)
        if not path.is_file():
            raise FileNotFoundError(f"package not found: {location}")
        return TarPackageArchive.open(path)

    logger.debug("Fetching %s", location)
    data = fetch_bytes(location, timeout=settings.timeout)
    return TarPackageArchive.from_bytes(data, source=location)


def fetch_bytes(location: str, timeout: float = 30.0) -> bytes:
    """Download a remote package."""
    if location.startswith(("http://", "https://")):
        return _fetch_http(location, timeout)
    if location.startswith("ftp://"):
        return _fetch_ftp(location, timeout)
    if location.startswith(("ssh://", "sftp://")):
        return _fetch_scp(location, timeout)
    raise NetworkError(location, "unsupported URL scheme")


def _fetch_http(url: str, timeout: float) -> bytes:
    try:
        with httpx.Client(follow_redirects=True, timeout=timeout) as client:
            resp = client.get(url)
            resp.raise_for_status()
            return resp.content
    except httpx.HTTPStatusError as e:
        raise NetworkError(
            url, f"HTTP {e.response.status_code} {e.response.reason_phrase}"
        ) from None
    except httpx.HTTPError as e:
        raise NetworkError(url, str(e) or type(e).__name__) from None


def _fetch_ftp(url: str, timeout: float) -> bytes:
    try:
        with urllib.request.urlopen(url, timeout=timeout) as resp:
            return resp.read()
    except urllib.error.URLError as e:
        raise NetworkError(url, str(e.reason)) from None
    except OSError as e:
        raise NetworkError(url, str(e)) from None


def parse_ssh_url(url: str) -> tuple[str, str, str]:
    """Split an ``ssh://`` or ``sftp://`` URL into (remote, port, path) for scp.

    ``remote`` is ``user@host`` (or just ``host``); ``port`` may be empty.
    """
    match = _SSH_URL_RE.match(url)
    if not match:
        raise NetworkError(url, "malformed ssh/sftp URL")
    remote = match.group("host")
    if match.group("user"):
        remote = f"{match.group('user')}@{remote}"
    return remote, match.group("port") or "", match.group("path")


def _fetch_scp(url: str, timeout: float) -> bytes:
    remote, port, path = parse_ssh_url(url)
    scp = shutil.which("scp")
    if scp is None:
        raise NetworkError(url, "scp is not installed")

    with tempfile.TemporaryDirectory(prefix="treepkg_") as tmpdir:
        dest = Path(tmpdir) / "package"
        cmd = [scp, "-q", "-B", "-o", f"ConnectTimeout={int(timeout)}"]
        if port:
            cmd += ["-P", port]
        cmd += [f"{remote}:{path}", str(dest)]
        proc = subprocess.run(cmd, capture_output=True, text=True)
        if proc.returncode != 0:
            raise NetworkError(url, proc.stderr.strip() or f"scp exited with {proc.returncode}")
        return dest.read_bytes()
