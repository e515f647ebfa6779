"""VCS checkouts — materialize a module at a tag before packaging.

Git goes through GitPython; Subversion, CVS and Mercurial shell out to
their command-line clients. ``local`` skips version control entirely and
packages a directory as it is.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from pathlib import Path
from typing import Protocol

from git import GitCommandError, Repo

from treepkg.errors import CheckoutError, VcsUnavailable

logger = logging.getLogger(__name__)


class Checkout(Protocol):
    kind: str

    def checkout(self, module: str, ref: str, dest: Path) -> Path:
        """Export ``module`` at ``ref`` into ``dest``; return the tree root."""
        ...


def _module_url(repository: str, module: str) -> str:
    if "://" in module or module.startswith("git@") or Path(module).exists() or not repository:
        return module
    return f"{repository.rstrip('/')}/{module}"


def module_basename(module: str) -> str:
    """Package name implied by a module path or URL."""
    name = module.rstrip("/").rsplit("/", 1)[-1].rsplit(":", 1)[-1]
    if name.endswith(".git"):
        name = name[: -len(".git")]
    return name


class GitCheckout:
    """Shallow clone of a tag or branch via GitPython."""

    kind = "git"

    def __init__(self, repository: str = ""):
        self.repository = repository

    def checkout(self, module: str, ref: str, dest: Path) -> Path:
        url = _module_url(self.repository, module)
        logger.debug("Cloning %s at %s into %s", url, ref, dest)
        try:
            Repo.clone_from(url, dest, branch=ref, depth=1)
        except GitCommandError as e:
            raise CheckoutError(f"git clone of {url} at {ref} failed: {e.stderr.strip()}") from None
        return dest


class CommandCheckout:
    """Checkout through a VCS command-line client."""

    def __init__(self, kind: str, binary: str, repository: str = ""):
        self.kind = kind
        self.binary = binary
        self.repository = repository

    def command(self, module: str, ref: str, dest: Path) -> list[str]:
        if self.kind == "cvs":
            return [self.binary, "-Q", "-d", self.repository, "export",
                    "-r", ref, "-d", dest.name, module]
        url = _module_url(self.repository, module)
        if self.kind == "svn":
            branch = "trunk" if ref in ("trunk", "HEAD") else f"tags/{ref}"
            return [self.binary, "export", "-q", f"{url.rstrip('/')}/{branch}", str(dest)]
        if self.kind == "hg":
            return [self.binary, "clone", "-q", "-u", ref, url, str(dest)]
        if self.kind == "git":
            return [self.binary, "clone", "-q", "--depth", "1", "--branch", ref, url, str(dest)]
        raise VcsUnavailable(f"no command-line checkout for {self.kind}")

    def checkout(self, module: str, ref: str, dest: Path) -> Path:
        cmd = self.command(module, ref, dest)
        logger.debug("Running %s", " ".join(cmd))
        proc = subprocess.run(cmd, cwd=dest.parent, capture_output=True, text=True)
        if proc.returncode != 0:
            raise CheckoutError(
                f"{self.kind} checkout of {module} at {ref} failed: "
                f"{proc.stderr.strip() or f'exit status {proc.returncode}'}"
            )
        return dest


class LocalCheckout:
    """Use a local directory in place; the ref is only recorded as the version."""

    kind = "local"

    def checkout(self, module: str, ref: str, dest: Path) -> Path:
        root = Path(module)
        if not root.is_dir():
            raise CheckoutError(f"not a directory: {module}")
        return root


_BINARIES = {"svn": "svn", "cvs": "cvs", "hg": "hg", "git": "git"}


def get_checkout(kind: str, repository: str = "") -> Checkout:
    """Pick a checkout implementation for ``kind``.

    Raises:
        VcsUnavailable: for an unknown kind or a missing client binary.
    """
    if kind == "local":
        return LocalCheckout()
    if kind not in _BINARIES:
        raise VcsUnavailable(f"unknown VCS kind: {kind}")

    binary = shutil.which(_BINARIES[kind])
    if binary is None:
        raise VcsUnavailable(f"{kind} is not installed")
    if kind == "cvs" and not repository:
        raise VcsUnavailable("cvs needs a repository root (set TREEPKG_REPOSITORY)")
    if kind == "git":
        return GitCheckout(repository)
    return CommandCheckout(kind, binary, repository)
