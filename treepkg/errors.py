"""Error taxonomy for treepkg.

OS-level failures (open, read, unlink, rmdir) are left as ``OSError``;
everything here is a condition the engine itself detects.
"""

from __future__ import annotations


class TreepkgError(Exception):
    """Base class for every error treepkg raises on purpose."""


class ConfigError(TreepkgError):
    """The settings file could not be understood."""


class ParseError(TreepkgError):
    """A package spec file contains a line that cannot be parsed."""

    def __init__(self, message: str, line_number: int = 0, line: str = ""):
        self.line_number = line_number
        self.line = line
        if line_number:
            message = f"line {line_number}: {message}: {line!r}"
        super().__init__(message)


class UnknownOperation(ParseError):
    """A rule line starts with something other than ``+``, ``-`` or ``~``."""


class MissingManifest(TreepkgError):
    """The target directory holds no installed state to reconcile against."""


class CorruptManifest(TreepkgError):
    """A checksums table, version record or archive member is malformed."""


class NameMismatch(TreepkgError):
    """The target directory already holds a different package."""

    def __init__(self, installed: str, incoming: str):
        self.installed = installed
        self.incoming = incoming
        super().__init__(
            f"target holds package '{installed}', refusing to install '{incoming}' over it"
        )


class ConflictError(TreepkgError):
    """Local modifications would be lost by the requested operation."""

    def __init__(self, paths):
        self.paths = sorted(paths)
        listing = ", ".join(str(p) for p in self.paths)
        super().__init__(
            f"{len(self.paths)} locally modified path(s) (use --force to override): {listing}"
        )


class NetworkError(TreepkgError):
    """A package could not be fetched from a remote location."""

    def __init__(self, location: str, detail: str):
        self.location = location
        self.detail = detail
        super().__init__(f"could not fetch {location}: {detail}")


class VcsUnavailable(TreepkgError):
    """No checkout implementation exists for the requested VCS kind."""


class CheckoutError(TreepkgError):
    """A VCS checkout or export failed."""
