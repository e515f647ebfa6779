"""Configuration — per-invocation options and user settings.

``Options`` carries the command-line switches and is passed explicitly
to every operation. ``Settings`` holds longer-lived defaults read from a
YAML file and the environment::

    # ~/.config/treepkg/config.yaml
    vcs: git
    repository: https://git.example.org
    packager: Jo Example <jo@example.org>
    diff_tool: auto        # auto | builtin | external
    timeout: 30

``TREEPKG_VCS``, ``TREEPKG_REPOSITORY`` and ``TREEPKG_PACKAGER`` override
the file.
"""

from __future__ import annotations

import getpass
import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path

import yaml

from treepkg.errors import ConfigError

logger = logging.getLogger(__name__)

CONFIG_ENV = "TREEPKG_CONFIG"
DEFAULT_CONFIG_PATH = Path("~/.config/treepkg/config.yaml")

VCS_KINDS = ("git", "svn", "cvs", "hg", "local")
DIFF_TOOLS = ("auto", "builtin", "external")

_ENV_OVERRIDES = {
    "TREEPKG_VCS": "vcs",
    "TREEPKG_REPOSITORY": "repository",
    "TREEPKG_PACKAGER": "packager",
}


@dataclass(frozen=True)
class Options:
    """Switches that change how a single operation behaves."""

    force: bool = False  # Overwrite/remove despite local modifications
    reverse: bool = False  # Diff local → package instead of package → local
    vcs: str | None = None  # VCS kind for packaging; None = settings default


@dataclass
class Settings:
    """User-level defaults, mostly consumed by the packaging path."""

    vcs: str = "git"
    repository: str = ""
    packager: str = field(default_factory=lambda: _default_packager())
    diff_tool: str = "auto"
    timeout: float = 30.0
    source: str = ""  # Config file these settings came from, if any

    def with_options(self, options: Options) -> "Settings":
        """Apply an explicit ``--vcs`` choice on top of the defaults."""
        if options.vcs:
            return replace(self, vcs=options.vcs)
        return self


def load_settings(path: str | Path | None = None, environ: dict | None = None) -> Settings:
    """Load settings from YAML and the environment.

    Args:
        path: Explicit config file. When omitted, ``$TREEPKG_CONFIG`` or
            ``~/.config/treepkg/config.yaml`` is used if it exists.
        environ: Environment mapping (defaults to ``os.environ``).

    Raises:
        ConfigError: if the file is not a YAML mapping or a value is invalid.
    """
    env = os.environ if environ is None else environ
    settings = Settings()

    config_path = _resolve_config_path(path, env)
    if config_path is not None:
        settings = _apply(settings, _read_yaml(config_path), str(config_path))
        settings.source = str(config_path)

    overrides = {key: env[var] for var, key in _ENV_OVERRIDES.items() if env.get(var)}
    if overrides:
        settings = _apply(settings, overrides, "environment")

    return settings


def _resolve_config_path(path: str | Path | None, env) -> Path | None:
    if path is not None:
        explicit = Path(path).expanduser()
        if not explicit.is_file():
            raise ConfigError(f"config file not found: {explicit}")
        return explicit
    if env.get(CONFIG_ENV):
        from_env = Path(env[CONFIG_ENV]).expanduser()
        if not from_env.is_file():
            raise ConfigError(f"{CONFIG_ENV} points at a missing file: {from_env}")
        return from_env
    default = DEFAULT_CONFIG_PATH.expanduser()
    return default if default.is_file() else None


def _read_yaml(path: Path) -> dict:
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"{path}: invalid YAML: {e}") from None
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: expected a mapping at the top level")
    return data


def _apply(settings: Settings, data: dict, origin: str) -> Settings:
    known = {"vcs", "repository", "packager", "diff_tool", "timeout"}
    changes = {}
    for key, value in data.items():
        if key not in known:
            logger.debug("Ignoring unknown setting %r from %s", key, origin)
            continue
        changes[key] = value

    if "vcs" in changes and changes["vcs"] not in VCS_KINDS:
        raise ConfigError(f"{origin}: unknown vcs {changes['vcs']!r}")
    if "diff_tool" in changes and changes["diff_tool"] not in DIFF_TOOLS:
        raise ConfigError(f"{origin}: unknown diff_tool {changes['diff_tool']!r}")
    if "timeout" in changes:
        try:
            changes["timeout"] = float(changes["timeout"])
        except (TypeError, ValueError):
            raise ConfigError(f"{origin}: timeout must be a number") from None
    for key in ("repository", "packager"):
        if key in changes:
            changes[key] = str(changes[key])

    return replace(settings, **changes)


def _default_packager() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return ""
