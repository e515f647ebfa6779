"""Tests for settings loading and per-operation options."""

import tempfile
from pathlib import Path

import pytest
import yaml

from treepkg.config import Options, Settings, load_settings
from treepkg.errors import ConfigError


def _write_yaml(tmpdir: str, data) -> Path:
    path = Path(tmpdir) / "config.yaml"
    with open(path, "w") as f:
        yaml.dump(data, f)
    return path


def test_defaults_without_file_or_env():
    with tempfile.TemporaryDirectory() as tmpdir:
        empty = Path(tmpdir) / "empty.yaml"
        empty.write_text("")
        settings = load_settings(environ={"TREEPKG_CONFIG": str(empty)})
    assert settings.vcs == "git"
    assert settings.diff_tool == "auto"
    assert settings.timeout == 30.0


def test_load_from_yaml():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = _write_yaml(
            tmpdir,
            {
                "vcs": "svn",
                "repository": "https://svn.example.org/repos",
                "packager": "Build Bot",
                "diff_tool": "external",
                "timeout": "12",
                "colour": "blue",
            },
        )
        settings = load_settings(path, environ={})

    assert settings.vcs == "svn"
    assert settings.repository == "https://svn.example.org/repos"
    assert settings.packager == "Build Bot"
    assert settings.diff_tool == "external"
    assert settings.timeout == 12.0
    assert settings.source == str(path)


def test_environment_overrides_file():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = _write_yaml(tmpdir, {"vcs": "svn", "packager": "file"})
        settings = load_settings(
            path, environ={"TREEPKG_VCS": "hg", "TREEPKG_PACKAGER": "env"}
        )

    assert settings.vcs == "hg"
    assert settings.packager == "env"


def test_config_env_variable_points_at_file():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = _write_yaml(tmpdir, {"repository": "/srv/cvs"})
        settings = load_settings(environ={"TREEPKG_CONFIG": str(path)})
    assert settings.repository == "/srv/cvs"


def test_invalid_settings_raise():
    with tempfile.TemporaryDirectory() as tmpdir:
        with pytest.raises(ConfigError):
            load_settings(_write_yaml(tmpdir, ["not", "a", "mapping"]), environ={})
        with pytest.raises(ConfigError):
            load_settings(_write_yaml(tmpdir, {"vcs": "darcs"}), environ={})
        with pytest.raises(ConfigError):
            load_settings(_write_yaml(tmpdir, {"timeout": "soon"}), environ={})
        with pytest.raises(ConfigError):
            load_settings(Path(tmpdir) / "missing.yaml", environ={})


def test_options_override_settings_vcs():
    settings = Settings(vcs="git")
    assert settings.with_options(Options()).vcs == "git"
    assert settings.with_options(Options(vcs="local")).vcs == "local"
