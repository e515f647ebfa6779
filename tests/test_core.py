"""Tests for normalized paths and checksums."""

import tempfile
from pathlib import Path

import pytest

from treepkg.core.checksum import DIR_SENTINEL, checksum, checksum_bytes
from treepkg.core.paths import RelPath


# --- RelPath Tests ---


def test_relpath_normalizes_variants():
    assert RelPath.parse("a/b") == RelPath.parse("./a/b")
    assert RelPath.parse("a/b/") == RelPath.parse("a//b")
    assert str(RelPath.parse("src/a.txt")) == "./src/a.txt"


def test_relpath_keeps_backslashes_in_names():
    path = RelPath.parse("dir/we\\ird.txt")
    assert path.value == "dir/we\\ird.txt"
    assert path.depth == 2
    assert path.name == "we\\ird.txt"


def test_relpath_from_filesystem_path():
    root = Path("/srv/pkg")
    assert RelPath.from_fs(root / "a" / "we\\ird.txt", root).value == "a/we\\ird.txt"
    with pytest.raises(ValueError):
        RelPath.from_fs(root, root)


def test_relpath_rejects_unsafe_paths():
    for bad in ("/etc/passwd", "../x", "a/../../b", ".", "./", ""):
        with pytest.raises(ValueError):
            RelPath.parse(bad)


def test_relpath_parents_and_depth():
    path = RelPath.parse("a/b/c.txt")
    assert path.depth == 3
    assert path.name == "c.txt"
    assert path.parent == RelPath.parse("a/b")
    assert path.parents == [RelPath.parse("a/b"), RelPath.parse("a")]
    assert RelPath.parse("top").parent is None


def test_relpath_sorts_lexicographically():
    paths = [RelPath.parse(p) for p in ("b", "a/z", "a", "a b")]
    assert [p.value for p in sorted(paths)] == ["a", "a b", "a/z", "b"]


def test_relpath_is_relative_to():
    assert RelPath.parse("a/b").is_relative_to(RelPath.parse("a"))
    assert not RelPath.parse("ab/c").is_relative_to(RelPath.parse("a"))


# --- Checksum Tests ---


def test_checksum_known_digest():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "a.txt"
        path.write_text("hello")
        assert checksum(path) == "5d41402abc4b2a76b9719d911017c592"
        assert checksum_bytes(b"hello") == checksum(path)


def test_checksum_directory_sentinel():
    with tempfile.TemporaryDirectory() as tmpdir:
        assert checksum(tmpdir) == DIR_SENTINEL


def test_checksum_empty_and_large_files():
    with tempfile.TemporaryDirectory() as tmpdir:
        empty = Path(tmpdir) / "empty"
        empty.write_bytes(b"")
        assert checksum(empty) == "d41d8cd98f00b204e9800998ecf8427e"

        data = b"x" * (3 * 1024 * 1024 + 17)
        big = Path(tmpdir) / "big"
        big.write_bytes(data)
        assert checksum(big) == checksum_bytes(data)


def test_checksum_missing_file_raises():
    with tempfile.TemporaryDirectory() as tmpdir:
        with pytest.raises(OSError):
            checksum(Path(tmpdir) / "nope")
