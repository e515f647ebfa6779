"""Tests for the diff engine and status reporter."""

import shutil
import tempfile
from pathlib import Path

import pytest

from treepkg.archive.tar_archive import TarPackageArchive
from treepkg.config import Options, Settings
from treepkg.distribution.packager import build_package
from treepkg.errors import ConflictError, MissingManifest
from treepkg.sync.diff import diff
from treepkg.sync.install import install
from treepkg.sync.remove import remove
from treepkg.sync.status import Classification, status
from treepkg.utils.differ import DifflibDiffer, ExternalDiffer, get_differ, is_binary

FILES = {
    "src/a.txt": "hello\nthere\n",
    "src/sub/b.txt": "world\n",
    "data/blob.bin": "\x00\x01\x02binary",
}


def _setup(tmp: Path) -> tuple[Path, Path]:
    """Package FILES, install them, return (archive path, target)."""
    source = tmp / "source"
    source.mkdir()
    (source / "treepkg.spec").write_text("+.\n")
    for name, content in FILES.items():
        path = source / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
    archive_path = build_package(source, "widget", "1.0", Settings(), output_base=tmp).archive_path

    target = tmp / "target"
    with TarPackageArchive.open(archive_path) as archive:
        install(archive, target)
    return archive_path, target


def _diff(archive_path: Path, target: Path, files=None, reverse=False) -> str:
    with TarPackageArchive.open(archive_path) as archive:
        return "".join(diff(archive, target, files, Options(reverse=reverse)))


# --- Diff Tests ---


def test_diff_clean_after_install():
    with tempfile.TemporaryDirectory() as tmpdir:
        archive_path, target = _setup(Path(tmpdir))
        assert _diff(archive_path, target) == ""


def test_diff_one_modified_file():
    with tempfile.TemporaryDirectory() as tmpdir:
        archive_path, target = _setup(Path(tmpdir))
        (target / "src" / "a.txt").write_text("hello\nThere\n")

        output = _diff(archive_path, target)

        assert output.startswith("--- a/src/a.txt\n+++ b/src/a.txt\n")
        assert "-there\n" in output
        assert "+There\n" in output
        assert "sub/b.txt" not in output


def test_diff_reverse_swaps_sides():
    with tempfile.TemporaryDirectory() as tmpdir:
        archive_path, target = _setup(Path(tmpdir))
        (target / "src" / "a.txt").write_text("hello\nThere\n")

        output = _diff(archive_path, target, reverse=True)

        assert "-There\n" in output
        assert "+there\n" in output


def test_diff_binary_file_not_diffed():
    with tempfile.TemporaryDirectory() as tmpdir:
        archive_path, target = _setup(Path(tmpdir))
        (target / "data" / "blob.bin").write_bytes(b"\x00changed")

        output = _diff(archive_path, target)

        assert output == "Binary files a/data/blob.bin and b/data/blob.bin differ\n"


def test_diff_missing_and_unknown_paths():
    with tempfile.TemporaryDirectory() as tmpdir:
        archive_path, target = _setup(Path(tmpdir))
        (target / "src" / "sub" / "b.txt").unlink()

        output = _diff(archive_path, target, files=["src/sub/b.txt", "nope.txt", ".treepkg.sums"])

        assert output == "./src/sub/b.txt: not found\n./nope.txt: not in package\n"


def test_difflib_marks_missing_final_newline():
    out = DifflibDiffer().unified_diff("a\nb", "a\nc", "a/x", "b/x")
    assert "-b\n\\ No newline at end of file\n" in out
    assert "+c\n\\ No newline at end of file\n" in out


@pytest.mark.skipif(shutil.which("diff") is None, reason="diff not installed")
def test_external_differ_matches_changes():
    differ = get_differ("external")
    assert isinstance(differ, ExternalDiffer)
    out = differ.unified_diff("one\ntwo\n", "one\n2\n", "a/x", "b/x")
    assert out.startswith("--- a/x\n+++ b/x\n")
    assert "-two\n+2\n" in out
    assert differ.unified_diff("same\n", "same\n", "a/x", "b/x") == ""


def test_is_binary():
    assert is_binary(b"ab\x00cd")
    assert not is_binary("héllo\n".encode("utf-8"))
    assert not is_binary(b"")


# --- Status Tests ---


def _classes(target: Path) -> dict[str, Classification]:
    return {e.path.value: e.classification for e in status(target)}


def test_status_fresh_install_all_up_to_date():
    with tempfile.TemporaryDirectory() as tmpdir:
        _, target = _setup(Path(tmpdir))
        classes = _classes(target)

        assert set(classes.values()) == {Classification.UP_TO_DATE}
        assert "src/sub" in classes
        assert ".treepkg.sums" not in classes


def test_status_classifies_each_state():
    with tempfile.TemporaryDirectory() as tmpdir:
        _, target = _setup(Path(tmpdir))
        (target / "src" / "a.txt").write_text("hello\nthere!\n")
        (target / "src" / "sub" / "b.txt").unlink()
        (target / "notes.md").write_text("mine")

        classes = _classes(target)

        assert classes["src/a.txt"] == Classification.MODIFIED
        assert classes["src/sub/b.txt"] == Classification.MISSING
        assert classes["notes.md"] == Classification.UNKNOWN
        assert classes["data/blob.bin"] == Classification.UP_TO_DATE


def test_status_sorted_and_idempotent():
    with tempfile.TemporaryDirectory() as tmpdir:
        _, target = _setup(Path(tmpdir))
        (target / "zzz").write_text("z")

        first = status(target)
        second = status(target)

        assert first == second
        assert [e.path for e in first] == sorted(e.path for e in first)


def test_status_lists_unrecorded_add_root_as_unknown():
    with tempfile.TemporaryDirectory() as tmpdir:
        tmp = Path(tmpdir)
        source = tmp / "source"
        (source / "src").mkdir(parents=True)
        (source / "treepkg.spec").write_text("+src\n")
        (source / "src" / "a.txt").write_text("a")
        archive_path = build_package(source, "widget", "1.0", Settings(), output_base=tmp).archive_path
        target = tmp / "target"
        with TarPackageArchive.open(archive_path) as archive:
            install(archive, target)

        assert [str(e) for e in status(target)] == ["? ./src", "  ./src/a.txt"]


def test_status_requires_installed_state():
    with tempfile.TemporaryDirectory() as tmpdir:
        with pytest.raises(MissingManifest):
            status(tmpdir)


# --- One modified byte, end to end ---


def test_single_byte_change_seen_everywhere():
    with tempfile.TemporaryDirectory() as tmpdir:
        archive_path, target = _setup(Path(tmpdir))
        (target / "src" / "sub" / "b.txt").write_text("World\n")

        classes = _classes(target)
        assert [p for p, c in classes.items() if c == Classification.MODIFIED] == ["src/sub/b.txt"]

        output = _diff(archive_path, target)
        assert output.count("--- a/") == 1
        assert "--- a/src/sub/b.txt" in output

        with pytest.raises(ConflictError) as exc_info:
            remove(target)
        assert [p.value for p in exc_info.value.paths] == ["src/sub/b.txt"]

        result = remove(target, Options(force=True))
        assert not (target / "src" / "sub" / "b.txt").exists()
        assert result.complete
