"""
Tests for file operations: add-only copy, atomic JSON writes and zip extraction.
"""

import json
import os

import pytest

from hqlauncher.download.files import (
    ZipArchiveExtractor,
    atomic_write_json,
    copy_dir_add_only,
    is_zip_archive,
    remove_file_quietly,
    safe_extract_path,
)
from hqlauncher.exceptions import ExtractionError

pytestmark = [pytest.mark.unit]


class TestCopyDirAddOnly:
    def test_copies_absent_files_recursively(self, tmp_path):
        src = tmp_path / "src"
        (src / "nested").mkdir(parents=True)
        (src / "a.cfg").write_text("a")
        (src / "nested" / "b.cfg").write_text("b")
        dst = tmp_path / "dst"

        copied = copy_dir_add_only(src, dst)

        assert copied == 2
        assert (dst / "a.cfg").read_text() == "a"
        assert (dst / "nested" / "b.cfg").read_text() == "b"

    def test_never_overwrites(self, tmp_path):
        src = tmp_path / "src"
        dst = tmp_path / "dst"
        (src / "nested").mkdir(parents=True)
        (dst / "nested").mkdir(parents=True)
        (src / "a.cfg").write_text("new")
        (dst / "a.cfg").write_text("user edit")
        (src / "nested" / "b.cfg").write_text("b")

        copied = copy_dir_add_only(src, dst)

        assert copied == 1
        assert (dst / "a.cfg").read_text() == "user edit"
        assert (dst / "nested" / "b.cfg").read_text() == "b"

    def test_same_directory_is_noop(self, tmp_path):
        src = tmp_path / "src"
        src.mkdir()
        (src / "a.cfg").write_text("a")
        alias = tmp_path / "alias"
        os.symlink(src, alias, target_is_directory=True)

        assert copy_dir_add_only(src, alias) == 0
        assert copy_dir_add_only(src, src) == 0


class TestSmallHelpers:
    def test_atomic_write_json_creates_parent(self, tmp_path):
        target = tmp_path / "deep" / "state.json"
        atomic_write_json(target, {"manifest_version": 3})
        assert json.loads(target.read_text()) == {"manifest_version": 3}
        assert [p.name for p in target.parent.iterdir()] == ["state.json"]

    def test_is_zip_archive(self, tmp_path, zip_factory):
        archive = zip_factory("ok.zip", {"a.txt": b"a"})
        html = tmp_path / "page.zip"
        html.write_bytes(b"<html>rate limited</html>")

        assert is_zip_archive(archive) is True
        assert is_zip_archive(html) is False
        assert is_zip_archive(tmp_path / "missing.zip") is False

    def test_remove_file_quietly_missing(self, tmp_path):
        remove_file_quietly(tmp_path / "nothing")

    def test_safe_extract_path_rejects_escape(self, tmp_path):
        with pytest.raises(ValueError):
            safe_extract_path(tmp_path, "../outside.txt")
        assert safe_extract_path(tmp_path, "in/side.txt") == (
            tmp_path.resolve() / "in" / "side.txt"
        )


class TestZipArchiveExtractor:
    def test_extract_package_flattens_top_level(self, tmp_path, zip_factory):
        archive = zip_factory(
            "loader.zip",
            {
                "BepInExPack/BepInEx/core/BepInEx.dll": b"dll",
                "BepInExPack/winhttp.dll": b"proxy",
                "manifest.json": b"{}",
                "README.md": b"readme",
            },
        )
        dest = tmp_path / "game"
        progress = []

        written = ZipArchiveExtractor().extract_package(
            archive, dest, lambda d, t, n: progress.append((d, t, n))
        )

        assert written == 2
        assert (dest / "BepInEx" / "core" / "BepInEx.dll").read_bytes() == b"dll"
        assert (dest / "winhttp.dll").read_bytes() == b"proxy"
        assert not (dest / "manifest.json").exists()
        assert not (dest / "BepInExPack").exists()
        assert progress[-1][:2] == (2, 2)

    def test_extract_package_overwrites(self, tmp_path, zip_factory):
        archive = zip_factory("loader.zip", {"Pack/doorstop_config.ini": b"new"})
        dest = tmp_path / "game"
        dest.mkdir()
        (dest / "doorstop_config.ini").write_bytes(b"old")

        ZipArchiveExtractor().extract_package(archive, dest)

        assert (dest / "doorstop_config.ini").read_bytes() == b"new"

    def test_extract_add_only_keeps_existing(self, tmp_path, zip_factory):
        archive = zip_factory(
            "config.zip", {"a.cfg": b"default", "sub/b.cfg": b"default-b"}
        )
        dest = tmp_path / "shared"
        dest.mkdir()
        (dest / "a.cfg").write_bytes(b"user")
        progress = []

        written = ZipArchiveExtractor().extract_add_only(
            archive, dest, lambda d, t, n: progress.append((d, t))
        )

        assert written == 1
        assert (dest / "a.cfg").read_bytes() == b"user"
        assert (dest / "sub" / "b.cfg").read_bytes() == b"default-b"
        assert progress == [(1, 2), (2, 2)]

    def test_unsafe_members_are_skipped(self, tmp_path, zip_factory):
        archive = zip_factory("evil.zip", {"../evil.txt": b"x", "good.txt": b"ok"})
        dest = tmp_path / "out"

        written = ZipArchiveExtractor().extract_add_only(archive, dest)

        assert written == 1
        assert not (tmp_path / "evil.txt").exists()
        assert (dest / "good.txt").exists()

    def test_corrupt_archive_raises(self, tmp_path):
        bad = tmp_path / "bad.zip"
        bad.write_bytes(b"PK\x03\x04 truncated")

        with pytest.raises(ExtractionError) as exc_info:
            ZipArchiveExtractor().extract_add_only(bad, tmp_path / "out")

        assert exc_info.value.archive_path == str(bad)
