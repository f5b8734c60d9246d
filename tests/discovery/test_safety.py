"""Tests for directory safety checks and skip-list matching."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from atip_discover.discovery.safety import (
    filter_safe_directories,
    is_safe_path,
    matches_skip_list,
)

from tests.discovery.helpers import posix_only


# ---------------------------------------------------------------------------
# is_safe_path()
# ---------------------------------------------------------------------------


class TestIsSafePath:
    """Directory gating before enumeration."""

    @pytest.mark.parametrize("path", ["", "."])
    def test_current_directory_literal(self, path: str) -> None:
        assert is_safe_path(path) == (False, "current directory not allowed")

    def test_current_directory_resolved(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)
        ok, reason = is_safe_path(str(tmp_path))
        assert not ok
        assert reason == "current directory not allowed"

    def test_missing_directory(self, tmp_path: Path) -> None:
        ok, reason = is_safe_path(tmp_path / "missing")
        assert not ok
        assert reason is not None and reason.startswith("failed to stat path")

    def test_regular_file(self, tmp_path: Path) -> None:
        target = tmp_path / "file"
        target.write_text("x")
        assert is_safe_path(target) == (False, "not a directory")

    def test_private_directory_is_safe(self, bin_dir: Path) -> None:
        bin_dir.chmod(0o755)
        assert is_safe_path(bin_dir) == (True, None)

    @posix_only
    def test_world_writable_directory(self, tmp_path: Path) -> None:
        shared = tmp_path / "shared"
        shared.mkdir()
        shared.chmod(0o777)
        assert is_safe_path(shared) == (False, "world-writable directory")

    @posix_only
    def test_directory_owned_by_other_user(
        self, bin_dir: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        bin_dir.chmod(0o755)
        real_uid = os.stat(bin_dir).st_uid
        monkeypatch.setattr(os, "getuid", lambda: real_uid + 12345)
        if real_uid == 0:
            # Root-owned directories are always acceptable.
            assert is_safe_path(bin_dir) == (True, None)
        else:
            assert is_safe_path(bin_dir) == (False, "directory owned by other user")


class TestFilterSafeDirectories:
    def test_unsafe_entries_dropped(self, bin_dir: Path, tmp_path: Path) -> None:
        bin_dir.chmod(0o755)
        kept = filter_safe_directories([".", str(tmp_path / "missing"), str(bin_dir)])
        assert kept == [str(bin_dir)]


# ---------------------------------------------------------------------------
# matches_skip_list()
# ---------------------------------------------------------------------------


class TestMatchesSkipList:
    """Skip patterns: exact names and shell globs."""

    def test_exact_match(self) -> None:
        assert matches_skip_list("curl", ["curl"])

    def test_glob_match(self) -> None:
        assert matches_skip_list("curl-dev", ["curl*"])

    def test_no_match(self) -> None:
        assert not matches_skip_list("wget", ["curl"])

    def test_empty_list(self) -> None:
        assert not matches_skip_list("anything", [])

    def test_glob_is_case_sensitive(self) -> None:
        assert not matches_skip_list("Curl", ["curl*"])

    def test_character_class(self) -> None:
        assert matches_skip_list("python3", ["python[0-9]"])

    def test_malformed_glob_never_matches_as_glob(self) -> None:
        assert not matches_skip_list("abc", ["[abc"])
        assert not matches_skip_list("a", ["[abc"])

    def test_malformed_glob_matches_exactly(self) -> None:
        assert matches_skip_list("[abc", ["[abc"])
