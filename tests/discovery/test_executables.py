"""Tests for executable enumeration."""

from __future__ import annotations

import os
from pathlib import Path

from atip_discover.discovery.executables import enumerate_executables

from tests.discovery.helpers import posix_only, write_script


@posix_only
class TestEnumerateExecutables:
    """Non-recursive listing of executable files."""

    def test_finds_executables_sorted(self, bin_dir: Path) -> None:
        write_script(bin_dir, "zeta", "exit 0\n")
        write_script(bin_dir, "alpha", "exit 0\n")
        assert [p.name for p in enumerate_executables(bin_dir)] == ["alpha", "zeta"]

    def test_paths_are_absolute(self, bin_dir: Path) -> None:
        write_script(bin_dir, "tool", "exit 0\n")
        found = enumerate_executables(bin_dir)
        assert found[0].is_absolute()
        assert found[0] == bin_dir / "tool"

    def test_ignores_non_executable_files(self, bin_dir: Path) -> None:
        (bin_dir / "README").write_text("docs")
        assert enumerate_executables(bin_dir) == []

    def test_group_execute_bit_counts(self, bin_dir: Path) -> None:
        target = bin_dir / "grouponly"
        target.write_text("#!/bin/sh\n")
        target.chmod(0o610)
        assert [p.name for p in enumerate_executables(bin_dir)] == ["grouponly"]

    def test_does_not_descend(self, bin_dir: Path) -> None:
        write_script(bin_dir / "nested", "hidden", "exit 0\n")
        assert enumerate_executables(bin_dir) == []

    def test_symlink_to_executable(self, bin_dir: Path, tmp_path: Path) -> None:
        real = write_script(tmp_path / "real", "tool", "exit 0\n")
        os.symlink(real, bin_dir / "linked")
        assert [p.name for p in enumerate_executables(bin_dir)] == ["linked"]

    def test_dangling_symlink_ignored(self, bin_dir: Path, tmp_path: Path) -> None:
        os.symlink(tmp_path / "gone", bin_dir / "dangling")
        assert enumerate_executables(bin_dir) == []

    def test_missing_directory_yields_empty(self, tmp_path: Path) -> None:
        assert enumerate_executables(tmp_path / "missing") == []
