"""Shared fixtures for atip-discover tests."""

import pathlib

import pytest

from atip_discover.paths import AtipPaths, resolve_paths


@pytest.fixture
def atip_paths(tmp_path: pathlib.Path) -> AtipPaths:
    """Storage locations rooted in a temporary directory."""
    return resolve_paths(
        data_dir=tmp_path / "data",
        config_dir=tmp_path / "config",
        env={"HOME": str(tmp_path)},
    )


@pytest.fixture
def bin_dir(tmp_path: pathlib.Path) -> pathlib.Path:
    """An empty, safe directory for mock executables."""
    directory = tmp_path / "bin"
    directory.mkdir(mode=0o755)
    return directory
