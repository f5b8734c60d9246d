"""Shared fixtures for CLI tests.

Every invocation gets its own data directory and a non-existent config
file, so neither the user's registry nor their configuration can leak
into a test.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest
from click.testing import CliRunner, Result

from atip_discover.cli.main import cli
from atip_discover.paths import AtipPaths, resolve_paths
from atip_discover.registry.models import Registry, RegistryEntry, ToolSource
from atip_discover.registry.store import RegistryStore

GH_MANIFEST = {
    "atip": {"version": "0.6"},
    "name": "gh",
    "version": "2.45.0",
    "description": "GitHub CLI",
    "commands": {
        "pr": {
            "description": "Manage pull requests",
            "commands": {"list": {"description": "List pull requests"}},
        },
    },
}

_ENV_VARS = (
    "ATIP_DISCOVER_CONFIG",
    "ATIP_DISCOVER_DATA_DIR",
    "ATIP_DISCOVER_SAFE_PATHS",
    "ATIP_DISCOVER_SKIP",
    "ATIP_DISCOVER_TIMEOUT",
    "ATIP_DISCOVER_PARALLEL",
)


@pytest.fixture(autouse=True)
def _restore_logging() -> Iterator[None]:
    """Undo the handler ``--verbose`` installs on the root logger."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    return tmp_path / "data"


@pytest.fixture
def store(data_dir: Path, tmp_path: Path) -> RegistryStore:
    paths: AtipPaths = resolve_paths(data_dir=data_dir, config_dir=tmp_path / "config")
    return RegistryStore(paths)


@pytest.fixture
def invoke(
    runner: CliRunner,
    data_dir: Path,
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> Callable[..., Result]:
    """Run ``atip-discover`` against the temporary data directory."""
    for var in _ENV_VARS:
        monkeypatch.delenv(var, raising=False)

    def _invoke(*args: str) -> Result:
        return runner.invoke(
            cli,
            ["--data-dir", str(data_dir), "--config", str(tmp_path / "absent.yaml"), *args],
        )

    return _invoke


@pytest.fixture
def populated(store: RegistryStore, tmp_path: Path) -> RegistryStore:
    """A registry with two native tools (one cached) and one shim."""
    gh = tmp_path / "bin" / "gh"
    gh.parent.mkdir(parents=True, exist_ok=True)
    gh.write_text("#!/bin/sh\n")

    registry = Registry()
    registry.add(RegistryEntry(name="gh", version="2.45.0", path=str(gh), metadata_file="gh.json"))
    registry.add(
        RegistryEntry(name="kubectl", version="1.29.0", path=str(tmp_path / "bin" / "kubectl"))
    )
    store.paths.shims_dir.mkdir(parents=True, exist_ok=True)
    shim = store.paths.shims_dir / "curl.json"
    shim.write_text('{"atip": "0.6", "name": "curl", "version": "8.4.0", "description": "curl"}')
    registry.add(
        RegistryEntry(
            name="curl",
            version="8.4.0",
            path=str(shim),
            source=ToolSource.SHIM,
            metadata_file="curl.json",
        )
    )
    store.write_metadata("gh", GH_MANIFEST)
    store.save(registry)
    return store


@pytest.fixture
def gh_manifest() -> dict:
    return GH_MANIFEST
