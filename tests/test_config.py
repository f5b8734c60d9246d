"""Tests for configuration loading and storage path resolution."""

from __future__ import annotations

import json
import platform
from pathlib import Path

import pytest

from atip_discover.config import (
    DEFAULT_PARALLELISM,
    DEFAULT_TIMEOUT,
    DiscoverConfig,
    load_config,
    parse_duration,
)
from atip_discover.exceptions import ConfigError
from atip_discover.paths import AtipPaths, expand_tilde, resolve_paths


# ---------------------------------------------------------------------------
# parse_duration
# ---------------------------------------------------------------------------


class TestParseDuration:
    @pytest.mark.parametrize(
        ("text", "seconds"),
        [("500ms", 0.5), ("2s", 2.0), ("5m", 300.0), ("24h", 86400.0), ("7d", 604800.0)],
    )
    def test_units(self, text: str, seconds: float) -> None:
        assert parse_duration(text) == pytest.approx(seconds)

    def test_bare_number_is_seconds(self) -> None:
        assert parse_duration(3) == 3.0

    @pytest.mark.parametrize("text", ["", "2", "fast", "2 weeks", "-1s"])
    def test_invalid(self, text: str) -> None:
        with pytest.raises(ConfigError):
            parse_duration(text)


# ---------------------------------------------------------------------------
# load_config
# ---------------------------------------------------------------------------


@pytest.fixture
def paths(tmp_path: Path) -> AtipPaths:
    return AtipPaths(data_dir=tmp_path / "data", config_dir=tmp_path / "config")


class TestLoadConfig:
    def test_defaults_without_file(self, paths: AtipPaths, tmp_path: Path) -> None:
        config = load_config(paths=paths, env={"HOME": str(tmp_path)})
        assert config.scan_timeout == DEFAULT_TIMEOUT
        assert config.parallelism == DEFAULT_PARALLELISM
        assert "/usr/bin" in config.safe_paths
        assert str(tmp_path / ".local" / "bin") in config.safe_paths

    def test_yaml_file(self, paths: AtipPaths, tmp_path: Path) -> None:
        paths.config_dir.mkdir(parents=True)
        (paths.config_dir / "config.yaml").write_text(
            "discovery:\n"
            "  safe_paths: [/opt/tools, ~/bin]\n"
            "  skip_list: ['test*', rm]\n"
            "  scan_timeout: 500ms\n"
            "  parallelism: 8\n"
            "cache:\n"
            "  max_age: 1h\n"
            "  max_size_mb: 5\n"
            "output:\n"
            "  default_format: table\n"
        )
        config = load_config(paths=paths, env={"HOME": str(tmp_path)})
        assert config.safe_paths == ["/opt/tools", str(tmp_path / "bin")]
        assert config.skip_list == ["test*", "rm"]
        assert config.scan_timeout == pytest.approx(0.5)
        assert config.parallelism == 8
        assert config.cache_max_age == 3600.0
        assert config.cache_max_size_bytes == 5 * 1024 * 1024
        assert config.output_format == "table"

    def test_json_file(self, paths: AtipPaths) -> None:
        paths.config_dir.mkdir(parents=True)
        (paths.config_dir / "config.json").write_text(
            json.dumps({"discovery": {"parallelism": 2}})
        )
        assert load_config(paths=paths, env={}).parallelism == 2

    def test_env_overrides_file(self, paths: AtipPaths, tmp_path: Path) -> None:
        config_file = tmp_path / "custom.yaml"
        config_file.write_text("discovery:\n  parallelism: 8\n  scan_timeout: 5s\n")
        env = {
            "ATIP_DISCOVER_CONFIG": str(config_file),
            "ATIP_DISCOVER_PARALLEL": "3",
            "ATIP_DISCOVER_SKIP": "curl, wget*",
        }
        config = load_config(paths=paths, env=env)
        assert config.parallelism == 3
        assert config.scan_timeout == 5.0
        assert config.skip_list == ["curl", "wget*"]

    def test_explicit_path_wins(self, paths: AtipPaths, tmp_path: Path) -> None:
        explicit = tmp_path / "explicit.yaml"
        explicit.write_text("discovery:\n  parallelism: 6\n")
        config = load_config(explicit, paths=paths, env={})
        assert config.parallelism == 6

    def test_malformed_yaml(self, paths: AtipPaths, tmp_path: Path) -> None:
        bad = tmp_path / "bad.yaml"
        bad.write_text("discovery: [unclosed\n")
        with pytest.raises(ConfigError):
            load_config(bad, paths=paths, env={})

    def test_non_mapping_file(self, paths: AtipPaths, tmp_path: Path) -> None:
        bad = tmp_path / "list.yaml"
        bad.write_text("- a\n- b\n")
        with pytest.raises(ConfigError):
            load_config(bad, paths=paths, env={})

    def test_invalid_parallelism(self, paths: AtipPaths) -> None:
        with pytest.raises(ConfigError) as exc_info:
            load_config(paths=paths, env={"ATIP_DISCOVER_PARALLEL": "0"})
        assert exc_info.value.field == "parallelism"

    def test_invalid_format(self) -> None:
        with pytest.raises(ConfigError):
            DiscoverConfig(output_format="xml").validate()


# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------


class TestPaths:
    def test_expand_tilde(self) -> None:
        env = {"HOME": "/home/alice"}
        assert expand_tilde("~/bin", env) == "/home/alice/bin"
        assert expand_tilde("~", env) == "/home/alice"
        assert expand_tilde("/usr/bin", env) == "/usr/bin"
        assert expand_tilde("~bob/bin", env) == "~bob/bin"

    def test_explicit_data_dir(self, tmp_path: Path) -> None:
        paths = resolve_paths(data_dir=tmp_path / "d", env={})
        assert paths.data_dir == (tmp_path / "d").resolve()
        assert paths.registry_path.name == "registry.json"
        assert paths.tools_dir.name == "tools"
        assert paths.shims_dir.name == "shims"

    def test_env_data_dir(self, tmp_path: Path) -> None:
        paths = resolve_paths(env={"ATIP_DISCOVER_DATA_DIR": str(tmp_path / "e")})
        assert paths.data_dir == (tmp_path / "e").resolve()

    @pytest.mark.skipif(
        platform.system() == "Windows", reason="XDG layout is POSIX-only"
    )
    def test_xdg_locations(self, tmp_path: Path) -> None:
        env = {
            "XDG_DATA_HOME": str(tmp_path / "share"),
            "XDG_CONFIG_HOME": str(tmp_path / "conf"),
        }
        paths = resolve_paths(env=env)
        assert paths.data_dir == (tmp_path / "share" / "agent-tools").resolve()
        assert paths.config_dir == (tmp_path / "conf" / "agent-tools").resolve()
