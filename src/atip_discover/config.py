"""Discovery configuration: defaults, config file, and environment overrides.

Priority (highest to lowest):
    1. Environment variables (``ATIP_DISCOVER_*``)
    2. Config file (YAML; JSON files are accepted since JSON is a YAML subset)
    3. Built-in defaults

Config file lookup: explicit path, then ``$ATIP_DISCOVER_CONFIG``, then
``<config_dir>/config.yaml``, then ``<config_dir>/config.json``.

Example config file::

    discovery:
      safe_paths: [/usr/bin, ~/.local/bin]
      skip_list: ["test*", rm]
      scan_timeout: 2s
      parallelism: 4
    cache:
      max_age: 24h
      max_size_mb: 100
    output:
      default_format: table
"""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from atip_discover.exceptions import ConfigError
from atip_discover.paths import AtipPaths, expand_tilde, resolve_paths

DEFAULT_SAFE_PATHS: tuple[str, ...] = (
    "/usr/bin",
    "/usr/local/bin",
    "/opt/homebrew/bin",
    "~/.local/bin",
)

DEFAULT_TIMEOUT: float = 2.0
DEFAULT_PARALLELISM: int = 4
DEFAULT_CACHE_MAX_AGE: float = 24 * 60 * 60
DEFAULT_CACHE_MAX_SIZE_BYTES: int = 100 * 1024 * 1024

OUTPUT_FORMATS: tuple[str, ...] = ("json", "table", "quiet")

_DURATION_RE = re.compile(r"^(\d+(?:\.\d+)?)(ms|s|m|h|d)$")
_UNIT_SECONDS: dict[str, float] = {
    "ms": 0.001,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
    "d": 86400.0,
}


@dataclass
class DiscoverConfig:
    """Plain options structure consumed by ``Scanner`` and the CLI.

    Attributes:
        safe_paths: Directories considered safe to enumerate (tilde-expanded).
        additional_paths: Extra directories configured by the user.
        skip_list: Tool names or glob patterns never probed.
        scan_timeout: Per-tool probe timeout in seconds.
        parallelism: Number of concurrent probes.
        cache_max_age: Maximum cached manifest age in seconds.
        cache_max_size_bytes: Maximum total size of the manifest cache.
        output_format: Default CLI output format.
    """

    safe_paths: list[str] = field(
        default_factory=lambda: [expand_tilde(p) for p in DEFAULT_SAFE_PATHS]
    )
    additional_paths: list[str] = field(default_factory=list)
    skip_list: list[str] = field(default_factory=list)
    scan_timeout: float = DEFAULT_TIMEOUT
    parallelism: int = DEFAULT_PARALLELISM
    cache_max_age: float = DEFAULT_CACHE_MAX_AGE
    cache_max_size_bytes: int = DEFAULT_CACHE_MAX_SIZE_BYTES
    output_format: str = "json"

    def validate(self) -> None:
        """Raise ``ConfigError`` if any value is out of range."""
        if self.parallelism <= 0:
            raise ConfigError(
                "Parallelism must be greater than 0", "parallelism", self.parallelism
            )
        if self.scan_timeout <= 0:
            raise ConfigError(
                "Timeout must be greater than 0", "scan_timeout", self.scan_timeout
            )
        if self.output_format not in OUTPUT_FORMATS:
            raise ConfigError(
                f"Unknown output format: {self.output_format}",
                "output_format",
                self.output_format,
            )


def parse_duration(value: str | int | float) -> float:
    """Parse a duration such as ``500ms``, ``2s``, ``5m``, ``24h`` or ``7d`` to seconds.

    Bare numbers are taken as seconds.

    Raises:
        ConfigError: If the string is not a recognised duration.
    """
    if isinstance(value, bool):
        raise ConfigError(f"Invalid duration format: {value}", "duration", value)
    if isinstance(value, (int, float)):
        return float(value)
    match = _DURATION_RE.match(value.strip())
    if not match:
        raise ConfigError(f"Invalid duration format: {value}", "duration", value)
    return float(match.group(1)) * _UNIT_SECONDS[match.group(2)]


def _find_config_file(
    config_path: str | Path | None,
    paths: AtipPaths,
    env: Mapping[str, str],
) -> Path | None:
    if config_path is not None:
        return Path(config_path)
    if env.get("ATIP_DISCOVER_CONFIG"):
        return Path(env["ATIP_DISCOVER_CONFIG"])
    for name in ("config.yaml", "config.yml", "config.json"):
        candidate = paths.config_dir / name
        if candidate.is_file():
            return candidate
    return None


def _read_config_file(path: Path) -> dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    except OSError as exc:
        raise ConfigError(f"Cannot read config file: {exc}", "config", str(path)) from exc

    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(
            f"Invalid config file {path}: {exc}", "config", str(path)
        ) from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(
            f"Config file {path} must contain a mapping", "config", str(path)
        )
    return data


def _string_list(value: Any, field_name: str) -> list[str]:
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigError(f"{field_name} must be a list of strings", field_name, value)
    return list(value)


def _apply_file(config: DiscoverConfig, data: dict[str, Any], env: Mapping[str, str]) -> None:
    discovery = data.get("discovery") or {}
    if "safe_paths" in discovery:
        config.safe_paths = [
            expand_tilde(p, env) for p in _string_list(discovery["safe_paths"], "safe_paths")
        ]
    if "additional_paths" in discovery:
        config.additional_paths = [
            expand_tilde(p, env)
            for p in _string_list(discovery["additional_paths"], "additional_paths")
        ]
    if "skip_list" in discovery:
        config.skip_list = _string_list(discovery["skip_list"], "skip_list")
    if discovery.get("scan_timeout") is not None:
        config.scan_timeout = parse_duration(discovery["scan_timeout"])
    if discovery.get("parallelism") is not None:
        config.parallelism = _parse_int(discovery["parallelism"], "parallelism")

    cache = data.get("cache") or {}
    if cache.get("max_age") is not None:
        config.cache_max_age = parse_duration(cache["max_age"])
    if cache.get("max_size_mb") is not None:
        config.cache_max_size_bytes = (
            _parse_int(cache["max_size_mb"], "max_size_mb") * 1024 * 1024
        )

    output = data.get("output") or {}
    if output.get("default_format"):
        config.output_format = str(output["default_format"])


def _parse_int(value: Any, field_name: str) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"{field_name} must be an integer", field_name, value)
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{field_name} must be an integer", field_name, value) from exc


def _apply_env(config: DiscoverConfig, env: Mapping[str, str]) -> None:
    if env.get("ATIP_DISCOVER_SAFE_PATHS"):
        config.safe_paths = [
            expand_tilde(p, env)
            for p in env["ATIP_DISCOVER_SAFE_PATHS"].split(os.pathsep)
            if p
        ]
    if env.get("ATIP_DISCOVER_SKIP"):
        config.skip_list = [
            s.strip() for s in env["ATIP_DISCOVER_SKIP"].split(",") if s.strip()
        ]
    if env.get("ATIP_DISCOVER_TIMEOUT"):
        config.scan_timeout = parse_duration(env["ATIP_DISCOVER_TIMEOUT"])
    if env.get("ATIP_DISCOVER_PARALLEL"):
        config.parallelism = _parse_int(env["ATIP_DISCOVER_PARALLEL"], "parallelism")


def load_config(
    config_path: str | Path | None = None,
    paths: AtipPaths | None = None,
    env: Mapping[str, str] | None = None,
) -> DiscoverConfig:
    """Load configuration from file and environment.

    A missing config file is not an error; defaults are used.

    Args:
        config_path: Explicit config file path.
        paths: Resolved storage paths (for the default config location).
        env: Environment mapping; defaults to ``os.environ``.

    Returns:
        The merged and validated configuration.

    Raises:
        ConfigError: If the file is malformed or a value is invalid.
    """
    env = os.environ if env is None else env
    paths = paths if paths is not None else resolve_paths(env=env)

    config = DiscoverConfig(
        safe_paths=[expand_tilde(p, env) for p in DEFAULT_SAFE_PATHS]
    )
    found = _find_config_file(config_path, paths, env)
    if found is not None:
        _apply_file(config, _read_config_file(found), env)
    _apply_env(config, env)
    config.validate()
    return config
