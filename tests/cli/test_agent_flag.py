"""Tests for ``atip-discover --agent``: the tool describes itself."""

from __future__ import annotations

import json

from click.testing import CliRunner

from atip_discover import __version__
from atip_discover.cli.main import cli
from atip_discover.discovery.prober import help_mentions_agent_flag
from atip_discover.validator import validate_metadata


class TestAgentFlag:
    def test_prints_valid_manifest(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["--agent"])
        assert result.exit_code == 0
        manifest = json.loads(result.output)
        assert manifest["name"] == "atip-discover"
        assert manifest["version"] == __version__
        assert validate_metadata(manifest).valid

    def test_manifest_covers_commands(self, runner: CliRunner) -> None:
        manifest = json.loads(runner.invoke(cli, ["--agent"]).output)
        assert set(manifest["commands"]) == set(cli.commands)

    def test_help_advertises_agent_flag(self, runner: CliRunner) -> None:
        """The help text passes the phase-1 check, so scans can find us."""
        result = runner.invoke(cli, ["--help"])
        assert help_mentions_agent_flag(result.output)
