"""Shared state handed from the ``atip-discover`` group to its subcommands."""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from typing import NoReturn

import click

from atip_discover.config import DiscoverConfig
from atip_discover.paths import AtipPaths
from atip_discover.registry.store import RegistryStore

# Exit codes shared by every command.
EXIT_OK = 0
EXIT_PARTIAL = 1
EXIT_FATAL = 2


@dataclass
class CliContext:
    """Resolved paths, configuration and output format for one invocation.

    Attributes:
        paths: Storage locations.
        config: Merged configuration.
        output_format: ``json``, ``table`` or ``quiet``.
        verbose: Whether debug logging is enabled.
    """

    paths: AtipPaths
    config: DiscoverConfig
    output_format: str
    verbose: bool = False
    store: RegistryStore = field(init=False)

    def __post_init__(self) -> None:
        self.store = RegistryStore(self.paths)


pass_context = click.make_pass_decorator(CliContext)


def fail(message: str, code: int = EXIT_FATAL) -> NoReturn:
    """Print ``Error: <message>`` to stderr and exit with ``code``."""
    click.echo(f"Error: {message}", err=True)
    sys.exit(code)
