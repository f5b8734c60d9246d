"""``atip-discover validate FILE...`` - Validate ATIP manifest files.

Exit Codes:
    0 - Every file is a valid manifest.
    1 - At least one file is invalid, unreadable, or not JSON.
"""

from __future__ import annotations

import sys
from pathlib import Path

import click

from atip_discover.cli.context import EXIT_OK, EXIT_PARTIAL, CliContext, pass_context
from atip_discover.cli.output import print_validation
from atip_discover.validator import validate_file


@click.command("validate")
@click.argument(
    "files",
    nargs=-1,
    required=True,
    type=click.Path(dir_okay=False, path_type=Path),
)
@pass_context
def validate_command(obj: CliContext, files: tuple[Path, ...]) -> None:
    """Check that each FILE is a well-formed ATIP manifest."""
    results = [(path, validate_file(path)) for path in files]
    print_validation(results, obj.output_format)
    sys.exit(EXIT_OK if all(r.valid for _, r in results) else EXIT_PARTIAL)
