"""Tangkal CLI -- Pre-install supply-chain scanner for JavaScript projects.

Entry point for the ``tangkal`` command-line tool. Registers all
subcommands under a single Click group.

Commands:
    scan -- Scan a directory for malware signals and dependency risks.

Usage::

    tangkal scan                         # Scan the current directory
    tangkal scan ./cloned-repo
    tangkal scan ./cloned-repo --no-audit --format json
"""

from __future__ import annotations

import click

from tangkal import __version__
from tangkal.cli.scan import scan_command


@click.group()
@click.version_option(version=__version__)
def cli() -> None:
    """Tangkal: inspect a source tree before installing its dependencies.

    Detects suspicious code, lifecycle scripts, typosquatting, and known
    vulnerable or disreputable packages.
    """


cli.add_command(scan_command)
