"""``tangkal scan [DIRECTORY]`` -- Pre-install supply-chain scan.

Exit Codes:
    0 -- No findings at or above the severity threshold.
    1 -- One or more findings at or above the threshold.
    2 -- Fatal error (target missing or not a directory).
"""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path

import click

from tangkal.cli.output import configure_logging, console, print_findings
from tangkal.core.analyzer import Finding, Severity
from tangkal.exceptions import ScanTargetError
from tangkal.registry.auditor import DEFAULT_REPUTATION_CEILING
from tangkal.scanner import ScanOptions, scan_directory

_SEVERITY_MAP: dict[str, Severity] = {
    "low": Severity.LOW,
    "medium": Severity.MEDIUM,
    "high": Severity.HIGH,
    "critical": Severity.CRITICAL,
}


def _filter_findings(findings: list[Finding], threshold: Severity) -> list[Finding]:
    """Keep findings at or above *threshold*, preserving order."""
    return [f for f in findings if f.severity >= threshold]


def _findings_to_json(target: Path, findings: list[Finding]) -> dict:
    counts = {name: 0 for name in _SEVERITY_MAP}
    for f in findings:
        counts[f.severity.name.lower()] += 1
    return {
        "target": str(target),
        "findings": [f.to_dict() for f in findings],
        "summary": {"total": len(findings), **counts},
    }


def _nuke(target: Path, findings: list[Finding]) -> None:
    """Offer to delete each existing file referenced by *findings*."""
    root = target.resolve()
    files = list(dict.fromkeys(f.file for f in findings if f.file))
    for rel in files:
        path = (root / rel).resolve()
        if not path.is_relative_to(root) or not path.is_file():
            continue
        if click.confirm(f"Permanently delete {rel}?", default=False):
            path.unlink()
            click.echo(f"Deleted: {rel}")


def _print_progress(message: str) -> None:
    console.print(f"[dim]{message}[/dim]")


@click.command("scan")
@click.argument("directory", type=click.Path(), default=".", required=False)
@click.option(
    "--format", "output_format",
    type=click.Choice(["text", "json"]),
    default="text",
    show_default=True,
    help="Output format.",
)
@click.option(
    "--no-audit",
    is_flag=True,
    default=False,
    help="Skip registry and vulnerability lookups (offline scan).",
)
@click.option(
    "--severity-threshold",
    type=click.Choice(list(_SEVERITY_MAP)),
    default="low",
    show_default=True,
    help="Minimum severity to report.",
)
@click.option(
    "--reputation-ceiling",
    type=click.IntRange(min=0),
    default=DEFAULT_REPUTATION_CEILING,
    show_default=True,
    help="Skip reputation checks when the dependency count reaches this value.",
)
@click.option(
    "--nuke",
    is_flag=True,
    default=False,
    help="Offer to delete each flagged file (asks for confirmation per file).",
)
@click.option("--verbose", "-v", is_flag=True, default=False, help="Enable debug logging.")
def scan_command(
    directory: str,
    output_format: str,
    no_audit: bool,
    severity_threshold: str,
    reputation_ceiling: int,
    nuke: bool,
    verbose: bool,
) -> None:
    """Scan DIRECTORY for supply-chain risks before installing dependencies.

    Flags suspicious code, install-time lifecycle scripts, typosquatted
    dependency names, and (unless --no-audit) known vulnerabilities and
    poor registry reputation.
    """
    configure_logging(verbose)
    target = Path(directory)
    options = ScanOptions(
        skip_network_audit=no_audit,
        reputation_ceiling=reputation_ceiling,
    )

    try:
        if output_format == "json":
            findings = asyncio.run(scan_directory(target, options))
        else:
            with console.status(f"Scanning {target}..."):
                findings = asyncio.run(
                    scan_directory(target, options, progress=_print_progress)
                )
    except ScanTargetError as exc:
        if output_format == "json":
            click.echo(json.dumps({"error": str(exc)}))
        else:
            click.echo(f"Error: {exc}", err=True)
        sys.exit(2)

    findings = _filter_findings(findings, _SEVERITY_MAP[severity_threshold])

    if output_format == "json":
        click.echo(json.dumps(_findings_to_json(target.resolve(), findings), indent=2))
    else:
        console.print(f"[dim]Scanned {target.resolve()}[/dim]")
        print_findings(findings)

    if nuke and findings:
        _nuke(target, findings)

    sys.exit(1 if findings else 0)
