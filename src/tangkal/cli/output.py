"""Rich output formatting helpers for the Tangkal CLI.

Code findings are rendered as one table; known vulnerabilities get their
own section with an upgrade hint and advisory links.

Severity Color Mapping:
    CRITICAL = bold red, HIGH = yellow, MEDIUM = cyan, LOW = green
"""

from __future__ import annotations

import logging
from collections import Counter

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table
from rich.text import Text

from tangkal.core.analyzer import Finding, FindingKind, Severity

_SEVERITY_STYLES: dict[Severity, str] = {
    Severity.CRITICAL: "bold red",
    Severity.HIGH: "yellow",
    Severity.MEDIUM: "cyan",
    Severity.LOW: "green",
}

console = Console()


def severity_style(severity: Severity) -> str:
    """Return the Rich style string for a given severity level."""
    return _SEVERITY_STYLES.get(severity, "white")


def configure_logging(verbose: bool) -> None:
    """Route log records to stderr through Rich; DEBUG when *verbose*."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def upgrade_hint(finding: Finding) -> str:
    """Suggested remediation for a vulnerability finding."""
    fixed = finding.fixed_version or "latest"
    return (
        f"Upgrade {finding.label}@{finding.package_version} "
        f"to {finding.label}@{fixed} to fix."
    )


def print_findings(findings: list[Finding]) -> None:
    """Print scan findings: a table of code findings, then vulnerabilities.

    Args:
        findings: Ranked findings (already filtered by threshold).
    """
    if not findings:
        console.print("[bold green]No suspicious findings.[/bold green]")
        return

    code = [f for f in findings if f.kind is not FindingKind.VULNERABILITY]
    vulns = [f for f in findings if f.kind is FindingKind.VULNERABILITY]
    if code:
        _print_code_table(code)
    if vulns:
        _print_vulnerabilities(vulns)
    _print_summary(findings)


def _print_code_table(findings: list[Finding]) -> None:
    table = Table(title="Tangkal Scan Results", show_header=True, header_style="bold")
    table.add_column("Severity", justify="center")
    table.add_column("Type", style="dim")
    table.add_column("Name", style="bold")
    table.add_column("Location")
    table.add_column("Description")
    table.add_column("Code", style="dim", overflow="fold")

    for f in findings:
        location = f"{f.file}:{f.line}" if f.file else "-"
        table.add_row(
            Text(f.severity.name, style=severity_style(f.severity)),
            f.kind.value,
            f.label,
            location,
            f.description,
            f.snippet or "",
        )
    console.print(table)


def _print_vulnerabilities(findings: list[Finding]) -> None:
    console.print()
    console.print("[bold red]Vulnerable Packages[/bold red]")
    for f in findings:
        links = [f.advisory_url] if f.advisory_url else []
        links.extend(ref for ref in f.references if "snyk.io" in ref)
        console.print(Text(upgrade_hint(f), style="green"))
        header = Text.assemble(
            (f"[{f.severity.name} Severity] ", severity_style(f.severity)),
            (" ".join(f"[{link}]" for link in links), "blue"),
        )
        console.print(header)
        console.print(Text.assemble(
            (f"{f.label}@{f.package_version} ", "magenta"),
            (f.advisory_summary or f.description, ""),
        ))
        console.print(Text(f"introduced by {f.file}", style="dim"))
        console.print()


def _print_summary(findings: list[Finding]) -> None:
    counts = Counter(f.severity for f in findings)
    parts = [f"[bold]{len(findings)}[/bold] findings"]
    for severity in sorted(counts, reverse=True):
        parts.append(
            f"[{severity_style(severity)}]{counts[severity]} "
            f"{severity.name.lower()}[/{severity_style(severity)}]"
        )
    console.print(" | ".join(parts))
