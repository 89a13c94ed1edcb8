"""Content analysis engine: regex rules, syntax-tree rules, heuristics.

This module implements the ``ContentAnalyzer`` class which runs three
passes over the text of a single file:

1. **Regex rules** -- every rule in ``PATTERN_RULES`` is matched against the
   whole text; each non-overlapping match becomes a finding on its line.
2. **Syntax-tree rules** -- JS/TS sources are parsed and walked (see
   ``tangkal.core.analyzer.syntax``). Parse failure yields no findings.
3. **Heuristics** -- a massive-line check and a Shannon-entropy check.

Files larger than ``MAX_PARSE_SIZE`` get the long-line heuristic only.
``analyze_stream`` is the line-by-line variant for files too large to load.
"""

from __future__ import annotations

import bisect
import logging
from pathlib import Path
from typing import TextIO

from tangkal.core.analyzer.heuristics import (
    ENTROPY_SAMPLE_CHARS,
    LONG_LINE_THRESHOLD,
    find_long_line,
    is_obfuscated,
)
from tangkal.core.analyzer.models import Finding, FindingKind, Severity, truncate_snippet
from tangkal.core.analyzer.patterns import PATTERN_RULES, PatternRule
from tangkal.core.analyzer.syntax import analyze_syntax

logger = logging.getLogger(__name__)

# Content above this size skips parsing and regex rules entirely.
MAX_PARSE_SIZE: int = 1024 * 1024

# Upper bound on characters read per call when streaming a large file.
STREAM_CHUNK_CHARS: int = 64 * 1024


def _is_json(file: str) -> bool:
    return file.lower().endswith(".json")


def _rest_of_line(handle: TextIO) -> int:
    """Count the characters left on the current line without keeping them."""
    count = 0
    while True:
        chunk = handle.readline(STREAM_CHUNK_CHARS)
        if not chunk:
            return count
        if chunk.endswith("\n"):
            return count + len(chunk) - 1
        count += len(chunk)


def _long_line_finding(file: str, line: int, length: int) -> Finding:
    return Finding(
        kind=FindingKind.HEURISTIC,
        label="Massive Line Length",
        file=file,
        line=line,
        severity=Severity.HIGH,
        description=(
            "Extremely long line detected. Often indicates minified malware "
            "or packed code."
        ),
        snippet=f"Line length: {length} chars",
    )


def _entropy_finding(file: str) -> Finding:
    return Finding(
        kind=FindingKind.HEURISTIC,
        label="High Entropy",
        file=file,
        line=0,
        severity=Severity.MEDIUM,
        description="Shannon entropy is abnormally high. Potential obfuscated payload.",
        snippet="File content appears random/encrypted",
    )


class ContentAnalyzer:
    """Pattern matcher over the text of a single file.

    The analyzer is stateless -- each call is independent and depends only
    on the text and file name, so repeated runs return the same findings.

    Usage::

        analyzer = ContentAnalyzer()
        findings = analyzer.analyze_content(text, "src/index.js")
    """

    def __init__(self, rules: tuple[PatternRule, ...] = PATTERN_RULES) -> None:
        self._rules = rules

    def analyze_content(self, text: str, file: str) -> list[Finding]:
        """Analyze a file's full text.

        Args:
            text: File content.
            file: Relative path used for attribution and grammar selection.

        Returns:
            All findings for the file.
        """
        if len(text) > MAX_PARSE_SIZE:
            long_line = find_long_line(text)
            if long_line is None:
                return []
            return [_long_line_finding(file, *long_line)]

        findings: list[Finding] = []
        findings.extend(self._match_rules(text, file))

        if not _is_json(file):
            findings.extend(analyze_syntax(text, file))

        long_line = find_long_line(text)
        if long_line is not None:
            findings.append(_long_line_finding(file, *long_line))

        # JSON is skipped because its structure naturally inflates entropy.
        if not _is_json(file) and is_obfuscated(text):
            findings.append(_entropy_finding(file))

        return findings

    def analyze_stream(self, path: Path, file: str) -> list[Finding]:
        """Analyze a large file in bounded reads without loading it whole.

        Returns the long-line finding as soon as one over-length line is
        seen. Otherwise only a bounded prefix is kept for the entropy check.
        Syntax-tree analysis never runs here.

        Args:
            path: Absolute path of the file to read.
            file: Relative path used for attribution.
        """
        sample: list[str] = []
        sampled = 0
        line = 1
        length = 0
        try:
            with path.open("r", encoding="utf-8-sig", errors="replace") as handle:
                while True:
                    chunk = handle.readline(STREAM_CHUNK_CHARS)
                    if not chunk:
                        break
                    ended = chunk.endswith("\n")
                    length += len(chunk) - 1 if ended else len(chunk)
                    if length > LONG_LINE_THRESHOLD:
                        if not ended:
                            length += _rest_of_line(handle)
                        return [_long_line_finding(file, line, length)]
                    if sampled < ENTROPY_SAMPLE_CHARS:
                        sample.append(chunk)
                        sampled += len(chunk)
                    if ended:
                        line += 1
                        length = 0
        except OSError:
            logger.debug("Unreadable file skipped: %s", path, exc_info=True)
            return []

        if not _is_json(file) and is_obfuscated("".join(sample)):
            return [_entropy_finding(file)]
        return []

    def _match_rules(self, text: str, file: str) -> list[Finding]:
        """Apply every regex rule to *text*."""
        findings: list[Finding] = []
        newlines: list[int] | None = None
        lines: list[str] | None = None

        for rule in self._rules:
            for match in rule.regex.finditer(text):
                if newlines is None:
                    newlines = [i for i, ch in enumerate(text) if ch == "\n"]
                    lines = text.split("\n")
                line = bisect.bisect_left(newlines, match.start()) + 1
                findings.append(Finding(
                    kind=FindingKind.PATTERN,
                    label=rule.name,
                    file=file,
                    line=line,
                    severity=rule.severity,
                    description=rule.description,
                    snippet=truncate_snippet(lines[line - 1]),
                ))
        return findings
