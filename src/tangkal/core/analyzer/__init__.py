"""Content analysis for a single source file.

Given the text of one file, the ``ContentAnalyzer`` applies a static regex
rule table, a syntax-tree walk (JS/TS only) and two text heuristics, and
returns a list of ``Finding`` objects.

Submodules
----------
- ``models``: Data types (Severity, FindingKind, Finding).
- ``patterns``: Regex rule table, namespace tables, URL/IP predicates.
- ``heuristics``: Shannon entropy and longest-line detection.
- ``syntax``: tree-sitter based syntax-tree rules.
- ``engine``: The ContentAnalyzer class.

All public names are re-exported here::

    from tangkal.core.analyzer import ContentAnalyzer, Finding, FindingKind, Severity
"""

from tangkal.core.analyzer.models import Finding, FindingKind, Severity
from tangkal.core.analyzer.engine import MAX_PARSE_SIZE, ContentAnalyzer

__all__ = [
    "ContentAnalyzer",
    "Finding",
    "FindingKind",
    "MAX_PARSE_SIZE",
    "Severity",
]
