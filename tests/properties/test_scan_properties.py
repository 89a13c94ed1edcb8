"""Property-based tests for matcher determinism and dependency deduplication."""

from __future__ import annotations

from hypothesis import given, settings
from hypothesis import strategies as st

from tangkal.core.analyzer import ContentAnalyzer
from tangkal.core.dependency.models import Dependency, deduplicate
from tangkal.core.dependency.typosquat import find_lookalikes

# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------

_FRAGMENTS = [
    "const a = 1;",
    "ev" + "al(code);",
    "require('child_process').exec(cmd);",
    "fs.readFileSync(p);",
    "Buffer.from(s, 'base64');",
    "const u = 'http://198.51.100.7/x';",
    "process.env.HOME;",
    "fetch(url + token);",
    "'\\x41\\x42';",
    "function (( {",
    "x" * 1200,
]

sources = st.lists(st.sampled_from(_FRAGMENTS), max_size=12).map("\n".join)
files = st.sampled_from(["a.js", "b.ts", "c.tsx", "d.json", "e.mjs"])

names = st.text(alphabet="abcdefghijklmnopqrstuvwxyz-@/", min_size=1, max_size=12)
versions = st.from_regex(r"[0-9]{1,2}\.[0-9]{1,2}\.[0-9]{1,2}", fullmatch=True)
dependencies = st.lists(st.builds(Dependency, names, versions), max_size=40)


# ---------------------------------------------------------------------------
# Properties
# ---------------------------------------------------------------------------


class TestMatcherDeterminism:
    """The same text and file always yield the same findings."""

    @settings(max_examples=50, deadline=None)
    @given(text=sources, file=files)
    def test_repeatable(self, text: str, file: str) -> None:
        first = ContentAnalyzer().analyze_content(text, file)
        second = ContentAnalyzer().analyze_content(text, file)
        assert first == second

    @settings(max_examples=50, deadline=None)
    @given(text=sources, file=files)
    def test_findings_carry_file_and_valid_line(self, text: str, file: str) -> None:
        line_count = text.count("\n") + 1
        for finding in ContentAnalyzer().analyze_content(text, file):
            assert finding.file == file
            assert 0 <= finding.line <= line_count
            assert finding.snippet is None or len(finding.snippet) <= 100


class TestDeduplication:
    """At most one entry per name@version, first-seen order kept."""

    @given(deps=dependencies)
    def test_unique_keys(self, deps: list[Dependency]) -> None:
        result = deduplicate(deps)
        keys = [d.key for d in result]
        assert len(keys) == len(set(keys))
        assert set(keys) == {d.key for d in deps}

    @given(deps=dependencies)
    def test_first_seen_order(self, deps: list[Dependency]) -> None:
        expected = list(dict.fromkeys(d.key for d in deps))
        assert [d.key for d in deduplicate(deps)] == expected

    @given(deps=dependencies)
    def test_idempotent(self, deps: list[Dependency]) -> None:
        once = deduplicate(deps)
        assert deduplicate(once) == once


class TestTyposquatProperties:
    """Exact names are never reported as lookalikes of themselves."""

    @given(name=names, popular=st.lists(names, max_size=10))
    def test_never_matches_itself(self, name: str, popular: list[str]) -> None:
        assert name not in find_lookalikes(name, popular + [name])
