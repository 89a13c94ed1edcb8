"""Syntax-tree rules for JavaScript and TypeScript sources.

Parses JS/JSX/TS/TSX source with tree-sitter and walks the tree looking for
individual suspicious constructs. Each rule looks at a single node (plus its
direct children); there is no data flow tracking across statements.

Rules:
- calls to the dynamic-evaluation primitive or the ``Function`` constructor;
- member calls on process-spawning, filesystem and raw-network namespaces;
- decoding calls whose second argument is the literal ``"base64"``;
- ``process.env`` reads;
- string literals holding a public IPv4 address;
- string literals that are plain-HTTP URLs, or HTTPS URLs on untrusted hosts.

A tree containing syntax errors yields no findings at all.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import PurePosixPath

import tree_sitter_javascript as tsjs
import tree_sitter_typescript as tsts
from tree_sitter import Language, Node, Parser

from tangkal.core.analyzer.models import Finding, FindingKind, Severity, truncate_snippet
from tangkal.core.analyzer.patterns import (
    DYNAMIC_EVAL_CALLEES,
    SENSITIVE_NAMESPACES,
    find_public_ipv4,
    suspicious_url_scheme,
)

_JS_SUFFIXES = frozenset({".js", ".jsx", ".mjs", ".cjs"})
_TS_SUFFIXES = frozenset({".ts", ".mts", ".cts"})
_TSX_SUFFIXES = frozenset({".tsx"})


@lru_cache(maxsize=None)
def _language(name: str) -> Language:
    """Load (once) the tree-sitter grammar for *name*."""
    if name == "typescript":
        return Language(tsts.language_typescript())
    if name == "tsx":
        return Language(tsts.language_tsx())
    return Language(tsjs.language())


def grammar_for(file: str) -> str | None:
    """Return the grammar name for a file path, or None if not JS/TS."""
    suffix = PurePosixPath(file).suffix.lower()
    if suffix in _JS_SUFFIXES:
        return "javascript"
    if suffix in _TS_SUFFIXES:
        return "typescript"
    if suffix in _TSX_SUFFIXES:
        return "tsx"
    return None


# -- Node helpers ------------------------------------------------------------


def _text(node: Node | None) -> str:
    if node is None or node.text is None:
        return ""
    return node.text.decode("utf-8", errors="replace")


def _line(node: Node) -> int:
    return node.start_point[0] + 1


def _string_value(node: Node) -> str:
    """Return the contents of a string or template literal without quotes."""
    raw = _text(node)
    if len(raw) >= 2:
        return raw[1:-1]
    return ""


def _arguments(call: Node) -> list[Node]:
    args = call.child_by_field_name("arguments")
    if args is None:
        return []
    return [child for child in args.named_children if child.type != "comment"]


def _dotted_name(node: Node | None) -> str:
    """Build a dotted name from an identifier/member chain.

    ``require("child_process").exec`` resolves to ``child_process.exec``.
    """
    if node is None:
        return ""
    if node.type in ("identifier", "property_identifier"):
        return _text(node)
    if node.type == "member_expression":
        parent = _dotted_name(node.child_by_field_name("object"))
        prop = _text(node.child_by_field_name("property"))
        if parent and prop:
            return f"{parent}.{prop}"
        return ""
    if node.type == "call_expression":
        if _text(node.child_by_field_name("function")) == "require":
            args = _arguments(node)
            if args and args[0].type == "string":
                return _string_value(args[0])
    return ""


# -- Rules -------------------------------------------------------------------


def _finding(
    node: Node, file: str, label: str, severity: Severity, description: str
) -> Finding:
    return Finding(
        kind=FindingKind.SYNTAX_RULE,
        label=label,
        file=file,
        line=_line(node),
        severity=severity,
        description=description,
        snippet=truncate_snippet(_text(node)),
    )


def _check_call(node: Node, file: str) -> list[Finding]:
    findings: list[Finding] = []
    callee = node.child_by_field_name("function")
    name = _dotted_name(callee)

    if callee is not None and callee.type == "identifier" and name in DYNAMIC_EVAL_CALLEES:
        findings.append(_finding(
            node, file, "Dynamic Evaluation", Severity.HIGH,
            f"Call to {name}() compiles and runs a string as code.",
        ))

    if callee is not None and callee.type == "member_expression" and "." in name:
        namespace = name.split(".", 1)[0]
        label = SENSITIVE_NAMESPACES.get(namespace)
        if label:
            findings.append(_finding(
                node, file, label, Severity.MEDIUM,
                f"Invokes {name} from the '{namespace}' module.",
            ))

    args = _arguments(node)
    if len(args) >= 2 and args[1].type == "string" and _string_value(args[1]) == "base64":
        findings.append(_finding(
            node, file, "Base64 Decoding", Severity.MEDIUM,
            f"{name or 'Call'} decodes base64 data, often used to hide payloads.",
        ))
    return findings


def _check_new(node: Node, file: str) -> list[Finding]:
    constructor = node.child_by_field_name("constructor")
    if constructor is not None and _text(constructor) == "Function":
        return [_finding(
            node, file, "Dynamic Evaluation", Severity.HIGH,
            "new Function() compiles and runs a string as code.",
        )]
    return []


def _check_member(node: Node, file: str) -> list[Finding]:
    obj = node.child_by_field_name("object")
    prop = node.child_by_field_name("property")
    if obj is not None and obj.type == "identifier" and _text(obj) == "process" and _text(prop) == "env":
        return [_finding(
            node, file, "Environment Access", Severity.LOW,
            "Reads process.env; environment variables often hold credentials.",
        )]
    return []


def _check_string(node: Node, file: str) -> list[Finding]:
    findings: list[Finding] = []
    value = _string_value(node)
    if not value:
        return findings

    ip = find_public_ipv4(value)
    if ip:
        findings.append(_finding(
            node, file, "Hardcoded IP Address", Severity.MEDIUM,
            f"String literal contains IP address {ip}.",
        ))

    scheme = suspicious_url_scheme(value)
    if scheme == "http":
        findings.append(_finding(
            node, file, "Insecure URL", Severity.MEDIUM,
            "Plain-HTTP URL; traffic can be read or altered in transit.",
        ))
    elif scheme == "https":
        findings.append(_finding(
            node, file, "Untrusted URL", Severity.MEDIUM,
            "HTTPS URL pointing outside the trusted domain list.",
        ))
    return findings


_NODE_RULES = {
    "call_expression": _check_call,
    "new_expression": _check_new,
    "member_expression": _check_member,
    "string": _check_string,
    "template_string": _check_string,
}


# -- Public entry point ------------------------------------------------------


def analyze_syntax(text: str, file: str) -> list[Finding]:
    """Run the syntax-tree rules over *text*.

    Args:
        text: Source code.
        file: Relative path, used to pick the grammar and for attribution.

    Returns:
        Findings in document order. Empty for non-JS/TS files and for
        sources that do not parse cleanly.
    """
    grammar = grammar_for(file)
    if grammar is None:
        return []

    parser = Parser(_language(grammar))
    tree = parser.parse(text.encode("utf-8"))
    if tree is None or tree.root_node.has_error:
        return []

    findings: list[Finding] = []
    stack: list[Node] = [tree.root_node]
    while stack:
        node = stack.pop()
        rule = _NODE_RULES.get(node.type)
        if rule is not None:
            findings.extend(rule(node, file))
        stack.extend(reversed(node.children))
    return findings
