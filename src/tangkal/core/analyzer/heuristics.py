"""Stateless text heuristics: Shannon entropy and longest-line detection.

Natural-language text and ordinary source code sit around 3.5-4.5 bits of
entropy per character. Packed or encrypted payloads usually exceed 5.0.
Single lines of thousands of characters are the other classic signature of
minified or packed malware.
"""

from __future__ import annotations

import math
from collections import Counter

ENTROPY_THRESHOLD: float = 4.5
LONG_LINE_THRESHOLD: int = 1000

# Entropy is estimated over at most this many leading characters.
ENTROPY_SAMPLE_CHARS: int = 64 * 1024


def shannon_entropy(text: str) -> float:
    """Return the Shannon entropy of *text* in bits per character."""
    if not text:
        return 0.0
    total = len(text)
    entropy = 0.0
    for count in Counter(text).values():
        p = count / total
        entropy -= p * math.log2(p)
    return entropy


def is_obfuscated(text: str, threshold: float = ENTROPY_THRESHOLD) -> bool:
    """Check whether the sampled prefix of *text* exceeds the entropy threshold."""
    return shannon_entropy(text[:ENTROPY_SAMPLE_CHARS]) > threshold


def find_long_line(
    text: str, threshold: int = LONG_LINE_THRESHOLD
) -> tuple[int, int] | None:
    """Find the first line longer than *threshold* characters.

    Returns:
        ``(line_number, length)`` with a 1-based line number, or None.
    """
    for index, line in enumerate(text.split("\n"), start=1):
        if len(line) > threshold:
            return index, len(line)
    return None
