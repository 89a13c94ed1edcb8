"""Tangkal: pre-install supply chain inspection for JavaScript projects."""

from __future__ import annotations

__version__ = "1.1.0"
__license__ = "MIT"
