"""Shared fixtures for tangkal tests."""

from __future__ import annotations

import json
import pathlib
from typing import Any, Callable

import pytest


@pytest.fixture
def project_dir(tmp_path: pathlib.Path) -> pathlib.Path:
    """Create an empty directory simulating a cloned project."""
    root = tmp_path / "project"
    root.mkdir()
    return root


@pytest.fixture
def write_file(project_dir: pathlib.Path) -> Callable[[str, str], pathlib.Path]:
    """Return a helper that writes *text* to a path relative to the project."""

    def _write(rel: str, text: str) -> pathlib.Path:
        path = project_dir / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def write_manifest(
    write_file: Callable[[str, str], pathlib.Path],
) -> Callable[..., pathlib.Path]:
    """Return a helper that writes ``package.json`` from keyword sections."""

    def _write(**sections: Any) -> pathlib.Path:
        manifest = {"name": "demo", "version": "1.0.0", **sections}
        return write_file("package.json", json.dumps(manifest, indent=2))

    return _write
