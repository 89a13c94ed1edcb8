"""Dependency extraction, manifest checks and typosquat detection."""

from tangkal.core.dependency.lockfile import extract_dependencies, first_success
from tangkal.core.dependency.manifest import (
    check_lifecycle_scripts,
    declared_names,
    manifest_dependencies,
    read_manifest,
)
from tangkal.core.dependency.models import Dependency, LockfileResult, deduplicate
from tangkal.core.dependency.popular import PopularPackages
from tangkal.core.dependency.typosquat import check_typosquat

__all__ = [
    "Dependency",
    "LockfileResult",
    "PopularPackages",
    "check_lifecycle_scripts",
    "check_typosquat",
    "declared_names",
    "deduplicate",
    "extract_dependencies",
    "first_success",
    "manifest_dependencies",
    "read_manifest",
]
