"""Tangkal exception hierarchy.

All public exceptions inherit from TangkalError, giving callers a single
base class to catch when they want to handle any Tangkal-specific failure
without swallowing unrelated errors.
"""


class TangkalError(Exception):
    """Base exception for all Tangkal errors."""


class ScanTargetError(TangkalError):
    """Raised when the scan target cannot be resolved or accessed.

    This is the only fatal scan failure: no partial results are produced.
    """


class LockfileError(TangkalError):
    """Raised when a lockfile exists but does not match its expected format.

    Covers malformed JSON/YAML, unexpected top-level shapes, and text
    lockfiles with no recognisable entries.
    """


class NetworkError(TangkalError):
    """Raised when an outbound request fails.

    Covers timeouts, transport errors, non-2xx responses and response
    bodies that are not valid JSON.
    """


class PackageNotFoundError(NetworkError):
    """Raised when the remote service answers 404 for a lookup."""
