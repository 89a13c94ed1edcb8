"""Network risk auditing against the npm registry and the OSV database.

All outbound calls share one ``HttpDispatcher`` and its concurrency cap.
"""

from tangkal.registry.advisories import OsvAdvisory, UnknownAdvisory, parse_advisory
from tangkal.registry.auditor import AuditReport, NetworkAuditor
from tangkal.registry.http_client import HttpDispatcher
from tangkal.registry.npm import ReputationChecker
from tangkal.registry.osv import AdvisoryCache, VulnerabilityAuditor

__all__ = [
    "AdvisoryCache",
    "AuditReport",
    "HttpDispatcher",
    "NetworkAuditor",
    "OsvAdvisory",
    "ReputationChecker",
    "UnknownAdvisory",
    "VulnerabilityAuditor",
    "parse_advisory",
]
