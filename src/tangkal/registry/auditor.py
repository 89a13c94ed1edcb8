"""Network audit orchestration.

Runs the vulnerability path over the full dependency list and, for small
trees only, the reputation path over the directly declared packages. The two
paths run concurrently and share the dispatcher's concurrency cap.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

from tangkal.core.analyzer.models import Finding
from tangkal.core.dependency.models import Dependency
from tangkal.registry.http_client import HttpDispatcher
from tangkal.registry.npm import ReputationChecker
from tangkal.registry.osv import VulnerabilityAuditor

logger = logging.getLogger(__name__)

# Reputation checks are skipped for trees of this many dependencies or more.
DEFAULT_REPUTATION_CEILING: int = 200


@dataclass
class AuditReport:
    """Findings from one network audit, split by origin.

    Attributes:
        vulnerabilities: Known-vulnerability findings (lockfile scoped).
        reputation: Registry reputation findings (manifest scoped).
    """

    vulnerabilities: list[Finding] = field(default_factory=list)
    reputation: list[Finding] = field(default_factory=list)

    @property
    def findings(self) -> list[Finding]:
        return [*self.vulnerabilities, *self.reputation]


class NetworkAuditor:
    """Combines vulnerability and reputation checks for a dependency set."""

    def __init__(
        self,
        dispatcher: HttpDispatcher,
        *,
        reputation_ceiling: int = DEFAULT_REPUTATION_CEILING,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self.reputation_ceiling = reputation_ceiling
        self._vulnerabilities = VulnerabilityAuditor(dispatcher)
        self._reputation = ReputationChecker(dispatcher, now=now)

    async def audit(
        self, dependencies: list[Dependency], direct_names: list[str]
    ) -> AuditReport:
        """Audit *dependencies*; reputation-check *direct_names*.

        Args:
            dependencies: Full deduplicated dependency list.
            direct_names: Names declared directly in the manifest.

        Returns:
            An ``AuditReport`` with findings whose ``file`` is empty.
        """
        if len(dependencies) < self.reputation_ceiling:
            reputation = self._reputation.check_all(direct_names)
        else:
            logger.info(
                "Skipping reputation checks: %d dependencies (ceiling %d)",
                len(dependencies), self.reputation_ceiling,
            )
            reputation = _no_findings()

        vulnerabilities, reputation_findings = await asyncio.gather(
            self._vulnerabilities.audit(dependencies), reputation
        )
        return AuditReport(vulnerabilities=vulnerabilities, reputation=reputation_findings)


async def _no_findings() -> list[Finding]:
    return []
