"""
Verdict derivation for a deployed service.
"""

from enum import Enum
from typing import Optional


class Verdict(Enum):
    """Three-way verification verdict."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    FAILING = "failing"

    @property
    def exit_code(self) -> int:
        """Healthy and Degraded services are running; only Failing is an error."""
        return 1 if self is Verdict.FAILING else 0


def _norm(value: Optional[str]) -> str:
    return (value or "").strip().upper()


def derive_verdict(status: Optional[str], running_count: Optional[int],
                   desired_count: Optional[int], health_status: Optional[str]) -> Verdict:
    """
    Derive the verdict from service status, task counts and task health.

    Healthy needs an ACTIVE service at its desired count with a HEALTHY task.
    An ACTIVE service at its desired count with unknown or unhealthy task
    health is Degraded. Everything else is Failing.
    """
    if _norm(status) != "ACTIVE":
        return Verdict.FAILING
    if running_count is None or desired_count is None or running_count != desired_count:
        return Verdict.FAILING
    if _norm(health_status) == "HEALTHY":
        return Verdict.HEALTHY
    return Verdict.DEGRADED
