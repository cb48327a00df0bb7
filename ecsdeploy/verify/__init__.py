"""
Single-pass verification of a deployed ECS service.
"""

from .status import Verdict, derive_verdict
from .probe import ProbeResult, probe_health
from .verifier import DeploymentSnapshot, DeploymentVerifier, NO_RUNNING_TASKS
from .report import render_summary, snapshot_to_dict

__all__ = [
    "Verdict",
    "derive_verdict",
    "ProbeResult",
    "probe_health",
    "DeploymentSnapshot",
    "DeploymentVerifier",
    "NO_RUNNING_TASKS",
    "render_summary",
    "snapshot_to_dict",
]
