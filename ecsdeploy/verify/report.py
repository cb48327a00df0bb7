"""
Rendering of verification snapshots for humans and machines.
"""

from dataclasses import asdict
from typing import Any, Dict, List

from .links import ConsoleLinkBuilder
from .status import Verdict
from .verifier import DeploymentSnapshot

VERDICT_MESSAGES = {
    Verdict.HEALTHY: "✅ Service is fully operational!",
    Verdict.DEGRADED: "⚠️  Service is running but health check is: {health}",
    Verdict.FAILING: "❌ Service deployment needs attention",
}


def snapshot_to_dict(snapshot: DeploymentSnapshot, region: str) -> Dict[str, Any]:
    """Machine-readable form of a snapshot, including console links."""
    data = asdict(snapshot)
    data["verdict"] = snapshot.verdict.value
    data["exit_code"] = snapshot.verdict.exit_code
    data["health_url"] = snapshot.health_url
    data["links"] = console_links(snapshot, region)
    return data


def console_links(snapshot: DeploymentSnapshot, region: str) -> Dict[str, str]:
    builder = ConsoleLinkBuilder(region)
    links = {"service": builder.build_ecs_service_url(snapshot.cluster, snapshot.service)}
    if snapshot.task_arn:
        links["task"] = builder.build_ecs_task_url(snapshot.cluster, snapshot.task_arn)
    return links


def render_summary(snapshot: DeploymentSnapshot, log_group: str = None, region: str = None) -> List[str]:
    """
    Render the summary block printed at the end of a verification run.

    Returns:
        Lines of text, without trailing newlines
    """
    lines = [
        "📋 Summary:",
        f"   Cluster:      {snapshot.cluster}",
        f"   Service:      {snapshot.service}",
        f"   Status:       {snapshot.status or 'MISSING'}",
        f"   Tasks:        {snapshot.running_count} / {snapshot.desired_count}",
        f"   Health:       {snapshot.health_status or 'UNKNOWN'}",
    ]
    if snapshot.public_ip:
        lines.append(f"   Public IP:    {snapshot.public_ip}")
    if snapshot.health_url:
        lines.append(f"   Health URL:   {snapshot.health_url}")
    if snapshot.failure_reason:
        lines.append(f"   Reason:       {snapshot.failure_reason}")

    if region:
        for name, url in console_links(snapshot, region).items():
            lines.append(f"   Console ({name}): {url}")
        if log_group:
            lines.append(f"   Logs:         {ConsoleLinkBuilder(region).build_log_group_url(log_group)}")

    lines.append("")
    lines.append(VERDICT_MESSAGES[snapshot.verdict].format(health=snapshot.health_status or "UNKNOWN"))
    return lines
