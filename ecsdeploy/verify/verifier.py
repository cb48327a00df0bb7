"""
Deployment verifier: a single-pass snapshot of a running ECS service.

The verifier never retries. Auxiliary lookups (events, image tags, logs) are
diagnostic only; a failing health probe is a warning. Only the service
status, task counts and task health decide the verdict.
"""

import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from botocore.exceptions import BotoCoreError, ClientError

from ..aws import AwsClients
from ..config import DeployConfig
from ..errors import is_tolerated
from .probe import ProbeResult, probe_health
from .status import Verdict, derive_verdict

logger = logging.getLogger(__name__)

NO_RUNNING_TASKS = "NoRunningTasks"
SERVICE_NOT_FOUND = "ServiceNotFound"
CLUSTER_NOT_FOUND = "ClusterNotFound"

_DIAGNOSTIC_ERRORS = (ClientError, BotoCoreError)


@dataclass
class DeploymentSnapshot:
    """Everything observed about a service during one verification run."""
    cluster: str
    service: str
    status: Optional[str] = None
    running_count: Optional[int] = None
    desired_count: Optional[int] = None
    task_definition: Optional[str] = None
    task_arn: Optional[str] = None
    task_status: Optional[str] = None
    health_status: Optional[str] = None
    image: Optional[str] = None
    started_at: Optional[str] = None
    public_ip: Optional[str] = None
    probe: Optional[ProbeResult] = None
    events: List[Dict[str, str]] = field(default_factory=list)
    image_tags: List[str] = field(default_factory=list)
    log_lines: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    failure_reason: Optional[str] = None
    verdict: Verdict = Verdict.FAILING

    @property
    def health_url(self) -> Optional[str]:
        return self.probe.url if self.probe else None

    def warn(self, message: str) -> None:
        logger.warning(message)
        self.warnings.append(message)


def parse_image_reference(image: str) -> Tuple[str, str]:
    """
    Split an image reference into (repository, tag).

    ``123.dkr.ecr.us-east-1.amazonaws.com/java-api:abc123`` gives
    ``("java-api", "abc123")``. A missing tag defaults to ``latest``.
    """
    if "@" in image:
        raise ValueError(f"Image {image} is pinned by digest, not tag")
    remainder = image.split("/", 1)[1] if "/" in image else image
    if ":" in remainder:
        repository, tag = remainder.rsplit(":", 1)
    else:
        repository, tag = remainder, "latest"
    return repository, tag


class DeploymentVerifier:
    """Builds a DeploymentSnapshot for an already-created service."""

    def __init__(self, clients: AwsClients, config: DeployConfig,
                 probe: Callable[[str, float], ProbeResult] = probe_health,
                 clock: Callable[[], float] = time.time):
        self.clients = clients
        self.config = config
        self._probe = probe
        self._clock = clock

    def verify(self, cluster: Optional[str] = None, service: Optional[str] = None) -> DeploymentSnapshot:
        """
        Verify the service once and return the snapshot with its verdict.

        Args:
            cluster: Cluster name (defaults to the environment's cluster)
            service: Service name (defaults to the environment's service)

        Returns:
            DeploymentSnapshot
        """
        names = self.config.names
        snapshot = DeploymentSnapshot(cluster=cluster or names.cluster, service=service or names.service)
        logger.info(f"Verifying {snapshot.service} on {snapshot.cluster}")

        logger.info("1. Checking ECS service status...")
        try:
            service_data = self._describe_service(snapshot)
        except ClientError as e:
            if not is_tolerated(e, "describe_services"):
                raise
            snapshot.failure_reason = CLUSTER_NOT_FOUND
            snapshot.warn(f"Cluster {snapshot.cluster} not found")
            return self._conclude(snapshot)
        if service_data is None:
            snapshot.failure_reason = SERVICE_NOT_FOUND
            snapshot.warn(f"Service {snapshot.service} not found in {snapshot.cluster}")
            return self._conclude(snapshot)

        logger.info("2. Checking recent service events...")
        snapshot.events = self._recent_events(service_data)

        logger.info("3. Getting task details...")
        snapshot.task_arn = self._first_running_task(snapshot)
        if not snapshot.task_arn:
            snapshot.failure_reason = NO_RUNNING_TASKS
            logger.error("No running tasks found")
            snapshot.verdict = Verdict.FAILING
            return snapshot

        task = self._describe_task(snapshot)

        logger.info("4. Verifying image tags...")
        snapshot.image_tags = self._image_tags(snapshot.image)

        logger.info("5. Getting task public IP...")
        snapshot.public_ip = self._public_ip(task, snapshot)

        if snapshot.public_ip:
            logger.info("6. Testing health endpoint...")
            url = f"http://{snapshot.public_ip}:{self.config.container_port}{self.config.health_path}"
            snapshot.probe = self._probe(url, self.config.probe_timeout)
            if snapshot.probe.healthy:
                logger.info("Health check PASSED")
            elif snapshot.probe.reachable:
                snapshot.warn(f"Health check response received but status is not UP: {snapshot.probe.error}")
            else:
                snapshot.warn(f"Could not reach health endpoint (may take a minute to start): {snapshot.probe.error}")
        else:
            snapshot.warn("No public IP assigned to task")

        logger.info("7. Checking recent application logs...")
        snapshot.log_lines = self._recent_logs()

        return self._conclude(snapshot)

    def _conclude(self, snapshot: DeploymentSnapshot) -> DeploymentSnapshot:
        snapshot.verdict = derive_verdict(snapshot.status, snapshot.running_count,
                                          snapshot.desired_count, snapshot.health_status)
        return snapshot

    def _describe_service(self, snapshot: DeploymentSnapshot) -> Optional[Dict[str, Any]]:
        response = self.clients.ecs.describe_services(cluster=snapshot.cluster, services=[snapshot.service])
        services = response.get("services", [])
        if not services:
            return None

        data = services[0]
        snapshot.status = data.get("status")
        snapshot.running_count = data.get("runningCount")
        snapshot.desired_count = data.get("desiredCount")
        snapshot.task_definition = data.get("taskDefinition")

        if snapshot.status == "ACTIVE":
            logger.info("Service is ACTIVE")
        else:
            logger.error(f"Service status: {snapshot.status}")
        logger.info(f"Running tasks: {snapshot.running_count} / {snapshot.desired_count}")
        logger.info(f"Task definition: {snapshot.task_definition}")
        if (snapshot.running_count or 0) < (snapshot.desired_count or 0):
            logger.warning("Service is scaling or experiencing issues")
        return data

    def _recent_events(self, service_data: Dict[str, Any]) -> List[Dict[str, str]]:
        events = []
        for event in service_data.get("events", [])[:self.config.events_limit]:
            created = event.get("createdAt")
            events.append({
                "time": created.isoformat() if hasattr(created, "isoformat") else str(created or ""),
                "message": event.get("message", ""),
            })
        for event in events:
            logger.info(f"  {event['time']}  {event['message']}")
        return events

    def _first_running_task(self, snapshot: DeploymentSnapshot) -> Optional[str]:
        response = self.clients.ecs.list_tasks(
            cluster=snapshot.cluster,
            serviceName=snapshot.service,
            desiredStatus="RUNNING",
        )
        arns = response.get("taskArns", [])
        return arns[0] if arns else None

    def _describe_task(self, snapshot: DeploymentSnapshot) -> Dict[str, Any]:
        response = self.clients.ecs.describe_tasks(cluster=snapshot.cluster, tasks=[snapshot.task_arn])
        tasks = response.get("tasks", [])
        task = tasks[0] if tasks else {}

        snapshot.task_status = task.get("lastStatus")
        snapshot.health_status = task.get("healthStatus")
        containers = task.get("containers", [])
        snapshot.image = containers[0].get("image") if containers else None
        started = task.get("startedAt")
        snapshot.started_at = started.isoformat() if hasattr(started, "isoformat") else started

        logger.info(f"Task status: {snapshot.task_status}")
        logger.info(f"Health status: {snapshot.health_status}")
        logger.info(f"Image: {snapshot.image}")
        logger.info(f"Started at: {snapshot.started_at}")
        return task

    def _image_tags(self, image: Optional[str]) -> List[str]:
        if not image:
            return []
        try:
            repository, tag = parse_image_reference(image)
            response = self.clients.ecr.describe_images(
                repositoryName=repository,
                imageIds=[{"imageTag": tag}],
            )
        except (ValueError, ClientError, BotoCoreError) as e:
            logger.warning(f"Could not look up image tags for {image}: {e}")
            return []

        details = response.get("imageDetails", [])
        tags = details[0].get("imageTags", []) if details else []
        logger.info(f"Image tags: {', '.join(tags)}")
        return tags

    def _public_ip(self, task: Dict[str, Any], snapshot: DeploymentSnapshot) -> Optional[str]:
        eni_id = None
        for attachment in task.get("attachments", []):
            for detail in attachment.get("details", []):
                if detail.get("name") == "networkInterfaceId":
                    eni_id = detail.get("value")
                    break
            if eni_id:
                break

        if not eni_id:
            return None

        try:
            response = self.clients.ec2.describe_network_interfaces(NetworkInterfaceIds=[eni_id])
        except _DIAGNOSTIC_ERRORS as e:
            snapshot.warn(f"Could not resolve network interface {eni_id}: {e}")
            return None

        interfaces = response.get("NetworkInterfaces", [])
        if not interfaces:
            return None
        public_ip = interfaces[0].get("Association", {}).get("PublicIp")
        if public_ip:
            logger.info(f"Task public IP: {public_ip}")
        return public_ip

    def _recent_logs(self, limit: int = 20) -> List[str]:
        log_group = self.config.names.log_group
        start_ms = int((self._clock() - self.config.log_tail_minutes * 60) * 1000)
        lines = deque(maxlen=limit)
        try:
            paginator = self.clients.logs.get_paginator("filter_log_events")
            for page in paginator.paginate(logGroupName=log_group, startTime=start_ms):
                for event in page.get("events", []):
                    lines.append(event.get("message", "").rstrip())
        except _DIAGNOSTIC_ERRORS as e:
            logger.warning(f"Could not retrieve logs from {log_group}: {e}")
            return []

        return list(lines)
