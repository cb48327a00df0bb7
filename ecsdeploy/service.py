"""
Service deployer: creates the ECS service, bound to the ALB target group when
one exists and standalone otherwise.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from botocore.exceptions import ClientError

from .aws import AwsClients
from .config import DeployConfig, ResourceNames
from .errors import is_tolerated
from .provision.models import EnsureResult

logger = logging.getLogger(__name__)


class ServiceVariant(Enum):
    LOAD_BALANCED = "load_balanced"
    STANDALONE = "standalone"


def choose_variant(target_group_present: bool) -> ServiceVariant:
    return ServiceVariant.LOAD_BALANCED if target_group_present else ServiceVariant.STANDALONE


@dataclass
class NetworkConfig:
    """awsvpc network settings for Fargate tasks."""
    subnets: List[str]
    security_groups: List[str]
    assign_public_ip: bool = True

    def to_request(self) -> Dict[str, Any]:
        return {
            "awsvpcConfiguration": {
                "subnets": list(self.subnets),
                "securityGroups": list(self.security_groups),
                "assignPublicIp": "ENABLED" if self.assign_public_ip else "DISABLED",
            }
        }


@dataclass
class DeployOutcome:
    service: str
    result: EnsureResult
    variant: ServiceVariant
    request: Dict[str, Any] = field(default_factory=dict)


def build_service_request(cluster: str, service_name: str, task_family: str, network: NetworkConfig,
                          config: DeployConfig, container: str,
                          target_group_arn: Optional[str] = None) -> Dict[str, Any]:
    """
    Build the create_service request.

    The load-balancer binding and the health-check grace period are present
    if and only if a target group ARN is given.
    """
    request = {
        "cluster": cluster,
        "serviceName": service_name,
        "taskDefinition": task_family,
        "desiredCount": config.desired_count,
        "launchType": config.launch_type,
        "networkConfiguration": network.to_request(),
    }
    if choose_variant(bool(target_group_arn)) is ServiceVariant.LOAD_BALANCED:
        request["loadBalancers"] = [{
            "targetGroupArn": target_group_arn,
            "containerName": container,
            "containerPort": config.container_port,
        }]
        request["healthCheckGracePeriodSeconds"] = config.health_check_grace_period
    return request


class ServiceDeployer:
    """Registers the ECS service for one environment."""

    def __init__(self, clients: AwsClients, config: DeployConfig):
        self.clients = clients
        self.config = config
        self.names: ResourceNames = config.names

    def find_target_group(self, name: Optional[str] = None) -> Optional[str]:
        """Return the ARN of the named target group, or None if it does not exist."""
        name = name or self.names.target_group
        logger.info("Checking for ALB target group...")
        try:
            response = self.clients.elbv2.describe_target_groups(Names=[name])
        except ClientError as e:
            if is_tolerated(e, "describe_target_groups"):
                return None
            raise

        groups = response.get("TargetGroups", [])
        arn = groups[0].get("TargetGroupArn") if groups else None
        return arn or None

    def deploy(self, cluster: str, service_name: str, task_family: str, network: NetworkConfig,
               target_group_arn: Optional[str] = None, discover: bool = True) -> DeployOutcome:
        """
        Create the service; an existing service is left as it is.

        Args:
            cluster: Cluster name
            service_name: Service name
            task_family: Task definition family (latest ACTIVE revision is used)
            network: Network configuration for the tasks
            target_group_arn: Target group to bind; looked up when None and discover is set
            discover: Whether to look up the conventional target group

        Returns:
            DeployOutcome with CREATED or ALREADY_EXISTS
        """
        if target_group_arn is None and discover:
            target_group_arn = self.find_target_group()

        request = build_service_request(cluster, service_name, task_family, network,
                                        self.config, self.names.container, target_group_arn)
        variant = choose_variant(bool(target_group_arn))

        logger.info("Creating ECS service...")
        if variant is ServiceVariant.LOAD_BALANCED:
            logger.info("ALB target group found, creating service with load balancer integration...")
        else:
            logger.info("No ALB target group found, creating service without load balancer...")

        try:
            self.clients.ecs.create_service(**request)
        except ClientError as e:
            if not is_tolerated(e, "create_service"):
                raise
            # Existing services are not reconciled with the requested settings.
            logger.warning(f"Service {service_name} already exists; leaving its configuration unchanged")
            return DeployOutcome(service_name, EnsureResult.ALREADY_EXISTS, variant, request)

        logger.info(f"Created ECS service: {service_name}")
        return DeployOutcome(service_name, EnsureResult.CREATED, variant, request)
