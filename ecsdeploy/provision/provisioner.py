"""
Resource provisioner: ensures the cluster, log group, IAM roles and security
group exist before the service is created.

Every ensure_* call either creates the resource or reports it as already
existing. Only the error codes in errors.TOLERATED_CODES are treated as
"already exists"; authorization and validation errors propagate.
"""

import json
import logging
import time
from typing import Callable, List, Optional, Set

from botocore.exceptions import ClientError

from ..aws import AwsClients, default_network
from ..config import DeployConfig, RoleSpec
from ..errors import is_tolerated
from .models import EnsureResult, ProvisionResult, ResourceOutcome

logger = logging.getLogger(__name__)

ANY_IPV4 = "0.0.0.0/0"


class ResourceProvisioner:
    """Creates or reuses the infrastructure for one environment."""

    def __init__(self, clients: AwsClients, config: DeployConfig,
                 sleep: Callable[[float], None] = time.sleep):
        self.clients = clients
        self.config = config
        self.names = config.names
        self._sleep = sleep

    def ensure_cluster(self) -> ResourceOutcome:
        """Create the ECS cluster unless an ACTIVE one with the same name exists."""
        name = self.names.cluster
        logger.info(f"Creating ECS cluster: {name}...")

        clusters = self.clients.ecs.describe_clusters(clusters=[name]).get("clusters", [])
        for cluster in clusters:
            if cluster.get("status") == "ACTIVE":
                logger.warning(f"Cluster {name} already exists")
                return ResourceOutcome("cluster", name, EnsureResult.ALREADY_EXISTS, cluster.get("clusterArn"))

        response = self.clients.ecs.create_cluster(clusterName=name)
        arn = response["cluster"]["clusterArn"]
        logger.info(f"Created ECS cluster: {name}")
        return ResourceOutcome("cluster", name, EnsureResult.CREATED, arn)

    def ensure_log_group(self) -> ResourceOutcome:
        name = self.names.log_group
        logger.info(f"Creating CloudWatch log group: {name}...")
        try:
            self.clients.logs.create_log_group(logGroupName=name)
        except ClientError as e:
            if not is_tolerated(e, "create_log_group"):
                raise
            logger.warning(f"Log group {name} already exists")
            return ResourceOutcome("log_group", name, EnsureResult.ALREADY_EXISTS, name)

        logger.info(f"Created log group: {name}")
        return ResourceOutcome("log_group", name, EnsureResult.CREATED, name)

    def ensure_role(self, spec: RoleSpec) -> List[ResourceOutcome]:
        """
        Create an IAM role and attach its managed policies.

        Role creation and each policy attachment are independently idempotent.
        A failed attachment is logged and does not abort provisioning.

        Args:
            spec: Role name, trust policy and policy ARNs

        Returns:
            Outcome for the role followed by one outcome per attached policy
        """
        outcomes = []
        try:
            response = self.clients.iam.create_role(
                RoleName=spec.name,
                AssumeRolePolicyDocument=json.dumps(spec.trust_policy),
            )
            logger.info(f"Created IAM role: {spec.name}")
            outcomes.append(ResourceOutcome("role", spec.name, EnsureResult.CREATED,
                                            response["Role"]["Arn"]))
        except ClientError as e:
            if not is_tolerated(e, "create_role"):
                raise
            logger.warning(f"{spec.name} already exists")
            outcomes.append(ResourceOutcome("role", spec.name, EnsureResult.ALREADY_EXISTS))

        attached = self._attached_policies(spec.name)
        for policy_arn in sorted(spec.policy_arns):
            if policy_arn in attached:
                outcomes.append(ResourceOutcome("policy", policy_arn, EnsureResult.ALREADY_EXISTS,
                                                details={"role": spec.name}))
                continue
            try:
                self.clients.iam.attach_role_policy(RoleName=spec.name, PolicyArn=policy_arn)
            except ClientError as e:
                logger.warning(f"Failed to attach {policy_arn} to {spec.name}: {e}")
                continue
            outcomes.append(ResourceOutcome("policy", policy_arn, EnsureResult.CREATED,
                                            details={"role": spec.name}))

        return outcomes

    def _attached_policies(self, role_name: str) -> Set[str]:
        try:
            paginator = self.clients.iam.get_paginator("list_attached_role_policies")
            arns = set()
            for page in paginator.paginate(RoleName=role_name):
                for policy in page.get("AttachedPolicies", []):
                    arns.add(policy["PolicyArn"])
            return arns
        except ClientError as e:
            logger.warning(f"Could not list policies attached to {role_name}: {e}")
            return set()

    def ensure_roles(self) -> List[ResourceOutcome]:
        """Ensure both task roles, then wait for IAM to propagate new roles or attachments."""
        logger.info("Creating IAM roles...")
        outcomes = []
        for spec in self.config.roles:
            outcomes.extend(self.ensure_role(spec))

        if any(o.kind in ("role", "policy") and o.created for o in outcomes):
            self.wait_for_iam()
        return outcomes

    def wait_for_iam(self) -> None:
        """Fixed settling delay: IAM role linkage is eventually consistent."""
        delay = self.config.iam_settle_seconds
        if delay <= 0:
            return
        logger.info(f"Waiting {delay:g} seconds for IAM roles to propagate...")
        self._sleep(delay)

    def find_security_group(self, name: str, vpc_id: Optional[str] = None) -> Optional[str]:
        """Return the id of the security group with this name, or None."""
        filters = [{"Name": "group-name", "Values": [name]}]
        if vpc_id:
            filters.append({"Name": "vpc-id", "Values": [vpc_id]})
        try:
            response = self.clients.ec2.describe_security_groups(Filters=filters)
        except ClientError as e:
            if is_tolerated(e, "describe_security_groups"):
                return None
            raise
        groups = response.get("SecurityGroups", [])
        return groups[0]["GroupId"] if groups else None

    def ensure_security_group(self, vpc_id: str) -> List[ResourceOutcome]:
        """
        Reuse the load balancer's task security group, or own one.

        The group named after the load-balancer convention always wins and is
        used as-is. Otherwise the deployment-owned group is created (or looked
        up) and opened on the container port.

        Args:
            vpc_id: VPC the service runs in

        Returns:
            Outcomes; the first one carries the security group id
        """
        logger.info("Checking for existing ALB security group...")
        lb_group_id = self.find_security_group(self.names.lb_security_group, vpc_id)
        if lb_group_id:
            logger.info(f"Using ALB security group: {lb_group_id}")
            return [ResourceOutcome("security_group", self.names.lb_security_group,
                                    EnsureResult.ALREADY_EXISTS, lb_group_id,
                                    details={"owner": "load_balancer"})]

        logger.info("ALB security group not found, creating new security group...")
        name = self.names.ecs_security_group
        try:
            response = self.clients.ec2.create_security_group(
                GroupName=name,
                Description=f"Security group for {self.config.app_name} ECS",
                VpcId=vpc_id,
            )
            group = ResourceOutcome("security_group", name, EnsureResult.CREATED, response["GroupId"],
                                    details={"owner": "deployment"})
            logger.info(f"Created security group {name}: {group.identifier}")
        except ClientError as e:
            if not is_tolerated(e, "create_security_group"):
                raise
            group_id = self.find_security_group(name, vpc_id)
            if not group_id:
                raise
            logger.warning(f"Security group {name} already exists: {group_id}")
            group = ResourceOutcome("security_group", name, EnsureResult.ALREADY_EXISTS, group_id,
                                    details={"owner": "deployment"})

        return [group, self.ensure_ingress(group.identifier)]

    def ensure_ingress(self, group_id: str) -> ResourceOutcome:
        port = self.config.container_port
        rule = f"tcp/{port}/{ANY_IPV4}"
        try:
            self.clients.ec2.authorize_security_group_ingress(
                GroupId=group_id,
                IpPermissions=[{
                    "IpProtocol": "tcp",
                    "FromPort": port,
                    "ToPort": port,
                    "IpRanges": [{"CidrIp": ANY_IPV4}],
                }],
            )
        except ClientError as e:
            if not is_tolerated(e, "authorize_security_group_ingress"):
                raise
            logger.warning(f"Security group rule {rule} already exists")
            return ResourceOutcome("ingress", rule, EnsureResult.ALREADY_EXISTS, group_id)

        logger.info(f"Opened {rule} on {group_id}")
        return ResourceOutcome("ingress", rule, EnsureResult.CREATED, group_id)

    def provision(self, vpc_id: Optional[str] = None, subnet_ids: Optional[List[str]] = None) -> ProvisionResult:
        """Run every ensure step in order and collect the outcomes."""
        result = ProvisionResult()
        result.outcomes.append(self.ensure_cluster())
        result.outcomes.append(self.ensure_log_group())
        result.outcomes.extend(self.ensure_roles())

        if not vpc_id or not subnet_ids:
            logger.info("Creating VPC resources...")
            vpc_id, subnet_ids = default_network(self.clients.ec2)
        result.vpc_id = vpc_id
        result.subnet_ids = list(subnet_ids)

        sg_outcomes = self.ensure_security_group(vpc_id)
        result.outcomes.extend(sg_outcomes)
        result.security_group_id = sg_outcomes[0].identifier
        return result
