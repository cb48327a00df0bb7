"""
AWS client wiring and account/network discovery.
"""

import logging
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .errors import AccountResolutionError, FatalError

logger = logging.getLogger(__name__)


@dataclass
class AwsClients:
    """The boto3 clients a run talks to."""
    ecs: Any
    logs: Any
    iam: Any
    ec2: Any
    elbv2: Any
    sts: Any
    ecr: Any

    @classmethod
    def create(cls, region: str, session: Optional[boto3.session.Session] = None) -> "AwsClients":
        session = session or boto3.session.Session(region_name=region)
        return cls(
            ecs=session.client("ecs", region_name=region),
            logs=session.client("logs", region_name=region),
            iam=session.client("iam", region_name=region),
            ec2=session.client("ec2", region_name=region),
            elbv2=session.client("elbv2", region_name=region),
            sts=session.client("sts", region_name=region),
            ecr=session.client("ecr", region_name=region),
        )


def resolve_account_id(sts) -> str:
    """
    Resolve the caller's AWS account id.

    Raises:
        AccountResolutionError: If the identity call fails or returns nothing
    """
    try:
        identity = sts.get_caller_identity()
    except (ClientError, BotoCoreError) as e:
        raise AccountResolutionError(f"Unable to get AWS account ID: {e}") from e

    account_id = identity.get("Account")
    if not account_id:
        raise AccountResolutionError("Unable to get AWS account ID: empty response")

    logger.info(f"AWS Account ID: {account_id}")
    return account_id


def default_network(ec2) -> Tuple[str, List[str]]:
    """
    Find the default VPC and its subnets.

    Returns:
        Tuple of (vpc_id, subnet_ids)
    """
    vpcs = ec2.describe_vpcs(Filters=[{"Name": "isDefault", "Values": ["true"]}]).get("Vpcs", [])
    if not vpcs:
        raise FatalError("No default VPC found")
    vpc_id = vpcs[0]["VpcId"]

    subnets = ec2.describe_subnets(Filters=[{"Name": "vpc-id", "Values": [vpc_id]}]).get("Subnets", [])
    subnet_ids = [s["SubnetId"] for s in subnets]
    if not subnet_ids:
        raise FatalError(f"No subnets found in default VPC {vpc_id}")

    logger.info(f"Default VPC: {vpc_id}, subnets: {', '.join(subnet_ids)}")
    return vpc_id, subnet_ids
