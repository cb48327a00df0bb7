"""
ecsdeploy - Idempotent provisioning and verification of ECS Fargate services.

This package provides a CLI that creates (or reuses) the cluster, log group,
IAM roles, security group and load-balancer wiring for a containerized
service, registers its task definition, and verifies the running service.
"""

__version__ = "0.1.0"
