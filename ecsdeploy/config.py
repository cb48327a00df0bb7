"""
Deployment configuration built once from the environment.
"""

import os
from dataclasses import dataclass, field, replace
from typing import Dict, Mapping, Optional, Tuple

from .errors import ConfigError

DEFAULT_REGION = "us-east-1"
MAX_PROBE_TIMEOUT = 5.0

ECS_TASKS_TRUST_POLICY = {
    "Version": "2012-10-17",
    "Statement": [{
        "Effect": "Allow",
        "Principal": {"Service": "ecs-tasks.amazonaws.com"},
        "Action": "sts:AssumeRole"
    }]
}

EXECUTION_ROLE_POLICIES = (
    "arn:aws:iam::aws:policy/service-role/AmazonECSTaskExecutionRolePolicy",
    "arn:aws:iam::aws:policy/AmazonEC2ContainerRegistryReadOnly",
)

TASK_ROLE_POLICIES = (
    "arn:aws:iam::aws:policy/AmazonS3FullAccess",
    "arn:aws:iam::aws:policy/AmazonDynamoDBFullAccess",
)

_TRUE_VALUES = {"true", "1", "yes"}


def parse_bool(value: Optional[str]) -> bool:
    """Only an explicit true/1/yes enables a flag."""
    if value is None:
        return False
    return value.strip().lower() in _TRUE_VALUES


def _parse_int(environ: Mapping[str, str], key: str, default: int) -> int:
    raw = environ.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{key} must be an integer, got {raw!r}")


@dataclass(frozen=True)
class RoleSpec:
    """An IAM role and the managed policies it must carry."""
    name: str
    policy_arns: frozenset
    trust_policy: Dict = field(default_factory=lambda: ECS_TASKS_TRUST_POLICY)


@dataclass(frozen=True)
class ResourceNames:
    """Names of every resource derived from the environment prefix."""
    cluster: str
    log_group: str
    service: str
    task_family: str
    target_group: str
    lb_security_group: str
    ecs_security_group: str
    container: str


@dataclass(frozen=True)
class DeployConfig:
    """Immutable configuration shared by every component of a run."""
    env_prefix: str = "dev"
    region: str = DEFAULT_REGION
    create_infra: bool = False
    configure_secrets: bool = False
    auto_commit: bool = False
    interactive: bool = False
    app_name: str = "java-api"
    container_name: Optional[str] = None
    container_port: int = 8080
    desired_count: int = 1
    launch_type: str = "FARGATE"
    health_check_grace_period: int = 120
    iam_settle_seconds: float = 10.0
    health_path: str = "/api/actuator/health"
    probe_timeout: float = MAX_PROBE_TIMEOUT
    events_limit: int = 3
    log_tail_minutes: int = 5
    github_repo: Optional[str] = None
    task_definition_files: Tuple[str, ...] = ("task-definition-dev.json", "task-definition-prod.json")
    account_placeholder: str = "YOUR_ACCOUNT_ID"
    execution_role: str = "ecsTaskExecutionRole"
    task_role: str = "ecsTaskRole"

    def __post_init__(self):
        if not self.env_prefix:
            raise ConfigError("Environment prefix must not be empty")
        if self.container_port <= 0 or self.container_port > 65535:
            raise ConfigError(f"Invalid container port: {self.container_port}")
        if self.iam_settle_seconds < 0:
            raise ConfigError("IAM settle delay must not be negative")
        if self.probe_timeout <= 0 or self.probe_timeout > MAX_PROBE_TIMEOUT:
            raise ConfigError(f"Probe timeout must be in (0, {MAX_PROBE_TIMEOUT}] seconds")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "DeployConfig":
        """
        Build the configuration from environment-style key/value pairs.

        Args:
            environ: Mapping to read from (defaults to os.environ)

        Returns:
            DeployConfig

        Raises:
            ConfigError: If a numeric option cannot be parsed
        """
        if environ is None:
            environ = os.environ

        region = environ.get("AWS_REGION") or environ.get("AWS_DEFAULT_REGION") or DEFAULT_REGION

        return cls(
            env_prefix=environ.get("ENV_PREFIX") or "dev",
            region=region,
            create_infra=parse_bool(environ.get("CREATE_INFRA")),
            configure_secrets=parse_bool(environ.get("CONFIG_SECRETS")),
            auto_commit=parse_bool(environ.get("AUTO_COMMIT")),
            interactive=parse_bool(environ.get("INTERACTIVE")),
            app_name=environ.get("APP_NAME") or "java-api",
            container_port=_parse_int(environ, "CONTAINER_PORT", 8080),
            iam_settle_seconds=_parse_int(environ, "IAM_SETTLE_SECONDS", 10),
            github_repo=environ.get("GITHUB_REPO") or None,
        )

    def with_overrides(self, **changes) -> "DeployConfig":
        """Return a copy with the non-None values in changes applied."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})

    @property
    def names(self) -> ResourceNames:
        env, app = self.env_prefix, self.app_name
        return ResourceNames(
            cluster=f"{env}-ecs-cluster",
            log_group=f"/ecs/{env}-{app}",
            service=f"{env}-{app}-service",
            task_family=f"{env}-{app}-task",
            target_group=f"{env}-{app}-tg",
            lb_security_group=f"{env}-{app}-task-sg",
            ecs_security_group=f"{env}-{app}-ecs-sg",
            container=self.container_name or app,
        )

    @property
    def roles(self) -> Tuple[RoleSpec, RoleSpec]:
        return (
            RoleSpec(self.execution_role, frozenset(EXECUTION_ROLE_POLICIES)),
            RoleSpec(self.task_role, frozenset(TASK_ROLE_POLICIES)),
        )

    def task_definition_file(self) -> str:
        """Template file for the current environment."""
        return f"task-definition-{self.env_prefix}.json"
