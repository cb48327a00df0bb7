"""
Tests for configuration and error classification.
"""

from dataclasses import FrozenInstanceError

import pytest

from ecsdeploy.config import DeployConfig, parse_bool, EXECUTION_ROLE_POLICIES, TASK_ROLE_POLICIES
from ecsdeploy.errors import ConfigError, is_tolerated, error_code
from fake_aws import client_error


class TestDeployConfig:
    """Test configuration loading."""

    def test_defaults(self):
        config = DeployConfig.from_env({})

        assert config.env_prefix == "dev"
        assert config.region == "us-east-1"
        assert config.create_infra is False
        assert config.auto_commit is False
        assert config.container_port == 8080
        assert config.iam_settle_seconds == 10

    def test_from_env(self):
        config = DeployConfig.from_env({
            "ENV_PREFIX": "prod",
            "CREATE_INFRA": "true",
            "AUTO_COMMIT": "TRUE",
            "CONFIG_SECRETS": "no",
            "AWS_REGION": "eu-west-1",
            "GITHUB_REPO": "acme/api",
            "IAM_SETTLE_SECONDS": "3",
        })

        assert config.env_prefix == "prod"
        assert config.create_infra is True
        assert config.auto_commit is True
        assert config.configure_secrets is False
        assert config.region == "eu-west-1"
        assert config.github_repo == "acme/api"
        assert config.iam_settle_seconds == 3

    def test_invalid_integer(self):
        with pytest.raises(ConfigError, match="CONTAINER_PORT"):
            DeployConfig.from_env({"CONTAINER_PORT": "http"})

    def test_probe_timeout_is_bounded(self):
        with pytest.raises(ConfigError):
            DeployConfig(probe_timeout=30)

    def test_config_is_immutable(self):
        config = DeployConfig()
        with pytest.raises(FrozenInstanceError):
            config.env_prefix = "prod"

    def test_with_overrides_ignores_none(self):
        config = DeployConfig(env_prefix="dev", region="us-east-1")
        updated = config.with_overrides(env_prefix="prod", region=None)

        assert updated.env_prefix == "prod"
        assert updated.region == "us-east-1"
        assert config.env_prefix == "dev"

    def test_parse_bool(self):
        assert parse_bool("true")
        assert parse_bool(" Yes ")
        assert parse_bool("1")
        assert not parse_bool("false")
        assert not parse_bool("")
        assert not parse_bool(None)


class TestResourceNames:
    """Test derived resource names."""

    def test_names_follow_env_prefix(self):
        names = DeployConfig(env_prefix="prod").names

        assert names.cluster == "prod-ecs-cluster"
        assert names.log_group == "/ecs/prod-java-api"
        assert names.service == "prod-java-api-service"
        assert names.task_family == "prod-java-api-task"
        assert names.target_group == "prod-java-api-tg"
        assert names.lb_security_group == "prod-java-api-task-sg"
        assert names.ecs_security_group == "prod-java-api-ecs-sg"
        assert names.container == "java-api"

    def test_roles(self):
        execution, task = DeployConfig().roles

        assert execution.name == "ecsTaskExecutionRole"
        assert execution.policy_arns == frozenset(EXECUTION_ROLE_POLICIES)
        assert task.name == "ecsTaskRole"
        assert task.policy_arns == frozenset(TASK_ROLE_POLICIES)
        assert execution.trust_policy["Statement"][0]["Principal"]["Service"] == "ecs-tasks.amazonaws.com"


class TestErrorClassification:
    """Test typed tolerance of already-exists errors."""

    def test_tolerated_codes(self):
        assert is_tolerated(client_error("ResourceAlreadyExistsException"), "create_log_group")
        assert is_tolerated(client_error("EntityAlreadyExists"), "create_role")
        assert is_tolerated(client_error("InvalidGroup.Duplicate"), "create_security_group")
        assert is_tolerated(client_error("InvalidPermission.Duplicate"), "authorize_security_group_ingress")
        assert is_tolerated(client_error("ClusterNotFoundException"), "describe_services")

    def test_code_must_match_operation(self):
        assert not is_tolerated(client_error("EntityAlreadyExists"), "create_log_group")
        assert not is_tolerated(client_error("AccessDeniedException"), "create_log_group")
        assert not is_tolerated(client_error("ResourceAlreadyExistsException"), "unknown_operation")

    def test_create_service_requires_exists_message(self):
        exists = client_error("InvalidParameterException", "Creation of service was not idempotent.")
        invalid = client_error("InvalidParameterException", "subnets can not be empty.")

        assert is_tolerated(exists, "create_service")
        assert not is_tolerated(invalid, "create_service")

    def test_non_client_errors_are_not_tolerated(self):
        assert not is_tolerated(RuntimeError("already exists"), "create_role")

    def test_error_code(self):
        assert error_code(client_error("TargetGroupNotFound")) == "TargetGroupNotFound"
