"""
Error taxonomy and typed classification of control-plane errors.

Fatal errors abort the run. "Already exists" responses are tolerated only for
the exact error codes listed per operation below; anything else propagates.
"""

from typing import Dict, FrozenSet, Optional

from botocore.exceptions import ClientError


class DeployError(Exception):
    """Base class for all errors raised by ecsdeploy."""


class FatalError(DeployError):
    """An error that aborts the whole run."""


class ConfigError(FatalError):
    """Invalid configuration value."""


class PrerequisiteError(FatalError):
    """Required local tooling or credentials are missing."""


class AccountResolutionError(FatalError):
    """The caller's AWS account id could not be resolved."""


class TaskDefinitionError(FatalError):
    """A task definition could not be loaded or registered."""


# Operation -> error codes that mean "the resource is already there".
TOLERATED_CODES: Dict[str, FrozenSet[str]] = {
    "create_log_group": frozenset({"ResourceAlreadyExistsException"}),
    "create_role": frozenset({"EntityAlreadyExists"}),
    "create_security_group": frozenset({"InvalidGroup.Duplicate"}),
    "authorize_security_group_ingress": frozenset({"InvalidPermission.Duplicate"}),
    "create_service": frozenset({"InvalidParameterException"}),
    "describe_target_groups": frozenset({"TargetGroupNotFound"}),
    "describe_security_groups": frozenset({"InvalidGroup.NotFound"}),
    "describe_services": frozenset({"ClusterNotFoundException"}),
}

# ECS has no dedicated code for an existing service; the message tells.
_SERVICE_EXISTS_MARKERS = ("already exists", "not idempotent")


def error_code(exc: ClientError) -> Optional[str]:
    """Extract the error code from a ClientError."""
    return exc.response.get("Error", {}).get("Code")


def error_message(exc: ClientError) -> str:
    return exc.response.get("Error", {}).get("Message", "") or ""


def is_tolerated(exc: BaseException, operation: str) -> bool:
    """
    Check whether an error is an expected outcome of operation, such as an
    existing resource on create or a missing one on describe.

    Args:
        exc: Exception raised by a boto3 call
        operation: Name of the boto3 operation that raised it

    Returns:
        True only for a ClientError whose code is tolerated for operation
    """
    if not isinstance(exc, ClientError):
        return False

    code = error_code(exc)
    if code not in TOLERATED_CODES.get(operation, frozenset()):
        return False

    if operation == "create_service":
        message = error_message(exc).lower()
        return any(marker in message for marker in _SERVICE_EXISTS_MARKERS)

    return True
