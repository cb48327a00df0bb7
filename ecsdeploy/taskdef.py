"""
Task definition templates: account id substitution and registration.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Tuple

from botocore.exceptions import BotoCoreError, ClientError

from .errors import TaskDefinitionError

logger = logging.getLogger(__name__)

# Fields returned by describe_task_definition that registration rejects.
_READ_ONLY_KEYS = (
    "taskDefinitionArn", "revision", "status", "requiresAttributes",
    "compatibilities", "registeredAt", "registeredBy", "deregisteredAt",
)


@dataclass
class TemplateUpdate:
    """Result of resolving the placeholder in one template file."""
    path: Path
    found: bool
    replaced: int = 0


@dataclass
class RegisteredTaskDefinition:
    family: str
    revision: int
    arn: str


def substitute_account_id(text: str, account_id: str, placeholder: str = "YOUR_ACCOUNT_ID") -> Tuple[str, int]:
    """
    Replace every occurrence of the placeholder with the account id.

    Running it again on its own output is a no-op.

    Returns:
        Tuple of (new_text, number_of_replacements)
    """
    if not account_id:
        raise ValueError("Account id must not be empty")
    count = text.count(placeholder)
    if count == 0:
        return text, 0
    return text.replace(placeholder, account_id), count


def update_task_definition_files(paths: Iterable[Path], account_id: str,
                                 placeholder: str = "YOUR_ACCOUNT_ID") -> List[TemplateUpdate]:
    """
    Resolve the account placeholder in each template file in place.

    Missing files are reported and skipped. Files that no longer contain the
    placeholder are left untouched.

    Args:
        paths: Template files to update
        account_id: Real AWS account id
        placeholder: Placeholder string in the templates

    Returns:
        One TemplateUpdate per path
    """
    updates = []
    for path in paths:
        path = Path(path)
        if not path.exists():
            logger.warning(f"{path.name} not found")
            updates.append(TemplateUpdate(path, found=False))
            continue

        text = path.read_text()
        new_text, count = substitute_account_id(text, account_id, placeholder)
        if count:
            path.write_text(new_text)
            logger.info(f"Updated {path.name} ({count} replacement(s))")
        else:
            logger.info(f"{path.name} already resolved")
        updates.append(TemplateUpdate(path, found=True, replaced=count))

    return updates


def load_task_definition(path: Path, placeholder: str = "YOUR_ACCOUNT_ID") -> Dict[str, Any]:
    """
    Load a task definition document for registration.

    Raises:
        TaskDefinitionError: If the file is missing, is not a JSON object, or
            still contains the unresolved account placeholder
    """
    path = Path(path)
    if not path.exists():
        raise TaskDefinitionError(f"Task definition file not found: {path}")

    text = path.read_text()
    if placeholder in text:
        raise TaskDefinitionError(f"{path.name} still contains {placeholder}; resolve the account id first")

    try:
        document = json.loads(text)
    except json.JSONDecodeError as e:
        raise TaskDefinitionError(f"Invalid JSON in {path.name}: {e}") from e

    if not isinstance(document, dict) or not document.get("family"):
        raise TaskDefinitionError(f"{path.name} has no task definition family")
    return document


def register_task_definition(ecs, document: Dict[str, Any]) -> RegisteredTaskDefinition:
    """Register a new revision. Any failure is fatal."""
    family = document.get("family")
    logger.info(f"Registering task definition {family}...")
    request = {k: v for k, v in document.items() if k not in _READ_ONLY_KEYS}
    try:
        response = ecs.register_task_definition(**request)
    except (ClientError, BotoCoreError) as e:
        raise TaskDefinitionError(f"Failed to register task definition {family}: {e}") from e

    task_def = response["taskDefinition"]
    registered = RegisteredTaskDefinition(
        family=task_def["family"],
        revision=task_def["revision"],
        arn=task_def["taskDefinitionArn"],
    )
    logger.info(f"Registered {registered.family}:{registered.revision}")
    return registered
