"""
GitHub Actions secrets for the CI/CD pipeline, set through the gh CLI.
"""

from __future__ import annotations

import logging
import subprocess
from typing import Callable, Dict, List, Mapping

from .config import DeployConfig

logger = logging.getLogger(__name__)


def build_secrets(config: DeployConfig, account_id: str, environ: Mapping[str, str]) -> Dict[str, str]:
    names = config.names
    suffix = config.env_prefix.upper()
    return {
        "AWS_ACCESS_KEY_ID": environ["AWS_ACCESS_KEY_ID"],
        "AWS_SECRET_ACCESS_KEY": environ["AWS_SECRET_ACCESS_KEY"],
        "AWS_REGION": config.region,
        "ECR_REGISTRY": f"{account_id}.dkr.ecr.{config.region}.amazonaws.com",
        f"ECS_CLUSTER_{suffix}": names.cluster,
        f"ECS_SERVICE_{suffix}": names.service,
        f"ECS_TASK_FAMILY_{suffix}": names.task_family,
    }


def missing_inputs(config: DeployConfig, environ: Mapping[str, str]) -> List[str]:
    missing = []
    if not config.github_repo:
        missing.append("GITHUB_REPO")
    for key in ("AWS_ACCESS_KEY_ID", "AWS_SECRET_ACCESS_KEY"):
        if not environ.get(key):
            missing.append(key)
    return missing


def set_secrets(repo: str, secrets: Dict[str, str],
                runner: Callable[..., subprocess.CompletedProcess] = subprocess.run) -> List[str]:
    names: List[str] = []
    for name, value in secrets.items():
        cmd = ["gh", "secret", "set", name, "--repo", repo]
        runner(cmd, input=value, check=True, capture_output=True, text=True)
        names.append(name)
    logger.info(f"Set {len(names)} secrets on {repo}")
    return names
