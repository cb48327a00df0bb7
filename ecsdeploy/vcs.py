"""
Git operations for committing the generated deployment artifacts.
"""

import logging
import subprocess
from pathlib import Path
from typing import Callable, Iterable, List

logger = logging.getLogger(__name__)

ARTIFACT_PATTERNS = (
    ".github/workflows/ci-cd.yml",
    ".github/workflows/ci-cd-ecs.yml",
    "task-definition-*.json",
    "*.sh",
    "*.md",
)

COMMIT_MESSAGE = "feat: configure ECS as primary deployment"
BRANCH = "develop"


def collect_artifacts(workdir: Path, patterns: Iterable[str] = ARTIFACT_PATTERNS) -> List[str]:
    """Existing files under workdir matching the artifact patterns, relative and sorted."""
    found = set()
    for pattern in patterns:
        for path in workdir.glob(pattern):
            if path.is_file():
                found.add(str(path.relative_to(workdir)))
    return sorted(found)


def commit_and_push(workdir: Path, files: List[str],
                    runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
                    message: str = COMMIT_MESSAGE, branch: str = BRANCH) -> None:
    """
    Commit the artifacts and push them to the deployment branch.

    Raises:
        subprocess.CalledProcessError: If add, commit or push fails
    """
    def git(*args, check=True):
        return runner(["git", *args], cwd=str(workdir), check=check, capture_output=True, text=True)

    git("add", "--", *files)
    git("commit", "-m", message)

    checkout = git("checkout", branch, check=False)
    if checkout.returncode != 0:
        git("checkout", "-b", branch)

    git("push", "origin", branch)
    logger.info(f"Changes pushed to {branch}")
