"""
Prerequisite checks for local tooling and AWS credentials.
"""

import logging
import shutil
from dataclasses import dataclass, field
from typing import Callable, List, Optional

import boto3

from .errors import PrerequisiteError

logger = logging.getLogger(__name__)


@dataclass
class PrerequisiteReport:
    git: bool
    gh: bool
    credentials: bool
    warnings: List[str] = field(default_factory=list)


def check_prerequisites(which: Callable[[str], Optional[str]] = shutil.which,
                        session: Optional[boto3.session.Session] = None) -> PrerequisiteReport:
    """
    Check that git and AWS credentials are available.

    The GitHub CLI is optional; without it the secrets step is skipped.

    Raises:
        PrerequisiteError: If git or AWS credentials are missing
    """
    logger.info("Checking prerequisites...")

    session = session or boto3.session.Session()
    if session.get_credentials() is None:
        raise PrerequisiteError("AWS credentials not found. Configure them first: aws configure")

    if not which("git"):
        raise PrerequisiteError("Git not found.")

    report = PrerequisiteReport(git=True, gh=bool(which("gh")), credentials=True)
    if not report.gh:
        message = "GitHub CLI not found. You'll need to set secrets manually."
        logger.warning(message)
        report.warnings.append(message)

    logger.info("Prerequisites check passed!")
    return report
