"""
Orchestrator: sequences prerequisites, template resolution, provisioning,
service deployment and the optional CI steps of one run.

Prerequisites, account resolution, task definition registration and
control-plane errors during provisioning abort the run. The secrets and
commit steps are isolated: their failure is recorded and the run continues.
"""

import logging
import os
import shutil
import subprocess
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, List, Mapping, Optional

from .aws import AwsClients, resolve_account_id
from .config import DeployConfig
from .github_secrets import build_secrets, missing_inputs, set_secrets
from .prereq import PrerequisiteReport, check_prerequisites
from .provision import ProvisionResult, ResourceProvisioner
from .service import DeployOutcome, NetworkConfig, ServiceDeployer
from .taskdef import (RegisteredTaskDefinition, load_task_definition, register_task_definition,
                      update_task_definition_files)
from .vcs import collect_artifacts, commit_and_push
from .verify import DeploymentSnapshot, DeploymentVerifier

logger = logging.getLogger(__name__)

STEPS = (
    "update_task_definitions",
    "create_ecs_infrastructure",
    "configure_github_secrets",
    "commit_and_deploy",
)


class StepStatus(Enum):
    OK = "ok"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class StepResult:
    name: str
    status: StepStatus
    detail: str = ""


@dataclass
class RunReport:
    """What a run did, step by step."""
    steps: List[StepResult] = field(default_factory=list)
    account_id: Optional[str] = None
    provision: Optional[ProvisionResult] = None
    task_definition: Optional[RegisteredTaskDefinition] = None
    deployment: Optional[DeployOutcome] = None

    @property
    def ok(self) -> bool:
        return all(step.status is not StepStatus.FAILED for step in self.steps)

    def record(self, name: str, status: StepStatus, detail: str = "") -> StepResult:
        result = StepResult(name, status, detail)
        self.steps.append(result)
        if status is StepStatus.SKIPPED:
            logger.info(f"Skipping {name}: {detail}")
        elif status is StepStatus.FAILED:
            logger.error(f"{name} failed: {detail}")
        return result


class Orchestrator:
    """Runs the provisioning workflow for one environment."""

    def __init__(self, config: DeployConfig, clients: Optional[AwsClients] = None,
                 workdir: Path = Path("."),
                 environ: Optional[Mapping[str, str]] = None,
                 runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
                 which: Callable[[str], Optional[str]] = shutil.which,
                 prerequisites: Callable[..., PrerequisiteReport] = check_prerequisites,
                 sleep: Callable[[float], None] = time.sleep):
        self.config = config
        self._clients = clients
        self.workdir = Path(workdir)
        self.environ = os.environ if environ is None else environ
        self._runner = runner
        self._which = which
        self._prerequisites = prerequisites
        self._sleep = sleep

    @property
    def clients(self) -> AwsClients:
        if self._clients is None:
            self._clients = AwsClients.create(self.config.region)
        return self._clients

    def run(self) -> RunReport:
        """
        Run every enabled step in order.

        Returns:
            RunReport; ``ok`` is False when an isolated step failed

        Raises:
            FatalError: On a prerequisite, account or task definition failure
            botocore.exceptions.ClientError: On a non-tolerated control-plane error
        """
        report = RunReport()
        prereqs = self._prerequisites(which=self._which)

        if self.config.interactive:
            logger.info("Interactive mode: run individual steps instead:")
            for name in STEPS:
                logger.info(f"  {name}")
            return report

        report.account_id = resolve_account_id(self.clients.sts)

        self.update_task_definitions(report.account_id)
        report.record("update_task_definitions", StepStatus.OK)

        if self.config.create_infra:
            self.create_infrastructure(report)
            report.record("create_ecs_infrastructure", StepStatus.OK,
                          f"service {report.deployment.result.value}")
        else:
            report.record("create_ecs_infrastructure", StepStatus.SKIPPED, "CREATE_INFRA not enabled")

        if self.config.configure_secrets:
            self._configure_secrets(report, gh_available=prereqs.gh)
        else:
            report.record("configure_github_secrets", StepStatus.SKIPPED, "CONFIG_SECRETS not enabled")

        if self.config.auto_commit:
            self._commit(report)
        else:
            report.record("commit_and_deploy", StepStatus.SKIPPED,
                          "AUTO_COMMIT not enabled; review and commit manually if needed")

        logger.info("Setup complete!")
        return report

    def update_task_definitions(self, account_id: str):
        logger.info("Updating task definition templates...")
        paths = [self.workdir / name for name in self.config.task_definition_files]
        return update_task_definition_files(paths, account_id, self.config.account_placeholder)

    def create_infrastructure(self, report: RunReport) -> RunReport:
        """Provision, register the task definition, then create the service."""
        logger.info("Creating ECS infrastructure...")
        provisioner = ResourceProvisioner(self.clients, self.config, sleep=self._sleep)
        report.provision = provisioner.provision()

        report.task_definition = self.register_task_definition()
        report.deployment = self.deploy_service(report.provision, report.task_definition.family)
        logger.info("ECS infrastructure created!")
        return report

    def register_task_definition(self) -> RegisteredTaskDefinition:
        path = self.workdir / self.config.task_definition_file()
        document = load_task_definition(path, self.config.account_placeholder)
        registered = register_task_definition(self.clients.ecs, document)
        if registered.family != self.config.names.task_family:
            logger.warning(f"Task definition family {registered.family} does not match "
                           f"{self.config.names.task_family}")
        return registered

    def deploy_service(self, provision: ProvisionResult, task_family: Optional[str] = None) -> DeployOutcome:
        names = self.config.names
        network = NetworkConfig(subnets=provision.subnet_ids, security_groups=[provision.security_group_id])
        deployer = ServiceDeployer(self.clients, self.config)
        return deployer.deploy(names.cluster, names.service, task_family or names.task_family, network)

    def _configure_secrets(self, report: RunReport, gh_available: bool) -> None:
        name = "configure_github_secrets"
        if not gh_available:
            report.record(name, StepStatus.SKIPPED, "GitHub CLI not available; set secrets manually")
            return
        missing = missing_inputs(self.config, self.environ)
        if missing:
            report.record(name, StepStatus.SKIPPED, f"{', '.join(missing)} not set")
            return

        logger.info(f"Setting secrets for {self.config.github_repo}...")
        try:
            secrets = build_secrets(self.config, report.account_id, self.environ)
            names = set_secrets(self.config.github_repo, secrets, runner=self._runner)
        except (subprocess.CalledProcessError, OSError) as e:
            report.record(name, StepStatus.FAILED, str(e))
            return
        report.record(name, StepStatus.OK, f"{len(names)} secrets set")

    def _commit(self, report: RunReport) -> None:
        name = "commit_and_deploy"
        files = collect_artifacts(self.workdir)
        if not files:
            report.record(name, StepStatus.SKIPPED, "no artifacts to commit")
            return
        try:
            commit_and_push(self.workdir, files, runner=self._runner)
        except (subprocess.CalledProcessError, OSError) as e:
            report.record(name, StepStatus.FAILED, str(e))
            return
        report.record(name, StepStatus.OK, f"{len(files)} files committed")

    def verify(self, cluster: Optional[str] = None, service: Optional[str] = None) -> DeploymentSnapshot:
        """Verify an already-deployed service; independent of run()."""
        return DeploymentVerifier(self.clients, self.config).verify(cluster, service)
