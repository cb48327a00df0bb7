"""Main CLI entrypoint for ecsdeploy."""

import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict

import click
from botocore.exceptions import BotoCoreError, ClientError

from ..aws import resolve_account_id
from ..config import DeployConfig
from ..errors import DeployError
from ..orchestrator import Orchestrator, RunReport
from ..prereq import check_prerequisites
from ..provision import ResourceProvisioner
from ..verify import Verdict, render_summary, snapshot_to_dict

logger = logging.getLogger(__name__)


@click.group()
@click.option('--region', help='AWS region (overrides AWS_REGION)')
@click.option('--json', 'output_json', is_flag=True, help='Output machine-readable JSON')
@click.option('--verbose', '-v', is_flag=True, help='Enable debug logging')
@click.pass_context
def main(ctx, region, output_json, verbose):
    """ecsdeploy - Provision and verify ECS Fargate services."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj['json'] = output_json
    try:
        ctx.obj['config'] = DeployConfig.from_env().with_overrides(region=region)
    except DeployError as e:
        _fail(f"Invalid configuration: {e}", output_json)


def _json_output(data: Dict[str, Any]) -> None:
    """Output data as JSON."""
    click.echo(json.dumps(data, indent=None, default=str))


def _human_output(message: str) -> None:
    """Output human-readable message."""
    if not click.get_current_context().obj.get('json', False):
        click.echo(message)


def _fail(message: str, output_json: bool, code: int = 1) -> None:
    if output_json:
        _json_output({'error': message})
    else:
        click.echo(f"❌ {message}", err=True)
    sys.exit(code)


def _config(ctx, env_prefix=None, **overrides) -> DeployConfig:
    try:
        return ctx.obj['config'].with_overrides(env_prefix=env_prefix, **overrides)
    except DeployError as e:
        _fail(f"Invalid configuration: {e}", ctx.obj['json'])


def _run_guarded(ctx, action, label):
    """Run action, turning fatal and control-plane errors into exit code 1."""
    try:
        return action()
    except DeployError as e:
        _fail(f"{label} failed: {e}", ctx.obj['json'])
    except (ClientError, BotoCoreError) as e:
        _fail(f"{label} failed: AWS error: {e}", ctx.obj['json'])


@main.command()
@click.pass_context
def check(ctx):
    """Check local tooling and AWS credentials."""
    report = _run_guarded(ctx, check_prerequisites, "Prerequisite check")
    if ctx.obj['json']:
        _json_output(asdict(report))
    else:
        _human_output("✅ Prerequisites check passed!")
        for warning in report.warnings:
            _human_output(f"⚠️  {warning}")


@main.command('update-task-defs')
@click.option('--dir', 'workdir', default='.', type=click.Path(file_okay=False), help='Directory with task definition templates')
@click.pass_context
def update_task_defs(ctx, workdir):
    """Resolve the account id placeholder in task definition templates."""
    orchestrator = Orchestrator(_config(ctx), workdir=Path(workdir))

    def action():
        account_id = resolve_account_id(orchestrator.clients.sts)
        return account_id, orchestrator.update_task_definitions(account_id)

    account_id, updates = _run_guarded(ctx, action, "Task definition update")
    if ctx.obj['json']:
        _json_output({
            'account_id': account_id,
            'files': [{'path': str(u.path), 'found': u.found, 'replaced': u.replaced} for u in updates],
        })
        return

    _human_output(f"✓ AWS Account ID: {account_id}")
    for update in updates:
        if not update.found:
            _human_output(f"⚠ Warning: {update.path.name} not found")
        elif update.replaced:
            _human_output(f"✓ Updated {update.path.name}")
        else:
            _human_output(f"✓ {update.path.name} already up to date")


@main.command()
@click.option('--env', 'env_prefix', help='Environment prefix (overrides ENV_PREFIX)')
@click.pass_context
def provision(ctx, env_prefix):
    """Create or reuse cluster, log group, IAM roles and security group."""
    config = _config(ctx, env_prefix)
    orchestrator = Orchestrator(config)
    result = _run_guarded(ctx, lambda: ResourceProvisioner(orchestrator.clients, config).provision(),
                          "Provisioning")

    if ctx.obj['json']:
        _json_output({
            'security_group_id': result.security_group_id,
            'outcomes': [{'kind': o.kind, 'name': o.name, 'result': o.result.value, 'id': o.identifier}
                         for o in result.outcomes],
        })
        return
    for outcome in result.outcomes:
        _human_output(f"  {outcome.kind:<15} {outcome.name:<60} {outcome.result.value}")
    _human_output(f"✅ Infrastructure ready (security group {result.security_group_id})")


@main.command()
@click.option('--env', 'env_prefix', help='Environment prefix (overrides ENV_PREFIX)')
@click.option('--dir', 'workdir', default='.', type=click.Path(file_okay=False), help='Directory with task definition templates')
@click.pass_context
def deploy(ctx, env_prefix, workdir):
    """Provision infrastructure, register the task definition and create the service."""
    config = _config(ctx, env_prefix)
    orchestrator = Orchestrator(config, workdir=Path(workdir))
    report = _run_guarded(ctx, lambda: orchestrator.create_infrastructure(RunReport()), "Deployment")
    _print_deployment(report)


@main.command()
@click.option('--env', 'env_prefix', help='Environment prefix (overrides ENV_PREFIX)')
@click.option('--create-infra/--no-create-infra', default=None, help='Override CREATE_INFRA')
@click.option('--config-secrets/--no-config-secrets', 'configure_secrets', default=None, help='Override CONFIG_SECRETS')
@click.option('--auto-commit/--no-auto-commit', default=None, help='Override AUTO_COMMIT')
@click.option('--dir', 'workdir', default='.', type=click.Path(file_okay=False), help='Repository directory')
@click.pass_context
def run(ctx, env_prefix, create_infra, configure_secrets, auto_commit, workdir):
    """Run the whole setup workflow, honoring the step flags."""
    config = _config(ctx, env_prefix, create_infra=create_infra,
                     configure_secrets=configure_secrets, auto_commit=auto_commit)
    _human_output("🚀 ECS Deployment Setup")
    report = _run_guarded(ctx, Orchestrator(config, workdir=Path(workdir)).run, "Setup")

    if ctx.obj['json']:
        _json_output({
            'ok': report.ok,
            'account_id': report.account_id,
            'steps': [{'name': s.name, 'status': s.status.value, 'detail': s.detail} for s in report.steps],
        })
    else:
        for step in report.steps:
            marker = {'ok': '✅', 'skipped': '⏭️ ', 'failed': '❌'}[step.status.value]
            _human_output(f"{marker} {step.name} {step.detail}".rstrip())
        if report.deployment:
            _print_deployment(report)
    sys.exit(0 if report.ok else 1)


@main.command()
@click.argument('environment', default='dev')
@click.option('--cluster', help='Cluster name (defaults to <env>-ecs-cluster)')
@click.option('--service', help='Service name (defaults to <env>-<app>-service)')
@click.pass_context
def verify(ctx, environment, cluster, service):
    """Verify a deployed service. Exits 0 when healthy or degraded, 1 when failing."""
    config = _config(ctx, environment)
    orchestrator = Orchestrator(config)
    _human_output(f"Verifying deployment for {environment}")
    snapshot = _run_guarded(ctx, lambda: orchestrator.verify(cluster, service), "Verification")

    if ctx.obj['json']:
        _json_output(snapshot_to_dict(snapshot, config.region))
    else:
        if snapshot.events:
            _human_output("\n📝 Recent Events:")
            for event in snapshot.events:
                _human_output(f"  {event['time']}  {event['message']}")
        if snapshot.log_lines:
            _human_output("\n📜 Recent Logs:")
            for line in snapshot.log_lines:
                _human_output(f"  {line}")
        _human_output("")
        color = {Verdict.HEALTHY: 'green', Verdict.DEGRADED: 'yellow', Verdict.FAILING: 'red'}[snapshot.verdict]
        for line in render_summary(snapshot, config.names.log_group, config.region):
            _human_output(click.style(line, fg=color) if line.startswith(('✅', '⚠', '❌')) else line)

    sys.exit(snapshot.verdict.exit_code)


def _print_deployment(report: RunReport) -> None:
    if click.get_current_context().obj.get('json', False):
        _json_output({
            'security_group_id': report.provision.security_group_id,
            'task_definition': asdict(report.task_definition),
            'service': report.deployment.service,
            'result': report.deployment.result.value,
            'variant': report.deployment.variant.value,
        })
        return
    _human_output(f"📦 Task definition: {report.task_definition.family}:{report.task_definition.revision}")
    _human_output(f"🚢 Service {report.deployment.service}: {report.deployment.result.value} "
                  f"({report.deployment.variant.value})")


if __name__ == '__main__':
    main()
