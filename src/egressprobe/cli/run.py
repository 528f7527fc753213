"""
CLI commands that drive the egress tester.

Commands:
    run     Create (or resume) a probe stack, run the checks, tear down
    create  Create a probe stack and leave it in place
    delete  Delete a probe stack by name
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Sequence

import boto3
import yaml

from egressprobe.cli.ux import (
    console,
    error,
    header,
    info,
    results_table,
    success,
    warning,
)
from egressprobe.config import Settings, get_settings
from egressprobe.core.errors import (
    ConfigurationError,
    ExitCode,
    format_error_message,
    main_with_error_handling,
)
from egressprobe.invocation import LambdaInvoker, ProbeInvoker
from egressprobe.models import Outcome, ProbeTarget, ProvisioningRequest
from egressprobe.orchestrator import EgressTester
from egressprobe.provisioning import CloudFormationProvisioner, ResourceProvisioner


def parse_target(value: str) -> ProbeTarget:
    """Parse a ``NAME=URL`` command line value."""
    name, sep, url = value.partition("=")
    if not sep or not name.strip() or not url.strip():
        raise ConfigurationError(f"invalid target '{value}', expected NAME=URL")
    return ProbeTarget(name=name.strip(), url=url.strip())


def load_targets_file(path: str | Path) -> list[ProbeTarget]:
    """Load targets from a YAML file.

    The file holds either a list of ``{name, url}`` mappings or a mapping
    with such a list under ``targets``.
    """
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except OSError as exc:
        raise ConfigurationError(f"could not read targets file '{path}': {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"invalid YAML in targets file '{path}': {exc}") from exc

    if isinstance(data, dict):
        data = data.get("targets")
    if not isinstance(data, list):
        raise ConfigurationError(f"targets file '{path}' must contain a list of targets")

    targets = []
    for index, item in enumerate(data):
        if not isinstance(item, dict) or not item.get("name") or not item.get("url"):
            raise ConfigurationError(
                f"target #{index + 1} in '{path}' needs both 'name' and 'url'"
            )
        targets.append(ProbeTarget(name=str(item["name"]), url=str(item["url"])))
    return targets


def collect_targets(urls: Sequence[str] | None, targets_file: str | None) -> list[ProbeTarget]:
    targets: list[ProbeTarget] = []
    if targets_file:
        targets.extend(load_targets_file(targets_file))
    targets.extend(parse_target(value) for value in urls or ())
    return targets


def build_collaborators(settings: Settings) -> tuple[ResourceProvisioner, ProbeInvoker]:
    """Create AWS-backed collaborators sharing one boto3 session."""
    session = boto3.Session(profile_name=settings.aws_profile, region_name=settings.aws_region)
    return (
        CloudFormationProvisioner(session=session, settings=settings),
        LambdaInvoker(session=session, settings=settings),
    )


def _outcome_as_dict(tester: EgressTester, outcome: Outcome) -> dict[str, Any]:
    return {
        "passed": outcome.passed,
        "stack_name": tester.stack_name,
        "stack_retained": tester.stack_created and tester.retain_stack,
        "stack_left_behind": tester.stack_created and not tester.retain_stack,
        "error": outcome.error.message if outcome.error is not None else None,
        "results": [result.to_payload() for result in outcome.results],
        "log": outcome.log.splitlines(),
    }


@main_with_error_handling()
def run_command(
    *,
    stack_name: str | None = None,
    vpc_id: str | None = None,
    subnet_id: str | None = None,
    prefix: str | None = None,
    template: str | None = None,
    urls: Sequence[str] | None = None,
    targets_file: str | None = None,
    retain: bool = False,
    context: str | None = None,
    initial_sleep: float | None = None,
    post_event_sleep: float | None = None,
    max_elapsed: float | None = None,
    output_format: str = "text",
    show_log: bool = False,
    settings: Settings | None = None,
    collaborators: tuple[ResourceProvisioner, ProbeInvoker] | None = None,
) -> int:
    """
    Run an egress test and report the results.

    Exit codes:
        0 = All checks passed
        10 = Invalid arguments
        11 = CloudFormation or Lambda failure
        12 = One or more checks failed or were too slow
    """
    settings = settings or get_settings()
    targets = collect_targets(urls, targets_file)
    request = None
    if not stack_name:
        request = ProvisioningRequest(
            vpc_id=vpc_id or "",
            subnet_id=subnet_id or "",
            stack_prefix=prefix,
            template=template,
        )

    provisioner, invoker = collaborators or build_collaborators(settings)
    tester = EgressTester(
        provisioner,
        invoker,
        request=request,
        stack_name=stack_name,
        targets=targets,
        retain_stack=retain,
        context=context,
        initial_sleep_seconds=initial_sleep,
        post_event_sleep_seconds=post_event_sleep,
        max_elapsed_seconds=max_elapsed,
        settings=settings,
    )

    if output_format == "text":
        header(f"Egress test ({tester.context})")
        info(f"resuming stack {stack_name}" if stack_name else "creating new stack")

    outcome = tester.test()

    if output_format == "json":
        print(json.dumps(_outcome_as_dict(tester, outcome), indent=4))
    else:
        if outcome.results:
            console.print(results_table(outcome.results, tester.max_elapsed_seconds))
        if show_log or outcome.error is not None:
            console.print()
            console.print(outcome.log, markup=False, highlight=False)
        if tester.stack_created:
            if tester.retain_stack:
                warning(f"stack retained: {tester.stack_name}")
            else:
                warning(f"stack deletion failed, stack left in place: {tester.stack_name}")
            info(f"remove it with: egressprobe delete {tester.stack_name}")

    if outcome.error is not None:
        if output_format == "text":
            error(format_error_message(outcome.error))
        return outcome.error.exit_code

    if output_format == "text":
        success("all egress checks passed")
    return ExitCode.SUCCESS


@main_with_error_handling()
def create_command(
    *,
    vpc_id: str | None = None,
    subnet_id: str | None = None,
    prefix: str | None = None,
    template: str | None = None,
    context: str | None = None,
    settings: Settings | None = None,
    collaborators: tuple[ResourceProvisioner, ProbeInvoker] | None = None,
) -> int:
    """Create a probe stack only; no checks are run."""
    settings = settings or get_settings()
    provisioner, invoker = collaborators or build_collaborators(settings)
    tester = EgressTester(
        provisioner,
        invoker,
        request=ProvisioningRequest(
            vpc_id=vpc_id or "",
            subnet_id=subnet_id or "",
            stack_prefix=prefix,
            template=template,
        ),
        retain_stack=True,
        context=context,
        settings=settings,
    )
    info("launching stack only")
    stack_name = tester.create_stack()
    success(f"stack ready: {stack_name}")
    info(f"resume with: egressprobe run --stack-name {stack_name}")
    return ExitCode.SUCCESS


@main_with_error_handling()
def delete_command(
    *,
    stack_name: str,
    context: str | None = None,
    settings: Settings | None = None,
    collaborators: tuple[ResourceProvisioner, ProbeInvoker] | None = None,
) -> int:
    """Delete a previously retained probe stack."""
    settings = settings or get_settings()
    provisioner, invoker = collaborators or build_collaborators(settings)
    tester = EgressTester(
        provisioner, invoker, stack_name=stack_name, context=context, settings=settings
    )
    tester.delete_stack()
    success(f"deletion requested for stack {stack_name}")
    return ExitCode.SUCCESS
