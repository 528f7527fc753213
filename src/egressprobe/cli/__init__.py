"""egressprobe command line interface."""

from __future__ import annotations

import argparse
import sys
from typing import Sequence

from egressprobe.config import get_settings
from egressprobe.logging import configure_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="egressprobe",
        description="Test internet egress from a VPC subnet with a temporary Lambda probe",
    )
    parser.add_argument("--region", help="AWS region (default: EGRESSPROBE_AWS_REGION)")
    parser.add_argument("--profile", help="AWS credentials profile")
    parser.add_argument("--context", help="Label added to every log line, e.g. account name")
    subparsers = parser.add_subparsers(dest="command")

    run_parser = subparsers.add_parser("run", help="Run egress checks through a probe stack")
    run_parser.add_argument(
        "--stack-name",
        help="Resume a previously retained stack instead of creating a new one",
    )
    _add_stack_arguments(run_parser)
    run_parser.add_argument(
        "--url",
        dest="urls",
        action="append",
        metavar="NAME=URL",
        help="Check to run (repeatable); defaults to a few well-known sites",
    )
    run_parser.add_argument("--targets-file", help="YAML file listing {name, url} checks")
    run_parser.add_argument(
        "--retain", action="store_true", help="Keep the stack after the test for later reuse"
    )
    run_parser.add_argument(
        "--initial-sleep", type=float, help="Seconds to wait after the stack is ready"
    )
    run_parser.add_argument(
        "--post-event-sleep", type=float, help="Seconds to wait before each invocation"
    )
    run_parser.add_argument(
        "--max-elapsed", type=float, help="Slowest acceptable check in seconds"
    )
    run_parser.add_argument(
        "--output", choices=["text", "json"], default="text", help="Output format"
    )
    run_parser.add_argument("--show-log", action="store_true", help="Print the activity log")

    create_parser = subparsers.add_parser(
        "create", help="Create a probe stack without running checks"
    )
    _add_stack_arguments(create_parser)

    delete_parser = subparsers.add_parser("delete", help="Delete a retained probe stack")
    delete_parser.add_argument("stack_name", help="Name of the stack to delete")

    return parser


def _add_stack_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--vpc", dest="vpc_id", help="VPC to launch the probe into")
    parser.add_argument("--subnet", dest="subnet_id", help="Subnet to launch the probe into")
    parser.add_argument("--prefix", help="Stack name prefix")
    parser.add_argument(
        "--template",
        help="Template file path, or builtin:default / builtin:ignore-ssl",
    )


def main(argv: Sequence[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    overrides = {}
    if args.region:
        overrides["aws_region"] = args.region
    if args.profile:
        overrides["aws_profile"] = args.profile
    settings = get_settings().model_copy(update=overrides)

    configure_logging(settings.log_level, json_logs=getattr(args, "output", "text") == "json")

    if args.command == "run":
        from egressprobe.cli.run import run_command

        sys.exit(
            run_command(
                stack_name=args.stack_name,
                vpc_id=args.vpc_id,
                subnet_id=args.subnet_id,
                prefix=args.prefix,
                template=args.template,
                urls=args.urls,
                targets_file=args.targets_file,
                retain=args.retain,
                context=args.context,
                initial_sleep=args.initial_sleep,
                post_event_sleep=args.post_event_sleep,
                max_elapsed=args.max_elapsed,
                output_format=args.output,
                show_log=args.show_log,
                settings=settings,
            )
        )

    if args.command == "create":
        from egressprobe.cli.run import create_command

        sys.exit(
            create_command(
                vpc_id=args.vpc_id,
                subnet_id=args.subnet_id,
                prefix=args.prefix,
                template=args.template,
                context=args.context,
                settings=settings,
            )
        )

    if args.command == "delete":
        from egressprobe.cli.run import delete_command

        sys.exit(delete_command(stack_name=args.stack_name, context=args.context, settings=settings))
