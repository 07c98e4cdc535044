"""
Command line interface.

Usage:
    container-lambda deploy --context src/lambda/hello_container --smoke-test
    container-lambda invoke --payload '{"name": "world"}'
    container-lambda tags audit --resource-type lambda:function
    container-lambda tags check-plan plan.json
    container-lambda tags apply --arn <arn> --tag Owner=platform
    container-lambda ecr login
"""

import argparse
import json
import sys
from typing import Dict, List, Optional

from .config import config
from .deploy.invoke import FunctionInvoker
from .errors import DeploymentError, TagPolicyError
from .pipeline import ContainerLambdaPipeline
from .registry.docker_cli import DockerCli
from .registry.ecr import EcrRegistry
from .tagging.audit import TagAuditor
from .tagging.policy import TagPolicy
from .tagging.terraform_plan import (
    extract_tag_changes,
    find_default_tag_collisions,
    load_plan,
    validate_plan_tags,
)
from .utils.logger import get_logger

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_VIOLATIONS = 2


def parse_tag_args(values: Optional[List[str]]) -> Dict[str, str]:
    """Parse repeated KEY=VALUE arguments."""
    tags = {}
    for item in values or []:
        key, sep, value = item.partition('=')
        if not sep or not key:
            raise argparse.ArgumentTypeError(f"Tags must be KEY=VALUE, got: {item}")
        tags[key] = value
    return tags


def cmd_deploy(args: argparse.Namespace) -> int:
    if args.function_name:
        config.function.function_name = args.function_name
    if args.repository:
        config.registry.repository_name = args.repository

    pipeline = ContainerLambdaPipeline(config)
    smoke_event = json.loads(args.smoke_payload) if args.smoke_test else None
    result = pipeline.run(
        context_dir=args.context,
        image_tag=args.image_tag,
        extra_tags=parse_tag_args(args.tag),
        smoke_test_event=smoke_event,
        skip_build=args.skip_build
    )
    print(json.dumps(result.model_dump(), indent=2, default=str))
    return EXIT_OK


def cmd_invoke(args: argparse.Namespace) -> int:
    payload = json.loads(args.payload)
    invoker = FunctionInvoker(args.function_name or config.function.function_name, region=config.aws.region)
    result = invoker.invoke(
        payload,
        invocation_type=args.invocation_type,
        log_tail=args.log_tail
    )
    print(json.dumps(result.payload, indent=2) if not isinstance(result.payload, str) else result.payload)
    if result.log_tail:
        print(result.log_tail, file=sys.stderr)
    return EXIT_OK if result.succeeded else EXIT_ERROR


def cmd_tags_audit(args: argparse.Namespace) -> int:
    auditor = TagAuditor(TagPolicy.from_config(config.tagging), region=config.aws.region)
    report = auditor.audit(resource_types=args.resource_type)
    print(json.dumps(report.to_dict(), indent=2))
    return EXIT_VIOLATIONS if report.violations else EXIT_OK


def cmd_tags_check_plan(args: argparse.Namespace) -> int:
    plan = load_plan(args.plan)
    policy = TagPolicy.from_config(config.tagging)

    changes = extract_tag_changes(plan)
    collisions = find_default_tag_collisions(plan)
    violations = validate_plan_tags(plan, policy)

    summary = {
        'tag_changes': [
            {'address': c.address, 'tags_only': c.tags_only, 'added': c.added,
             'removed': c.removed, 'modified': c.modified}
            for c in changes
        ],
        'default_tag_collisions': [c.model_dump() for c in collisions],
        'violations': [v.to_dict() for v in violations],
    }
    print(json.dumps(summary, indent=2))
    return EXIT_VIOLATIONS if collisions or violations else EXIT_OK


def cmd_tags_apply(args: argparse.Namespace) -> int:
    tags = parse_tag_args(args.tag) or config.tagging.default_tags
    if not tags:
        logger.error("No tags given and no DEFAULT_TAG_* variables set")
        return EXIT_ERROR

    policy = TagPolicy.from_config(config.tagging)
    # Only the keys being written are checked; required keys may already be present
    style_only = TagPolicy(allowed_values=policy.allowed_values, key_style=policy.key_style)
    violations = style_only.validate_tags(tags)
    if violations:
        for violation in violations:
            logger.error(violation.message)
        return EXIT_VIOLATIONS

    auditor = TagAuditor(policy, region=config.aws.region)
    failed = auditor.apply_default_tags(args.arn, tags)
    for arn, message in failed.items():
        print(f"{arn}: {message}", file=sys.stderr)
    return EXIT_ERROR if failed else EXIT_OK


def cmd_ecr_login(args: argparse.Namespace) -> int:
    registry = EcrRegistry(args.repository or config.registry.repository_name, region=config.aws.region)
    docker = DockerCli()
    docker.ensure_available()
    docker.login(registry.get_login())
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='container-lambda',
        description='Deploy container image Lambda functions and enforce tagging'
    )
    subparsers = parser.add_subparsers(dest='command', required=True)

    deploy = subparsers.add_parser('deploy', help='Build, push and deploy the function image')
    deploy.add_argument('--context', default='src/lambda/hello_container', help='Docker build context')
    deploy.add_argument('--image-tag', default=None, help='Image tag (default: IMAGE_TAG or latest)')
    deploy.add_argument('--function-name', default=None, help='Lambda function name')
    deploy.add_argument('--repository', default=None, help='ECR repository name')
    deploy.add_argument('--tag', action='append', help='Extra resource tag KEY=VALUE (repeatable)')
    deploy.add_argument('--skip-build', action='store_true', help='Deploy an already pushed image')
    deploy.add_argument('--smoke-test', action='store_true', help='Invoke the function after deploying')
    deploy.add_argument('--smoke-payload', default='{}', help='JSON event for the smoke test')
    deploy.set_defaults(func=cmd_deploy)

    invoke = subparsers.add_parser('invoke', help='Invoke the function')
    invoke.add_argument('--function-name', default=None, help='Lambda function name')
    invoke.add_argument('--payload', default='{}', help='JSON event')
    invoke.add_argument(
        '--invocation-type', default='RequestResponse',
        choices=['RequestResponse', 'Event', 'DryRun']
    )
    invoke.add_argument('--log-tail', action='store_true', help='Print the execution log tail')
    invoke.set_defaults(func=cmd_invoke)

    tags = subparsers.add_parser('tags', help='Tag policy tools')
    tag_commands = tags.add_subparsers(dest='tags_command', required=True)

    audit = tag_commands.add_parser('audit', help='Audit tags of existing resources')
    audit.add_argument('--resource-type', action='append', help="e.g. lambda:function (repeatable)")
    audit.set_defaults(func=cmd_tags_audit)

    check_plan = tag_commands.add_parser('check-plan', help='Check tags in `terraform show -json` output')
    check_plan.add_argument('plan', help='Plan JSON file')
    check_plan.set_defaults(func=cmd_tags_check_plan)

    apply = tag_commands.add_parser('apply', help='Add tags to existing resources')
    apply.add_argument('--arn', action='append', required=True, help='Resource ARN (repeatable)')
    apply.add_argument('--tag', action='append', help='Tag KEY=VALUE (default: DEFAULT_TAG_* values)')
    apply.set_defaults(func=cmd_tags_apply)

    ecr = subparsers.add_parser('ecr', help='ECR helpers')
    ecr_commands = ecr.add_subparsers(dest='ecr_command', required=True)
    login = ecr_commands.add_parser('login', help='Log docker into the ECR registry')
    login.add_argument('--repository', default=None, help='ECR repository name')
    login.set_defaults(func=cmd_ecr_login)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        return args.func(args)
    except TagPolicyError as e:
        logger.error(e.message)
        return EXIT_VIOLATIONS
    except DeploymentError as e:
        logger.error(f"{e.error_code}: {e.message}")
        if e.details:
            logger.debug(json.dumps(e.details, indent=2, default=str))
        return EXIT_ERROR
    except (argparse.ArgumentTypeError, json.JSONDecodeError) as e:
        logger.error(f"Invalid argument: {e}")
        return EXIT_ERROR


if __name__ == '__main__':
    sys.exit(main())
