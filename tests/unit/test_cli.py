"""Unit tests for the command line interface."""

import argparse
import json
from unittest.mock import patch

import pytest

from container_lambda.cli import EXIT_ERROR, EXIT_OK, EXIT_VIOLATIONS, main, parse_tag_args
from container_lambda.deploy.invoke import InvocationResult
from container_lambda.errors import ImageBuildError, RegistryError, TagPolicyError
from container_lambda.tagging.audit import AuditReport


class TestParseTagArgs:

    def test_parse(self):
        assert parse_tag_args(['Owner=platform', 'Note=a=b']) == {'Owner': 'platform', 'Note': 'a=b'}
        assert parse_tag_args(None) == {}

    def test_invalid(self):
        with pytest.raises(argparse.ArgumentTypeError):
            parse_tag_args(['Owner'])


class TestCommands:
    """Test sub-command exit codes."""

    @patch('container_lambda.cli.FunctionInvoker')
    def test_invoke(self, mock_invoker_cls, capsys):
        mock_invoker_cls.return_value.invoke.return_value = InvocationResult(
            status_code=200, payload={'message': 'Hello, world!'}
        )

        assert main(['invoke', '--function-name', 'hello', '--payload', '{"name": "world"}']) == EXIT_OK
        assert 'Hello, world!' in capsys.readouterr().out
        mock_invoker_cls.return_value.invoke.assert_called_once_with(
            {'name': 'world'}, invocation_type='RequestResponse', log_tail=False
        )

    @patch('container_lambda.cli.FunctionInvoker')
    def test_invoke_function_error(self, mock_invoker_cls):
        mock_invoker_cls.return_value.invoke.return_value = InvocationResult(
            status_code=200, function_error='Unhandled', payload={'errorType': 'KeyError'}
        )

        assert main(['invoke']) == EXIT_ERROR

    def test_invalid_payload(self):
        assert main(['invoke', '--payload', '{not json']) == EXIT_ERROR

    def test_check_plan_reports_collisions(self, tmp_path, sample_plan, capsys):
        path = tmp_path / 'plan.json'
        path.write_text(json.dumps(sample_plan))

        assert main(['tags', 'check-plan', str(path)]) == EXIT_VIOLATIONS

        out = capsys.readouterr().out
        summary = json.loads(out[out.index('{\n'):])
        assert summary['default_tag_collisions'][0]['address'] == 'aws_lambda_function.hello'
        assert len(summary['tag_changes']) == 3

    @patch('container_lambda.cli.TagAuditor')
    def test_audit_clean(self, mock_auditor_cls):
        mock_auditor_cls.return_value.audit.return_value = AuditReport(resources_scanned=1, compliant=['arn'])

        assert main(['tags', 'audit', '--resource-type', 'lambda:function']) == EXIT_OK
        mock_auditor_cls.return_value.audit.assert_called_once_with(resource_types=['lambda:function'])

    @patch('container_lambda.cli.TagAuditor')
    def test_apply_rejects_badly_named_keys(self, mock_auditor_cls):
        assert main(['tags', 'apply', '--arn', 'arn:x', '--tag', 'cost-center=42']) == EXIT_VIOLATIONS
        mock_auditor_cls.return_value.apply_default_tags.assert_not_called()

    @patch('container_lambda.cli.TagAuditor')
    def test_apply(self, mock_auditor_cls):
        mock_auditor_cls.return_value.apply_default_tags.return_value = {}

        assert main(['tags', 'apply', '--arn', 'arn:x', '--tag', 'CostCenter=42']) == EXIT_OK
        mock_auditor_cls.return_value.apply_default_tags.assert_called_once_with(['arn:x'], {'CostCenter': '42'})

    @patch('container_lambda.cli.ContainerLambdaPipeline')
    def test_deploy_policy_violation(self, mock_pipeline_cls):
        mock_pipeline_cls.return_value.run.side_effect = TagPolicyError('missing Owner')

        assert main(['deploy', '--skip-build']) == EXIT_VIOLATIONS

    @patch('container_lambda.cli.DockerCli')
    @patch('container_lambda.cli.EcrRegistry')
    def test_deployment_error(self, mock_registry_cls, mock_docker_cls):
        mock_registry_cls.return_value.get_login.side_effect = RegistryError('denied')

        assert main(['ecr', 'login']) == EXIT_ERROR

    @patch('container_lambda.cli.DockerCli')
    @patch('container_lambda.cli.EcrRegistry')
    def test_ecr_login_without_docker(self, mock_registry_cls, mock_docker_cls):
        mock_docker_cls.return_value.ensure_available.side_effect = ImageBuildError('docker is not installed')

        assert main(['ecr', 'login']) == EXIT_ERROR
        mock_registry_cls.return_value.get_login.assert_not_called()

    def test_check_plan_missing_file(self, tmp_path):
        assert main(['tags', 'check-plan', str(tmp_path / 'missing.json')]) == EXIT_ERROR
