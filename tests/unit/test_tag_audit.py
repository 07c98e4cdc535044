"""Unit tests for the tag auditor."""

from unittest.mock import Mock, patch

import pytest

from container_lambda.errors import DeploymentError
from container_lambda.tagging.audit import AuditReport, TagAuditor
from container_lambda.tagging.policy import TagPolicy

FUNCTION_ARN = 'arn:aws:lambda:us-east-1:123456789012:function:hello'
REPO_ARN = 'arn:aws:ecr:us-east-1:123456789012:repository/hello'


@pytest.fixture
def tagging_client():
    client = Mock()
    paginator = Mock()
    paginator.paginate.return_value = [
        {'ResourceTagMappingList': [
            {'ResourceARN': FUNCTION_ARN, 'Tags': [
                {'Key': 'Project', 'Value': 'demo'},
                {'Key': 'Environment', 'Value': 'dev'},
            ]},
        ]},
        {'ResourceTagMappingList': [
            {'ResourceARN': REPO_ARN, 'Tags': [{'Key': 'project', 'Value': 'demo'}]},
        ]},
    ]
    client.get_paginator.return_value = paginator
    return client


@pytest.fixture
def auditor(tagging_client):
    policy = TagPolicy(required_keys=['Project', 'Environment'], key_style='pascal')
    with patch('container_lambda.tagging.audit.get_boto3_client', return_value=tagging_client):
        yield TagAuditor(policy, region='us-east-1')


class TestFetchResources:
    """Test listing tagged resources."""

    def test_fetch_across_pages(self, auditor, tagging_client):
        resources = auditor.fetch_resources(resource_types=['lambda:function'], tag_filters={'Project': 'demo'})

        assert [arn for arn, _ in resources] == [FUNCTION_ARN, REPO_ARN]
        assert resources[0][1] == {'Project': 'demo', 'Environment': 'dev'}
        tagging_client.get_paginator.return_value.paginate.assert_called_once_with(
            ResourceTypeFilters=['lambda:function'],
            TagFilters=[{'Key': 'Project', 'Values': ['demo']}]
        )

    def test_fetch_error(self, auditor, tagging_client, client_error):
        tagging_client.get_paginator.return_value.paginate.side_effect = client_error('AccessDeniedException')

        with pytest.raises(DeploymentError):
            auditor.fetch_resources()


class TestAudit:
    """Test audit reports."""

    def test_audit_report(self, auditor):
        report = auditor.audit()

        assert report.resources_scanned == 2
        assert report.compliant == [FUNCTION_ARN]
        assert report.non_compliant == [REPO_ARN]
        assert report.compliance_rate == 0.5
        assert report.by_kind() == {'missing': 2, 'bad_key_style': 1}

        summary = report.to_dict()
        assert summary['non_compliant'] == 1
        assert len(summary['violations']) == 3

    def test_system_tags_do_not_count(self, auditor, tagging_client):
        tagging_client.get_paginator.return_value.paginate.return_value = [
            {'ResourceTagMappingList': [
                {'ResourceARN': FUNCTION_ARN, 'Tags': [
                    {'Key': 'Project', 'Value': 'demo'},
                    {'Key': 'Environment', 'Value': 'dev'},
                    {'Key': 'aws:cloudformation:stack-name', 'Value': 'stack'},
                ]},
            ]},
        ]

        report = auditor.audit()

        assert report.compliant == [FUNCTION_ARN]
        assert report.compliance_rate == 1.0
        assert report.by_kind() == {}

    def test_empty_report_is_fully_compliant(self):
        assert AuditReport().compliance_rate == 1.0


class TestApplyDefaultTags:
    """Test bulk tagging."""

    def test_batches_of_twenty(self, auditor, tagging_client):
        tagging_client.tag_resources.return_value = {'FailedResourcesMap': {}}
        arns = [f'{FUNCTION_ARN}-{i}' for i in range(45)]

        failed = auditor.apply_default_tags(arns, {'Owner': 'platform'})

        assert failed == {}
        assert tagging_client.tag_resources.call_count == 3
        last_call = tagging_client.tag_resources.call_args_list[-1]
        assert len(last_call.kwargs['ResourceARNList']) == 5

    def test_reports_failures(self, auditor, tagging_client, client_error):
        tagging_client.tag_resources.side_effect = [
            {'FailedResourcesMap': {FUNCTION_ARN: {'ErrorCode': 'InvalidParameterException',
                                                   'ErrorMessage': 'bad arn'}}},
        ]

        failed = auditor.apply_default_tags([FUNCTION_ARN, REPO_ARN], {'Owner': 'platform'})

        assert failed == {FUNCTION_ARN: 'bad arn'}

    def test_nothing_to_do(self, auditor, tagging_client):
        assert auditor.apply_default_tags([], {'Owner': 'x'}) == {}
        tagging_client.tag_resources.assert_not_called()
