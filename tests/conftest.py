"""Pytest configuration and fixtures."""

import pytest
from botocore.exceptions import ClientError


@pytest.fixture
def mock_aws_credentials(monkeypatch):
    """Mock AWS credentials for testing."""
    monkeypatch.setenv('AWS_ACCESS_KEY_ID', 'testing')
    monkeypatch.setenv('AWS_SECRET_ACCESS_KEY', 'testing')
    monkeypatch.setenv('AWS_SECURITY_TOKEN', 'testing')
    monkeypatch.setenv('AWS_SESSION_TOKEN', 'testing')
    monkeypatch.setenv('AWS_DEFAULT_REGION', 'us-east-1')


@pytest.fixture
def client_error():
    """Factory for botocore ClientError instances."""
    def _make(code, message='error', operation='Operation'):
        return ClientError({'Error': {'Code': code, 'Message': message}}, operation)
    return _make


@pytest.fixture
def sample_plan():
    """Trimmed `terraform show -json` output with tagged resources."""
    return {
        "format_version": "1.2",
        "configuration": {
            "provider_config": {
                "aws": {
                    "name": "aws",
                    "expressions": {
                        "region": {"constant_value": "us-east-1"},
                        "default_tags": [
                            {
                                "tags": {
                                    "constant_value": {
                                        "Project": "demo",
                                        "Environment": "dev",
                                        "ManagedBy": "terraform"
                                    }
                                }
                            }
                        ]
                    }
                }
            }
        },
        "resource_changes": [
            {
                "address": "aws_ecr_repository.app",
                "type": "aws_ecr_repository",
                "change": {
                    "actions": ["create"],
                    "before": None,
                    "after": {"name": "app", "tags": {"Owner": "platform"}, "tags_all": None}
                }
            },
            {
                "address": "aws_lambda_function.hello",
                "type": "aws_lambda_function",
                "change": {
                    "actions": ["update"],
                    "before": {
                        "memory_size": 512,
                        "tags": {"Environment": "dev"},
                        "tags_all": {"Project": "demo", "Environment": "dev", "ManagedBy": "terraform"}
                    },
                    "after": {
                        "memory_size": 512,
                        "tags": {"Environment": "prod"},
                        "tags_all": {"Project": "demo", "Environment": "prod", "ManagedBy": "terraform"}
                    }
                }
            },
            {
                "address": "aws_iam_role.lambda",
                "type": "aws_iam_role",
                "change": {
                    "actions": ["no-op"],
                    "before": {
                        "name": "lambda-role",
                        "tags": {},
                        "tags_all": {"Project": "demo", "Environment": "dev", "ManagedBy": "terraform"}
                    },
                    "after": {
                        "name": "lambda-role",
                        "tags": {},
                        "tags_all": {"Project": "demo", "Environment": "dev", "ManagedBy": "terraform"}
                    }
                }
            },
            {
                "address": "aws_s3_bucket.old",
                "type": "aws_s3_bucket",
                "change": {
                    "actions": ["delete"],
                    "before": {"bucket": "old", "tags_all": {"Project": "demo"}},
                    "after": None
                }
            }
        ]
    }
