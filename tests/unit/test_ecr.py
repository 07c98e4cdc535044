"""Unit tests for the ECR registry."""

import base64
from unittest.mock import Mock, patch

import pytest

from container_lambda.errors import RegistryError
from container_lambda.registry.ecr import EcrRegistry

ACCOUNT_ID = '123456789012'
REPO_URI = f'{ACCOUNT_ID}.dkr.ecr.us-east-1.amazonaws.com/hello'


@pytest.fixture
def ecr_client():
    return Mock()


@pytest.fixture
def registry(ecr_client):
    with patch('container_lambda.registry.ecr.get_boto3_client', return_value=ecr_client):
        yield EcrRegistry('hello', region='us-east-1', account_id=ACCOUNT_ID)


class TestUris:

    def test_image_uri(self, registry):
        assert registry.registry_uri() == f'{ACCOUNT_ID}.dkr.ecr.us-east-1.amazonaws.com'
        assert registry.image_uri('v1') == f'{REPO_URI}:v1'
        assert registry.image_uri('sha256:abc') == f'{REPO_URI}@sha256:abc'

    @patch('container_lambda.registry.ecr.get_account_id', return_value='999999999999')
    def test_account_resolved_lazily(self, mock_account, ecr_client):
        with patch('container_lambda.registry.ecr.get_boto3_client', return_value=ecr_client):
            registry = EcrRegistry('hello', region='us-east-1')

        assert registry.image_uri() == '999999999999.dkr.ecr.us-east-1.amazonaws.com/hello:latest'
        mock_account.assert_called_once_with(region='us-east-1')


class TestEnsureRepository:
    """Test repository creation."""

    def test_existing_repository(self, registry, ecr_client):
        ecr_client.describe_repositories.return_value = {'repositories': [{'repositoryUri': REPO_URI}]}

        assert registry.ensure_repository() == REPO_URI
        ecr_client.create_repository.assert_not_called()

    def test_creates_missing_repository(self, registry, ecr_client, client_error):
        ecr_client.describe_repositories.side_effect = client_error('RepositoryNotFoundException')
        ecr_client.create_repository.return_value = {'repository': {'repositoryUri': REPO_URI}}

        uri = registry.ensure_repository(tags={'Project': 'demo'}, scan_on_push=False, tag_mutability='IMMUTABLE')

        assert uri == REPO_URI
        ecr_client.create_repository.assert_called_once_with(
            repositoryName='hello',
            imageTagMutability='IMMUTABLE',
            imageScanningConfiguration={'scanOnPush': False},
            tags=[{'Key': 'Project', 'Value': 'demo'}]
        )

    def test_concurrent_creation(self, registry, ecr_client, client_error):
        ecr_client.describe_repositories.side_effect = client_error('RepositoryNotFoundException')
        ecr_client.create_repository.side_effect = client_error('RepositoryAlreadyExistsException')

        assert registry.ensure_repository() == REPO_URI

    def test_describe_failure(self, registry, ecr_client, client_error):
        ecr_client.describe_repositories.side_effect = client_error('AccessDeniedException')

        with pytest.raises(RegistryError):
            registry.ensure_repository()


class TestLogin:
    """Test authorization token decoding."""

    def test_get_login(self, registry, ecr_client):
        token = base64.b64encode(b'AWS:secret-password').decode()
        ecr_client.get_authorization_token.return_value = {
            'authorizationData': [{
                'authorizationToken': token,
                'proxyEndpoint': f'https://{ACCOUNT_ID}.dkr.ecr.us-east-1.amazonaws.com'
            }]
        }

        credentials = registry.get_login()

        assert credentials.username == 'AWS'
        assert credentials.password.get_secret_value() == 'secret-password'
        assert credentials.registry == f'{ACCOUNT_ID}.dkr.ecr.us-east-1.amazonaws.com'
        assert 'secret-password' not in repr(credentials)

    def test_malformed_token(self, registry, ecr_client):
        ecr_client.get_authorization_token.return_value = {
            'authorizationData': [{
                'authorizationToken': base64.b64encode(b'nocolon').decode(),
                'proxyEndpoint': 'https://example'
            }]
        }

        with pytest.raises(RegistryError):
            registry.get_login()


class TestImages:
    """Test image lookups."""

    def test_digest(self, registry, ecr_client):
        ecr_client.describe_images.return_value = {'imageDetails': [{'imageDigest': 'sha256:abc'}]}

        assert registry.get_image_digest('v1') == 'sha256:abc'
        assert registry.image_exists('v1') is True

    def test_digest_lookup_by_digest(self, registry, ecr_client):
        ecr_client.describe_images.return_value = {'imageDetails': [{'imageDigest': 'sha256:abc'}]}

        assert registry.get_image_digest('sha256:abc') == 'sha256:abc'
        ecr_client.describe_images.assert_called_once_with(
            repositoryName='hello', imageIds=[{'imageDigest': 'sha256:abc'}]
        )

    def test_missing_image(self, registry, ecr_client, client_error):
        ecr_client.describe_images.side_effect = client_error('ImageNotFoundException')

        assert registry.get_image_digest('v1') is None
        assert registry.image_exists('v1') is False

    def test_scan_findings(self, registry, ecr_client, client_error):
        ecr_client.describe_image_scan_findings.return_value = {
            'imageScanFindings': {'findingSeverityCounts': {'HIGH': 2}}
        }
        assert registry.get_scan_findings('v1') == {'HIGH': 2}

        ecr_client.describe_image_scan_findings.side_effect = client_error('ScanNotFoundException')
        assert registry.get_scan_findings('v1') == {}

    def test_delete_repository(self, registry, ecr_client, client_error):
        assert registry.delete_repository(force=True) is True
        ecr_client.delete_repository.assert_called_once_with(repositoryName='hello', force=True)

        ecr_client.delete_repository.side_effect = client_error('RepositoryNotFoundException')
        assert registry.delete_repository() is False
