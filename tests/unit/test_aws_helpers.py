"""Unit tests for AWS helper functions."""

from unittest.mock import Mock, patch

from container_lambda.utils.aws_helpers import (
    get_account_id,
    get_boto3_client,
    get_boto3_resource,
    get_error_code,
    get_error_message,
)


class TestBoto3Helpers:
    """Test Boto3 helper functions."""

    @patch('container_lambda.utils.aws_helpers.boto3')
    def test_get_boto3_client(self, mock_boto3):
        """Test getting Boto3 client."""
        mock_client = Mock()
        mock_boto3.client.return_value = mock_client

        client = get_boto3_client('ecr', region='us-west-2')

        mock_boto3.client.assert_called_once_with('ecr', region_name='us-west-2')
        assert client == mock_client

    @patch('container_lambda.utils.aws_helpers.config')
    @patch('container_lambda.utils.aws_helpers.boto3')
    def test_get_boto3_client_default_region(self, mock_boto3, mock_config):
        mock_config.aws.region = 'ap-south-1'

        get_boto3_client('lambda')

        mock_boto3.client.assert_called_once_with('lambda', region_name='ap-south-1')

    @patch('container_lambda.utils.aws_helpers.boto3')
    def test_get_boto3_resource(self, mock_boto3):
        """Test getting Boto3 resource."""
        mock_resource = Mock()
        mock_boto3.resource.return_value = mock_resource

        resource = get_boto3_resource('s3', region='us-east-1')

        mock_boto3.resource.assert_called_once_with('s3', region_name='us-east-1')
        assert resource == mock_resource


class TestAccountId:
    """Test account ID resolution."""

    @patch('container_lambda.utils.aws_helpers.get_boto3_client')
    @patch('container_lambda.utils.aws_helpers.config')
    def test_configured_account_id(self, mock_config, mock_get_client):
        mock_config.aws.account_id = '111122223333'

        assert get_account_id() == '111122223333'
        mock_get_client.assert_not_called()

    @patch('container_lambda.utils.aws_helpers.get_boto3_client')
    @patch('container_lambda.utils.aws_helpers.config')
    def test_account_id_from_sts(self, mock_config, mock_get_client):
        mock_config.aws.account_id = None
        mock_sts = Mock()
        mock_sts.get_caller_identity.return_value = {'Account': '444455556666'}
        mock_get_client.return_value = mock_sts

        assert get_account_id() == '444455556666'
        mock_get_client.assert_called_once_with('sts', region=None)


class TestErrorHelpers:
    """Test ClientError helpers."""

    def test_error_code_and_message(self, client_error):
        error = client_error('NoSuchEntity', 'Role not found')
        assert get_error_code(error) == 'NoSuchEntity'
        assert get_error_message(error) == 'Role not found'
