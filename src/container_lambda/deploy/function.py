"""
Create or update a Lambda function from a container image.

The function is created with PackageType=Image and points at an ECR image
URI. Updating code and configuration are separate API calls, and Lambda
rejects the second one while the first is still in progress, so every
change waits for the function to settle.
"""

import json
import time
from typing import Any, Dict, Optional

from botocore.exceptions import ClientError, WaiterError

from ..errors import FunctionDeployError
from ..tagging.policy import Tags, to_aws_tag_list
from ..utils.logger import get_logger
from ..utils.aws_helpers import get_boto3_client, get_error_code, get_error_message

logger = get_logger(__name__)

BASIC_EXECUTION_POLICY_ARN = 'arn:aws:iam::aws:policy/service-role/AWSLambdaBasicExecutionRole'

# A freshly created role takes a few seconds before Lambda can assume it
ROLE_PROPAGATION_RETRIES = 6
ROLE_PROPAGATION_DELAY = 5  # seconds


class ContainerFunctionDeployer:
    """Manages deployment of a container image Lambda function."""

    def __init__(
        self,
        function_name: str,
        role_name: str = 'container-lambda-execution-role',
        region: Optional[str] = None
    ):
        """
        Initialize Container Function Deployer.

        Args:
            function_name: Lambda function name
            role_name: IAM execution role name used when no role ARN is given
            region: AWS region
        """
        self.function_name = function_name
        self.role_name = role_name
        self.region = region

        self.lambda_client = get_boto3_client('lambda', region=region)
        self.iam_client = get_boto3_client('iam', region=region)

        logger.info(f"Initialized ContainerFunctionDeployer for function: {self.function_name}")

    def get_trust_policy(self) -> Dict:
        """
        Get trust policy allowing Lambda to assume the role.

        Returns:
            dict: Trust policy document.
        """
        return {
            "Version": "2012-10-17",
            "Statement": [
                {
                    "Effect": "Allow",
                    "Principal": {
                        "Service": "lambda.amazonaws.com"
                    },
                    "Action": "sts:AssumeRole"
                }
            ]
        }

    def get_or_create_role(self, tags: Optional[Tags] = None) -> str:
        """
        Get existing Lambda execution role or create a new one.

        Args:
            tags: Tags applied when the role is created

        Returns:
            ARN of the IAM role
        """
        try:
            response = self.iam_client.get_role(RoleName=self.role_name)
            role_arn = response['Role']['Arn']
            logger.info(f"Using existing IAM role: {role_arn}")
            return role_arn
        except ClientError as e:
            if get_error_code(e) != 'NoSuchEntity':
                logger.error(f"Failed to get role {self.role_name}: {e}")
                raise FunctionDeployError(f"Failed to get role {self.role_name}", details={'error': str(e)}) from e

        logger.info(f"Creating new IAM role: {self.role_name}")
        kwargs = {
            'RoleName': self.role_name,
            'AssumeRolePolicyDocument': json.dumps(self.get_trust_policy()),
            'Description': f'Execution role for {self.function_name} Lambda function',
        }
        if tags:
            kwargs['Tags'] = to_aws_tag_list(tags)

        try:
            response = self.iam_client.create_role(**kwargs)
            role_arn = response['Role']['Arn']

            # Basic execution policy lets the function write CloudWatch Logs
            self.iam_client.attach_role_policy(
                RoleName=self.role_name,
                PolicyArn=BASIC_EXECUTION_POLICY_ARN
            )
        except ClientError as e:
            logger.error(f"Failed to create role {self.role_name}: {e}")
            raise FunctionDeployError(f"Failed to create role {self.role_name}", details={'error': str(e)}) from e

        logger.info(f"Created IAM role: {role_arn}")
        return role_arn

    def get_configuration(self) -> Optional[Dict[str, Any]]:
        """Current function configuration, or None if the function does not exist."""
        try:
            response = self.lambda_client.get_function(FunctionName=self.function_name)
            return response['Configuration']
        except ClientError as e:
            if get_error_code(e) == 'ResourceNotFoundException':
                return None
            raise FunctionDeployError(
                f"Failed to get function {self.function_name}",
                details={'error': str(e)}
            ) from e

    def _wait(self, waiter_name: str) -> None:
        logger.info(f"Waiting for {self.function_name} ({waiter_name})")
        try:
            self.lambda_client.get_waiter(waiter_name).wait(
                FunctionName=self.function_name,
                WaiterConfig={'Delay': 5, 'MaxAttempts': 60}
            )
        except WaiterError as e:
            raise FunctionDeployError(
                f"Function {self.function_name} did not become ready",
                details={'waiter': waiter_name, 'error': str(e)}
            ) from e

    def _create(self, image_uri: str, role_arn: str, settings: Dict[str, Any], tags: Tags) -> Dict[str, Any]:
        logger.info(f"Creating new Lambda function: {self.function_name}")

        for attempt in range(1, ROLE_PROPAGATION_RETRIES + 1):
            try:
                response = self.lambda_client.create_function(
                    FunctionName=self.function_name,
                    PackageType='Image',
                    Code={'ImageUri': image_uri},
                    Role=role_arn,
                    Tags=tags,
                    Publish=True,
                    **settings
                )
                break
            except ClientError as e:
                message = get_error_message(e)
                role_not_ready = (
                    get_error_code(e) == 'InvalidParameterValueException'
                    and 'role' in message.lower()
                )
                if role_not_ready and attempt < ROLE_PROPAGATION_RETRIES:
                    logger.warning(
                        f"Role not assumable yet (attempt {attempt}/{ROLE_PROPAGATION_RETRIES}), "
                        f"retrying in {ROLE_PROPAGATION_DELAY}s"
                    )
                    time.sleep(ROLE_PROPAGATION_DELAY)
                    continue
                logger.error(f"Failed to create function {self.function_name}: {e}")
                raise FunctionDeployError(
                    f"Failed to create function {self.function_name}",
                    details={'error': str(e)}
                ) from e

        self._wait('function_active_v2')
        logger.info(f"Successfully created Lambda function: {self.function_name}")
        return response

    def _update(
        self,
        image_uri: str,
        role_arn: str,
        settings: Dict[str, Any],
        tags: Tags,
        function_arn: str
    ) -> Dict[str, Any]:
        logger.info(f"Updating existing Lambda function: {self.function_name}")
        architectures = settings.pop('Architectures')

        try:
            self.lambda_client.update_function_code(
                FunctionName=self.function_name,
                ImageUri=image_uri,
                Architectures=architectures
            )
            self._wait('function_updated_v2')

            response = self.lambda_client.update_function_configuration(
                FunctionName=self.function_name,
                Role=role_arn,
                **settings
            )
            self._wait('function_updated_v2')

            if tags:
                self.lambda_client.tag_resource(Resource=function_arn, Tags=tags)

            # publish once both code and configuration are in place
            published = self.lambda_client.publish_version(FunctionName=self.function_name)
            response['Version'] = published['Version']
        except ClientError as e:
            logger.error(f"Failed to update function {self.function_name}: {e}")
            raise FunctionDeployError(
                f"Failed to update function {self.function_name}",
                details={'error': str(e)}
            ) from e

        logger.info(f"Successfully updated Lambda function: {self.function_name} (version {response['Version']})")
        return response

    def deploy(
        self,
        image_uri: str,
        role_arn: str,
        memory_size: int = 512,
        timeout: int = 30,
        architecture: str = 'x86_64',
        environment: Optional[Dict[str, str]] = None,
        tags: Optional[Tags] = None,
        description: str = 'Container image Lambda function'
    ) -> Dict[str, Any]:
        """
        Deploy or update the Lambda function.

        Args:
            image_uri: ECR image URI (tag or digest form)
            role_arn: ARN of the IAM execution role
            memory_size: Memory in MB
            timeout: Timeout in seconds
            architecture: x86_64 or arm64, must match the image
            environment: Environment variables
            tags: Function tags
            description: Function description

        Returns:
            Lambda function configuration
        """
        settings = {
            'MemorySize': memory_size,
            'Timeout': timeout,
            'Description': description,
            'Environment': {'Variables': dict(environment or {})},
            'Architectures': [architecture],
        }
        tags = dict(tags or {})

        existing = self.get_configuration()
        if existing is None:
            return self._create(image_uri, role_arn, settings, tags)

        if existing.get('PackageType') != 'Image':
            raise FunctionDeployError(
                f"Function {self.function_name} exists as a {existing.get('PackageType')} package; "
                "package type cannot be changed to Image"
            )
        return self._update(image_uri, role_arn, settings, tags, existing['FunctionArn'])

    def delete(self) -> bool:
        """
        Delete the function.

        Returns:
            True if deleted, False if it did not exist.
        """
        try:
            self.lambda_client.delete_function(FunctionName=self.function_name)
            logger.info(f"Deleted Lambda function: {self.function_name}")
            return True
        except ClientError as e:
            if get_error_code(e) == 'ResourceNotFoundException':
                logger.warning(f"Function {self.function_name} does not exist")
                return False
            raise FunctionDeployError(
                f"Failed to delete function {self.function_name}",
                details={'error': str(e)}
            ) from e
