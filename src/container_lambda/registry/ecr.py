"""
ECR repository management for Lambda container images.

Lambda only pulls images from a private ECR repository in the same account
and region as the function, so the repository is created next to it.
"""

import base64
from typing import Dict, Optional

from botocore.exceptions import ClientError
from pydantic import BaseModel, SecretStr

from ..errors import RegistryError
from ..tagging.policy import Tags, to_aws_tag_list
from ..utils.logger import get_logger
from ..utils.aws_helpers import get_account_id, get_boto3_client, get_error_code

logger = get_logger(__name__)


class RegistryCredentials(BaseModel):
    """Short-lived docker login credentials for an ECR registry."""

    username: str
    password: SecretStr
    endpoint: str

    @property
    def registry(self) -> str:
        """Endpoint without the https:// scheme, as docker login expects."""
        return self.endpoint.split("://", 1)[-1]


class EcrRegistry:
    """Manages an ECR repository that stores the function image."""

    def __init__(self, repository_name: str, region: Optional[str] = None, account_id: Optional[str] = None):
        """
        Initialize ECR Registry.

        Args:
            repository_name: ECR repository name
            region: AWS region
            account_id: AWS account ID. Resolved through STS when omitted.
        """
        self.repository_name = repository_name
        self.ecr_client = get_boto3_client('ecr', region=region)
        self.region = region or self.ecr_client.meta.region_name
        self._account_id = account_id

    @property
    def account_id(self) -> str:
        if self._account_id is None:
            self._account_id = get_account_id(region=self.region)
        return self._account_id

    def registry_uri(self) -> str:
        """Registry host, e.g. 123456789012.dkr.ecr.us-east-1.amazonaws.com."""
        return f"{self.account_id}.dkr.ecr.{self.region}.amazonaws.com"

    def repository_uri(self) -> str:
        return f"{self.registry_uri()}/{self.repository_name}"

    def image_uri(self, tag: str = "latest") -> str:
        """Full image reference for a tag or digest."""
        if tag.startswith("sha256:"):
            return f"{self.repository_uri()}@{tag}"
        return f"{self.repository_uri()}:{tag}"

    def ensure_repository(
        self,
        tags: Optional[Tags] = None,
        scan_on_push: bool = True,
        tag_mutability: str = "MUTABLE"
    ) -> str:
        """
        Get the repository, creating it when it does not exist.

        Args:
            tags: Tags applied when the repository is created
            scan_on_push: Enable image vulnerability scanning on push
            tag_mutability: MUTABLE or IMMUTABLE image tags

        Returns:
            Repository URI.
        """
        try:
            response = self.ecr_client.describe_repositories(repositoryNames=[self.repository_name])
            uri = response['repositories'][0]['repositoryUri']
            logger.info(f"Using existing ECR repository: {uri}")
            return uri
        except ClientError as e:
            if get_error_code(e) != 'RepositoryNotFoundException':
                logger.error(f"Failed to describe repository {self.repository_name}: {e}")
                raise RegistryError(
                    f"Failed to describe repository {self.repository_name}",
                    details={'error': str(e)}
                ) from e

        logger.info(f"Creating ECR repository: {self.repository_name}")
        kwargs = {
            'repositoryName': self.repository_name,
            'imageTagMutability': tag_mutability,
            'imageScanningConfiguration': {'scanOnPush': scan_on_push},
        }
        if tags:
            kwargs['tags'] = to_aws_tag_list(tags)

        try:
            response = self.ecr_client.create_repository(**kwargs)
        except ClientError as e:
            if get_error_code(e) == 'RepositoryAlreadyExistsException':
                logger.warning(f"Repository {self.repository_name} was created concurrently")
                return self.repository_uri()
            logger.error(f"Failed to create repository {self.repository_name}: {e}")
            raise RegistryError(
                f"Failed to create repository {self.repository_name}",
                details={'error': str(e)}
            ) from e

        uri = response['repository']['repositoryUri']
        logger.info(f"Created ECR repository: {uri}")
        return uri

    def get_login(self) -> RegistryCredentials:
        """
        Get docker credentials for the registry.

        The token returned by ECR is base64("AWS:<password>") and is valid
        for 12 hours.
        """
        try:
            response = self.ecr_client.get_authorization_token()
        except ClientError as e:
            logger.error(f"Failed to get ECR authorization token: {e}")
            raise RegistryError("Failed to get ECR authorization token", details={'error': str(e)}) from e

        auth = response['authorizationData'][0]
        decoded = base64.b64decode(auth['authorizationToken']).decode('utf-8')
        username, _, password = decoded.partition(':')
        if not password:
            raise RegistryError("Malformed ECR authorization token")

        logger.info(f"Obtained ECR credentials for {auth['proxyEndpoint']}")
        return RegistryCredentials(username=username, password=password, endpoint=auth['proxyEndpoint'])

    def get_image_digest(self, tag: str) -> Optional[str]:
        """Digest of the image with the given tag or digest, or None when absent."""
        image_id = {'imageDigest': tag} if tag.startswith("sha256:") else {'imageTag': tag}
        try:
            response = self.ecr_client.describe_images(
                repositoryName=self.repository_name,
                imageIds=[image_id]
            )
        except ClientError as e:
            if get_error_code(e) in ('ImageNotFoundException', 'RepositoryNotFoundException'):
                return None
            logger.error(f"Failed to describe image {tag}: {e}")
            raise RegistryError(f"Failed to describe image {tag}", details={'error': str(e)}) from e

        details = response.get('imageDetails', [])
        return details[0]['imageDigest'] if details else None

    def image_exists(self, tag: str) -> bool:
        return self.get_image_digest(tag) is not None

    def get_scan_findings(self, tag: str) -> Dict[str, int]:
        """Vulnerability counts by severity for a scanned image."""
        try:
            response = self.ecr_client.describe_image_scan_findings(
                repositoryName=self.repository_name,
                imageId={'imageTag': tag}
            )
        except ClientError as e:
            if get_error_code(e) == 'ScanNotFoundException':
                logger.warning(f"No scan results for {self.repository_name}:{tag}")
                return {}
            raise RegistryError(f"Failed to get scan findings for {tag}", details={'error': str(e)}) from e

        return response.get('imageScanFindings', {}).get('findingSeverityCounts', {})

    def delete_repository(self, force: bool = False) -> bool:
        """
        Delete the repository.

        Args:
            force: Delete even if it still contains images

        Returns:
            True if deleted, False if it did not exist.
        """
        try:
            self.ecr_client.delete_repository(repositoryName=self.repository_name, force=force)
            logger.info(f"Deleted ECR repository: {self.repository_name}")
            return True
        except ClientError as e:
            if get_error_code(e) == 'RepositoryNotFoundException':
                logger.warning(f"Repository {self.repository_name} does not exist")
                return False
            logger.error(f"Failed to delete repository {self.repository_name}: {e}")
            raise RegistryError(
                f"Failed to delete repository {self.repository_name}",
                details={'error': str(e)}
            ) from e
