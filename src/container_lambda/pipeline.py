"""
End-to-end deployment of a container image Lambda function.

Steps:
1. Validate resource tags against the tag policy
2. Ensure the ECR repository exists
3. Log docker into ECR
4. Build and tag the image
5. Push the image
6. Get or create the execution role
7. Create or update the function
8. Optionally invoke it once as a smoke test
"""

from pathlib import Path
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel

from .config import Config
from .deploy.function import ContainerFunctionDeployer
from .deploy.invoke import FunctionInvoker, InvocationResult
from .errors import RegistryError, TagPolicyError
from .registry.docker_cli import DockerCli
from .registry.ecr import EcrRegistry
from .tagging.policy import Tags, TagPolicy
from .utils.logger import get_logger, log_step

logger = get_logger(__name__)


class DeploymentResult(BaseModel):
    """Outcome of a pipeline run."""

    image_uri: str
    image_digest: Optional[str] = None
    function_arn: str
    role_arn: str
    invocation: Optional[InvocationResult] = None

    @property
    def pinned_image_uri(self) -> str:
        """Image URI pinned to the pushed digest when known."""
        if not self.image_digest:
            return self.image_uri
        # strip an existing digest, then the tag of the last path segment
        path, _, name = self.image_uri.partition("@")[0].rpartition("/")
        name = name.split(":", 1)[0]
        repository = f"{path}/{name}" if path else name
        return f"{repository}@{self.image_digest}"


class ContainerLambdaPipeline:
    """Builds, pushes, deploys and smoke-tests a container Lambda."""

    def __init__(
        self,
        config: Config,
        docker: Optional[DockerCli] = None,
        registry: Optional[EcrRegistry] = None,
        deployer: Optional[ContainerFunctionDeployer] = None,
        invoker: Optional[FunctionInvoker] = None,
        policy: Optional[TagPolicy] = None
    ):
        region = config.aws.region
        self.config = config
        self.docker = docker or DockerCli()
        self.registry = registry or EcrRegistry(
            config.registry.repository_name, region=region, account_id=config.aws.account_id
        )
        self.deployer = deployer or ContainerFunctionDeployer(
            config.function.function_name, role_name=config.function.role_name, region=region
        )
        self.invoker = invoker or FunctionInvoker(config.function.function_name, region=region)
        self.policy = policy or TagPolicy.from_config(config.tagging)

    def resource_tags(self, extra_tags: Optional[Tags] = None) -> Tags:
        """
        Tags for every resource the pipeline creates.

        Raises:
            TagPolicyError: if the merged tags break the tag policy.
        """
        tags = self.config.resource_tags(extra_tags)
        violations = self.policy.validate_tags(tags, resource=self.config.function.function_name)
        if violations:
            for violation in violations:
                logger.error(f"Tag policy violation: {violation.message}")
            raise TagPolicyError(
                f"{len(violations)} tag policy violation(s); nothing was deployed",
                violations=violations
            )
        return tags

    def run(
        self,
        context_dir: Union[str, Path],
        image_tag: Optional[str] = None,
        extra_tags: Optional[Tags] = None,
        smoke_test_event: Optional[Dict[str, Any]] = None,
        skip_build: bool = False
    ) -> DeploymentResult:
        """
        Run the deployment.

        Args:
            context_dir: Docker build context containing the Dockerfile
            image_tag: Image tag, defaults to the configured tag
            extra_tags: Tags added on top of the project and default tags
            smoke_test_event: Event to invoke the function with after deploy
            skip_build: Deploy an image already pushed under image_tag

        Returns:
            DeploymentResult
        """
        function_config = self.config.function
        registry_config = self.config.registry
        image_tag = image_tag or registry_config.image_tag

        log_step(logger, 1, "Validating resource tags")
        tags = self.resource_tags(extra_tags)

        log_step(logger, 2, "Ensuring ECR repository")
        self.registry.ensure_repository(
            tags=tags,
            scan_on_push=registry_config.scan_on_push,
            tag_mutability=registry_config.tag_mutability
        )
        image_uri = self.registry.image_uri(image_tag)

        if not skip_build:
            log_step(logger, 3, "Logging in to ECR")
            self.docker.ensure_available()
            self.docker.login(self.registry.get_login())

            log_step(logger, 4, "Building image")
            local_image = f"{registry_config.repository_name}:{image_tag}"
            self.docker.build(
                context_dir,
                local_image,
                platform=function_config.docker_platform,
                build_args={"IMAGE_VERSION": image_tag}
            )
            self.docker.tag(local_image, image_uri)

            log_step(logger, 5, "Pushing image")
            self.docker.push(image_uri)

        digest = self.registry.get_image_digest(image_tag)
        if digest:
            logger.info(f"Image digest: {digest}")
        elif skip_build:
            raise RegistryError(
                f"Image {image_uri} not found; push it first or deploy without --skip-build",
                details={'repository': registry_config.repository_name, 'tag': image_tag}
            )

        log_step(logger, 6, "Setting up IAM role")
        role_arn = function_config.role_arn or self.deployer.get_or_create_role(tags=tags)

        log_step(logger, 7, "Deploying Lambda function")
        response = self.deployer.deploy(
            image_uri=image_uri,
            role_arn=role_arn,
            memory_size=function_config.memory_size,
            timeout=function_config.timeout,
            architecture=function_config.architecture,
            environment=function_config.environment,
            tags=tags,
            description=f"{self.config.project_name} container function ({image_tag})"
        )

        result = DeploymentResult(
            image_uri=image_uri,
            image_digest=digest,
            function_arn=response['FunctionArn'],
            role_arn=role_arn
        )

        if smoke_test_event is not None:
            log_step(logger, 8, "Invoking function")
            result.invocation = self.invoker.invoke_or_raise(smoke_test_event)

        logger.info("=" * 60)
        logger.info("Deployment successful!")
        logger.info("=" * 60)
        logger.info(f"Function ARN: {result.function_arn}")
        logger.info(f"Image: {result.pinned_image_uri}")
        return result
