"""Build, tag and push images with the docker CLI."""

import shutil
import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Union

from ..errors import ImageBuildError
from ..utils.logger import get_logger
from .ecr import RegistryCredentials

logger = get_logger(__name__)

# Lambda rejects OCI image indexes with attestations, so provenance is disabled
BUILD_FLAGS = ["--provenance=false"]


class DockerCli:
    """Runs docker commands and turns failures into ImageBuildError."""

    def __init__(self, executable: str = "docker", timeout: int = 1800):
        """
        Initialize Docker CLI wrapper.

        Args:
            executable: docker binary name or path
            timeout: Seconds before a single command is aborted
        """
        self.executable = executable
        self.timeout = timeout

    def is_available(self) -> bool:
        """Check that docker is installed and the daemon answers."""
        if shutil.which(self.executable) is None:
            return False
        try:
            result = subprocess.run(
                [self.executable, "version", "--format", "{{.Server.Version}}"],
                capture_output=True,
                text=True,
                timeout=10
            )
        except (OSError, subprocess.TimeoutExpired):
            return False
        return result.returncode == 0

    def ensure_available(self) -> None:
        """Raise ImageBuildError unless docker can be used."""
        if not self.is_available():
            raise ImageBuildError(
                f"{self.executable} is not installed or its daemon is not running",
                details={'executable': self.executable}
            )

    def _run(self, args: List[str], input_text: Optional[str] = None) -> subprocess.CompletedProcess:
        command = [self.executable] + args
        printable = " ".join(command)
        logger.info(f"Running: {printable}")

        try:
            result = subprocess.run(
                command,
                input=input_text,
                capture_output=True,
                text=True,
                timeout=self.timeout
            )
        except FileNotFoundError as e:
            raise ImageBuildError(f"docker executable not found: {self.executable}") from e
        except subprocess.TimeoutExpired as e:
            raise ImageBuildError(
                f"Command timed out after {self.timeout}s: {printable}",
                details={'command': printable}
            ) from e

        if result.returncode != 0:
            stderr = (result.stderr or "").strip()
            logger.error(f"Command failed ({result.returncode}): {printable}\n{stderr}")
            raise ImageBuildError(
                f"Command failed with exit code {result.returncode}: {printable}",
                details={'command': printable, 'returncode': result.returncode, 'stderr': stderr}
            )

        return result

    def login(self, credentials: RegistryCredentials) -> None:
        """Log docker into the registry, passing the password on stdin."""
        self._run(
            ["login", "--username", credentials.username, "--password-stdin", credentials.registry],
            input_text=credentials.password.get_secret_value()
        )
        logger.info(f"Logged in to {credentials.registry}")

    def build(
        self,
        context_dir: Union[str, Path],
        image: str,
        platform: str = "linux/amd64",
        dockerfile: Optional[Union[str, Path]] = None,
        build_args: Optional[Dict[str, str]] = None
    ) -> str:
        """
        Build an image.

        Args:
            context_dir: Build context directory (contains the Dockerfile)
            image: Name and tag for the built image
            platform: Target platform matching the function architecture
            dockerfile: Dockerfile path when not <context_dir>/Dockerfile
            build_args: --build-arg values

        Returns:
            The image reference that was built.
        """
        context_dir = Path(context_dir)
        dockerfile = Path(dockerfile) if dockerfile else context_dir / "Dockerfile"
        if not dockerfile.exists():
            raise ImageBuildError(f"Dockerfile not found: {dockerfile}")

        args = ["build", "--platform", platform] + BUILD_FLAGS + ["-t", image, "-f", str(dockerfile)]
        for key, value in sorted((build_args or {}).items()):
            args += ["--build-arg", f"{key}={value}"]
        args.append(str(context_dir))

        self._run(args)
        logger.info(f"Built image {image}")
        return image

    def tag(self, source: str, target: str) -> str:
        self._run(["tag", source, target])
        return target

    def push(self, image: str) -> None:
        """Push an image to its registry."""
        self._run(["push", image])
        logger.info(f"Pushed image {image}")
