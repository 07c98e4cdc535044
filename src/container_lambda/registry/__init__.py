"""Container registry and docker image handling."""

from .ecr import EcrRegistry, RegistryCredentials
from .docker_cli import DockerCli

__all__ = ["EcrRegistry", "RegistryCredentials", "DockerCli"]
