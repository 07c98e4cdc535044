"""Configuration management for container Lambda deployments."""

import os
from typing import Dict, List, Optional
from pydantic import BaseModel, Field, field_validator, model_validator
from dotenv import load_dotenv

from .tag_keys import KEY_STYLES, normalize_key

# Load environment variables
load_dotenv()

DEFAULT_TAG_PREFIX = "DEFAULT_TAG_"


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str) -> List[str]:
    value = os.getenv(name, "")
    return [item.strip() for item in value.split(",") if item.strip()]


def _env_default_tags() -> Dict[str, str]:
    """
    Collect provider-level default tags from DEFAULT_TAG_<KEY> variables.

    DEFAULT_TAG_COST_CENTER=platform becomes {"cost_center": "platform"};
    TaggingConfig rewrites the key in its key style.
    """
    tags = {}
    for name, value in os.environ.items():
        if not name.startswith(DEFAULT_TAG_PREFIX) or not value:
            continue
        key = name[len(DEFAULT_TAG_PREFIX):].strip("_").lower()
        if key:
            tags[key] = value
    return tags


class AWSConfig(BaseModel):
    """AWS configuration settings."""

    region: str = Field(default_factory=lambda: os.getenv("AWS_REGION", "us-east-1"))
    account_id: Optional[str] = Field(default_factory=lambda: os.getenv("AWS_ACCOUNT_ID"))


class RegistryConfig(BaseModel):
    """ECR repository configuration."""

    repository_name: str = Field(
        default_factory=lambda: os.getenv("ECR_REPOSITORY", "hello-container-lambda")
    )
    image_tag: str = Field(default_factory=lambda: os.getenv("IMAGE_TAG", "latest"))
    scan_on_push: bool = Field(default_factory=lambda: _env_bool("ECR_SCAN_ON_PUSH", True))
    tag_mutability: str = Field(
        default_factory=lambda: os.getenv("ECR_TAG_MUTABILITY", "MUTABLE")
    )

    @field_validator("tag_mutability")
    @classmethod
    def check_mutability(cls, value: str) -> str:
        value = value.upper()
        if value not in ("MUTABLE", "IMMUTABLE"):
            raise ValueError(f"tag_mutability must be MUTABLE or IMMUTABLE, got {value}")
        return value


class FunctionConfig(BaseModel):
    """Lambda function configuration."""

    function_name: str = Field(
        default_factory=lambda: os.getenv("LAMBDA_FUNCTION_NAME", "hello-container-lambda")
    )
    role_name: str = Field(
        default_factory=lambda: os.getenv("LAMBDA_ROLE_NAME", "container-lambda-execution-role")
    )
    role_arn: Optional[str] = Field(default_factory=lambda: os.getenv("LAMBDA_ROLE_ARN"))
    memory_size: int = Field(
        default_factory=lambda: int(os.getenv("LAMBDA_MEMORY_SIZE", "512")), ge=128, le=10240
    )
    timeout: int = Field(
        default_factory=lambda: int(os.getenv("LAMBDA_TIMEOUT", "30")), ge=1, le=900
    )
    architecture: str = Field(
        default_factory=lambda: os.getenv("LAMBDA_ARCHITECTURE", "x86_64")
    )
    environment: Dict[str, str] = Field(default_factory=dict)

    @field_validator("architecture")
    @classmethod
    def check_architecture(cls, value: str) -> str:
        if value not in ("x86_64", "arm64"):
            raise ValueError(f"architecture must be x86_64 or arm64, got {value}")
        return value

    @property
    def docker_platform(self) -> str:
        """Docker --platform matching the function architecture."""
        return "linux/arm64" if self.architecture == "arm64" else "linux/amd64"


class TaggingConfig(BaseModel):
    """Tagging conventions applied to every created resource."""

    required_keys: List[str] = Field(
        default_factory=lambda: _env_list("REQUIRED_TAG_KEYS")
        or ["Project", "Environment", "Owner", "ManagedBy"]
    )
    default_tags: Dict[str, str] = Field(default_factory=_env_default_tags)
    key_style: str = Field(default_factory=lambda: os.getenv("TAG_KEY_STYLE", "pascal"))
    allowed_values: Dict[str, List[str]] = Field(
        default_factory=lambda: {"Environment": ["dev", "staging", "prod"]}
    )

    @field_validator("key_style")
    @classmethod
    def check_key_style(cls, value: str) -> str:
        value = value.lower()
        if value not in KEY_STYLES:
            raise ValueError(f"Unknown tag key style: {value}")
        return value

    def style_key(self, key: str) -> str:
        """Key written in the configured style; aws: keys are left alone."""
        if key.lower().startswith("aws:"):
            return key
        return normalize_key(key, self.key_style)

    @model_validator(mode="after")
    def apply_key_style(self) -> "TaggingConfig":
        self.required_keys = [self.style_key(key) for key in self.required_keys]
        self.default_tags = {self.style_key(k): v for k, v in self.default_tags.items()}
        self.allowed_values = {self.style_key(k): v for k, v in self.allowed_values.items()}
        return self


class Config(BaseModel):
    """Main configuration object."""

    aws: AWSConfig = Field(default_factory=AWSConfig)
    registry: RegistryConfig = Field(default_factory=RegistryConfig)
    function: FunctionConfig = Field(default_factory=FunctionConfig)
    tagging: TaggingConfig = Field(default_factory=TaggingConfig)

    # Project settings
    project_name: str = "container-lambda-kit"
    environment: str = Field(default_factory=lambda: os.getenv("ENVIRONMENT", "dev"))
    log_level: str = Field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    log_format: Optional[str] = Field(default_factory=lambda: os.getenv("LOG_FORMAT"))

    @property
    def json_logs(self) -> bool:
        """JSON log lines when LOG_FORMAT=json, or in prod unless LOG_FORMAT=text."""
        if self.log_format:
            return self.log_format.lower() == "json"
        return self.environment == "prod"

    def resource_tags(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        """
        Tags for a resource created by this project.

        Project, Environment and ManagedBy are always present unless the
        default tags already carry them; ``extra`` wins over everything.
        Built-in keys follow the configured tag key style.
        """
        style_key = self.tagging.style_key
        tags = {
            style_key("Project"): self.project_name,
            style_key("Environment"): self.environment,
            style_key("ManagedBy"): "container-lambda-kit",
        }
        tags.update(self.tagging.default_tags)
        tags.update(extra or {})
        return tags


# Global configuration instance
config = Config()
