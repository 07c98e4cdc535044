"""Utility modules for container Lambda deployments."""

from .logger import get_logger, log_step
from .aws_helpers import (
    get_boto3_client,
    get_boto3_resource,
    get_account_id,
    get_error_code,
)

__all__ = [
    "get_logger",
    "log_step",
    "get_boto3_client",
    "get_boto3_resource",
    "get_account_id",
    "get_error_code",
]
