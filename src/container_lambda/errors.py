"""Exception classes raised by deployment and tagging operations."""

from typing import Any, Dict, Optional

ERROR_CODE_REGISTRY = "REGISTRY_ERROR"
ERROR_CODE_IMAGE_BUILD = "IMAGE_BUILD_FAILED"
ERROR_CODE_FUNCTION_DEPLOY = "FUNCTION_DEPLOY_FAILED"
ERROR_CODE_INVOCATION = "INVOCATION_FAILED"
ERROR_CODE_TAG_POLICY = "TAG_POLICY_VIOLATION"


class DeploymentError(Exception):
    """
    Base exception for all container-lambda-kit errors.

    Callers must provide a message. Subclasses supply a default error code.
    Optional contextual information can be supplied via `details`.
    """

    default_error_code = "DEPLOYMENT_ERROR"

    def __init__(
        self,
        message: str,
        *,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}

        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class RegistryError(DeploymentError):
    """Raised when an ECR repository operation fails."""

    default_error_code = ERROR_CODE_REGISTRY


class ImageBuildError(DeploymentError):
    """Raised when a docker build, tag, login or push fails."""

    default_error_code = ERROR_CODE_IMAGE_BUILD


class FunctionDeployError(DeploymentError):
    """Raised when creating or updating the Lambda function fails."""

    default_error_code = ERROR_CODE_FUNCTION_DEPLOY


class InvocationError(DeploymentError):
    """Raised when a function invocation fails or returns a FunctionError."""

    default_error_code = ERROR_CODE_INVOCATION


class TagPolicyError(DeploymentError):
    """Raised when tags do not satisfy the tag policy."""

    default_error_code = ERROR_CODE_TAG_POLICY

    def __init__(self, message: str, violations=None, **kwargs) -> None:
        self.violations = list(violations or [])
        details = kwargs.pop("details", None) or {}
        details.setdefault("violations", [v.to_dict() for v in self.violations])
        super().__init__(message, details=details, **kwargs)
