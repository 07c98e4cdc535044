"""Lambda function deployment and invocation."""

from .function import ContainerFunctionDeployer
from .invoke import FunctionInvoker, InvocationResult

__all__ = ["ContainerFunctionDeployer", "FunctionInvoker", "InvocationResult"]
