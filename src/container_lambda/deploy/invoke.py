"""Invoke a deployed Lambda function and decode its response."""

import base64
import json
from typing import Any, Dict, Optional

from botocore.exceptions import ClientError
from pydantic import BaseModel

from ..errors import InvocationError
from ..utils.logger import get_logger
from ..utils.aws_helpers import get_boto3_client

logger = get_logger(__name__)

INVOCATION_TYPES = ('RequestResponse', 'Event', 'DryRun')


class InvocationResult(BaseModel):
    """Decoded response of a Lambda invocation."""

    status_code: int
    payload: Any = None
    function_error: Optional[str] = None
    log_tail: Optional[str] = None
    executed_version: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.function_error is None and 200 <= self.status_code < 300


def decode_payload(raw: bytes) -> Any:
    """Decode a response payload as JSON, falling back to text."""
    if not raw:
        return None
    text = raw.decode('utf-8')
    try:
        return json.loads(text)
    except ValueError:
        return text


class FunctionInvoker:
    """Invokes a Lambda function by name, alias or ARN."""

    def __init__(self, function_name: str, region: Optional[str] = None):
        self.function_name = function_name
        self.lambda_client = get_boto3_client('lambda', region=region)

    def invoke(
        self,
        payload: Optional[Dict[str, Any]] = None,
        invocation_type: str = 'RequestResponse',
        log_tail: bool = False,
        qualifier: Optional[str] = None
    ) -> InvocationResult:
        """
        Invoke the function.

        Args:
            payload: Event passed to the handler, JSON encoded
            invocation_type: RequestResponse, Event or DryRun
            log_tail: Return the last 4 KB of the execution log
            qualifier: Version or alias

        Returns:
            InvocationResult with the decoded payload.
        """
        if invocation_type not in INVOCATION_TYPES:
            raise ValueError(f"invocation_type must be one of {INVOCATION_TYPES}")

        kwargs = {
            'FunctionName': self.function_name,
            'InvocationType': invocation_type,
            'Payload': json.dumps(payload if payload is not None else {}).encode('utf-8'),
        }
        if log_tail and invocation_type == 'RequestResponse':
            kwargs['LogType'] = 'Tail'
        if qualifier:
            kwargs['Qualifier'] = qualifier

        logger.info(f"Invoking {self.function_name} ({invocation_type})")
        try:
            response = self.lambda_client.invoke(**kwargs)
        except ClientError as e:
            logger.error(f"Failed to invoke {self.function_name}: {e}")
            raise InvocationError(f"Failed to invoke {self.function_name}", details={'error': str(e)}) from e

        body = response.get('Payload')
        raw = body.read() if body is not None else b''

        tail = None
        if response.get('LogResult'):
            tail = base64.b64decode(response['LogResult']).decode('utf-8', errors='replace')

        result = InvocationResult(
            status_code=response.get('StatusCode', 0),
            payload=decode_payload(raw),
            function_error=response.get('FunctionError'),
            log_tail=tail,
            executed_version=response.get('ExecutedVersion'),
        )

        if result.function_error:
            logger.warning(f"{self.function_name} returned {result.function_error} error: {result.payload}")
        else:
            logger.info(f"{self.function_name} responded with status {result.status_code}")
        return result

    def invoke_or_raise(self, payload: Optional[Dict[str, Any]] = None, **kwargs) -> InvocationResult:
        """Invoke and raise InvocationError when the handler failed."""
        result = self.invoke(payload, **kwargs)
        if not result.succeeded:
            error_type = None
            if isinstance(result.payload, dict):
                error_type = result.payload.get('errorType')
            raise InvocationError(
                f"{self.function_name} failed: {result.function_error or result.status_code}",
                details={'error_type': error_type, 'payload': result.payload, 'log_tail': result.log_tail}
            )
        return result
