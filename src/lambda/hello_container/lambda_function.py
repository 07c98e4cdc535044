"""
Sample Lambda function packaged as a container image.

Returns a greeting for the "name" in the event, together with details of the
runtime it ran in, so a smoke test can confirm the new image is live.
"""

import json
import logging
import os
import platform
from datetime import datetime, timezone
from typing import Any, Dict

logger = logging.getLogger()
logger.setLevel(os.getenv('LOG_LEVEL', 'INFO').upper())

IMAGE_VERSION = os.getenv('IMAGE_VERSION', 'dev')


def build_greeting(name: str) -> str:
    return f"Hello, {name}!"


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Lambda handler for the container image smoke test.

    Args:
        event: Invocation event; may carry "name", or an API Gateway "body"
        context: Lambda context object with runtime information

    Returns:
        Response dictionary with statusCode and a JSON body
    """
    event = event or {}
    logger.info(f"Received event: {json.dumps(event)}")

    body = event.get('body')
    if isinstance(body, str):
        try:
            body = json.loads(body)
        except ValueError:
            logger.warning("Event body is not JSON, ignoring it")
            body = {}
    params = body if isinstance(body, dict) else event

    name = params.get('name') or 'world'
    if not isinstance(name, str):
        return {
            'statusCode': 400,
            'body': json.dumps({'message': "'name' must be a string"})
        }

    response = {
        'statusCode': 200,
        'body': json.dumps({
            'message': build_greeting(name),
            'image_version': IMAGE_VERSION,
            'python_version': platform.python_version(),
            'request_id': getattr(context, 'aws_request_id', None),
            'function_name': getattr(context, 'function_name', None),
            'timestamp': datetime.now(timezone.utc).isoformat()
        })
    }

    logger.info(f"Responding to {getattr(context, 'aws_request_id', 'local')} with greeting for {name}")
    return response
