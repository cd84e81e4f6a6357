"""AWS SNS Next Module

Mobile push through SNS platform endpoints.

Usage:
    result = publish_to_endpoint(
        endpoint_arn="arn:aws:sns:ca-central-1:123:endpoint/GCM/app/abc",
        message=json.dumps({"default": "...", "GCM": "..."}),
    )
"""

from integrations.aws.client_next import execute_aws_api_call
from infrastructure.operations import OperationResult


def publish_to_endpoint(
    endpoint_arn: str,
    message: str,
    max_retries: int = 0,
) -> OperationResult:
    """Publish a JSON message to an SNS platform endpoint.

    Args:
        endpoint_arn: Platform endpoint ARN registered for the device
        message: JSON document with ``default`` and per-platform payloads
        max_retries: Throttling retries

    Returns:
        OperationResult: SNS response (with ``MessageId``) in data
    """
    return execute_aws_api_call(
        service_name="sns",
        method="publish",
        max_retries=max_retries,
        TargetArn=endpoint_arn,
        Message=message,
        MessageStructure="json",
    )
