"""Error classifiers for provider exceptions.

Converts provider-specific exceptions into standardized OperationResult
objects so stores and channels share one classification.

Key Functions:
- classify_aws_error(): boto3/botocore errors → OperationResult
- classify_http_error(): requests errors from HTTP providers → OperationResult

Usage:
    try:
        response = client.send_email(**kwargs)
    except ClientError as exc:
        return classify_aws_error(exc)
"""

from typing import Optional

import requests
from botocore.exceptions import ClientError

from infrastructure.operations.result import OperationResult
from infrastructure.operations.status import OperationStatus

THROTTLING_CODES = (
    "Throttling",
    "ThrottlingException",
    "RequestLimitExceeded",
    "ProvisionedThroughputExceededException",
)

INVALID_REQUEST_CODES = (
    "ValidationException",
    "InvalidParameterException",
    "InvalidParameterValue",
    "BadRequestException",
    "MessageRejected",
    "EndpointDisabled",
)


def classify_aws_error(exc: Exception) -> OperationResult:
    """Classify AWS SDK errors into OperationResult.

    Error Code Mapping:
    - Throttling family: → TRANSIENT_ERROR with retry_after
    - AccessDeniedException: → PERMANENT_ERROR
    - ResourceNotFoundException: → NOT_FOUND
    - ConditionalCheckFailedException: → CONFLICT
    - Validation family, rejected message/endpoint: → PERMANENT_ERROR
    - Other: → TRANSIENT_ERROR (AWS convention)

    Args:
        exc: Exception raised by boto3/botocore

    Returns:
        OperationResult with status, message, error_code and retry_after
    """
    if not isinstance(exc, ClientError):
        # BotoCoreError (connection, endpoint resolution), timeouts
        return OperationResult.transient_error(
            f"AWS connection error: {type(exc).__name__}: {str(exc)}",
            error_code="CONNECTION_ERROR",
        )

    error_code = "Unknown"
    if exc.response:
        error_code = exc.response.get("Error", {}).get("Code", "Unknown")

    if error_code in THROTTLING_CODES:
        return OperationResult.error(
            OperationStatus.TRANSIENT_ERROR,
            "AWS API throttled",
            error_code="RATE_LIMITED",
            retry_after=60,
        )

    if error_code == "AccessDeniedException":
        return OperationResult.permanent_error(
            "AWS API access denied",
            error_code="FORBIDDEN",
        )

    if error_code == "ResourceNotFoundException":
        return OperationResult.error(
            OperationStatus.NOT_FOUND,
            "AWS resource not found",
            error_code="NOT_FOUND",
        )

    if error_code == "ConditionalCheckFailedException":
        return OperationResult.error(
            OperationStatus.CONFLICT,
            "Conditional check failed",
            error_code="ConditionalCheckFailedException",
        )

    if error_code in INVALID_REQUEST_CODES:
        return OperationResult.permanent_error(
            f"AWS validation error: {error_code}",
            error_code="INVALID_REQUEST",
        )

    return OperationResult.transient_error(
        f"AWS client error: {error_code}",
        error_code="AWS_CLIENT_ERROR",
    )


def classify_http_error(exc: Exception) -> OperationResult:
    """Classify requests exceptions from HTTP providers (GC Notify).

    Status Code Mapping:
    - 429: Rate limiting → TRANSIENT_ERROR with retry_after
    - 401/403: → PERMANENT_ERROR
    - 400: → PERMANENT_ERROR (bad phone number, missing template)
    - 404: → NOT_FOUND
    - 5xx: → TRANSIENT_ERROR
    - no response (connection error, timeout): → TRANSIENT_ERROR

    Args:
        exc: Exception raised by requests

    Returns:
        OperationResult describing the failure
    """
    response = getattr(exc, "response", None)
    status_code: Optional[int] = response.status_code if response is not None else None

    if status_code is None:
        error_code = (
            "TIMEOUT" if isinstance(exc, requests.Timeout) else "CONNECTION_ERROR"
        )
        return OperationResult.transient_error(
            f"Connection error: {type(exc).__name__}: {str(exc)}",
            error_code=error_code,
        )

    if status_code == 429:
        retry_after = 60
        header_value = response.headers.get("Retry-After")
        if header_value:
            try:
                retry_after = int(header_value)
            except (ValueError, TypeError):
                pass
        return OperationResult.error(
            OperationStatus.TRANSIENT_ERROR,
            "Provider rate limited",
            error_code="RATE_LIMITED",
            retry_after=retry_after,
        )

    if status_code in (401, 403):
        return OperationResult.permanent_error(
            "Provider authentication failed",
            error_code="UNAUTHORIZED",
        )

    if status_code == 404:
        return OperationResult.error(
            OperationStatus.NOT_FOUND,
            "Provider resource not found",
            error_code="NOT_FOUND",
        )

    if 500 <= status_code < 600:
        return OperationResult.transient_error(
            f"Provider server error ({status_code})",
            error_code="SERVER_ERROR",
        )

    return OperationResult.permanent_error(
        f"Provider client error ({status_code}): {str(exc)}",
        error_code="HTTP_ERROR",
    )
