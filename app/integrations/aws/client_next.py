"""
AWS Service Next Module

Centralized error handling, throttling retries and standardized
OperationResult responses for the boto3 calls made by the notification
service (DynamoDB record store, SES email, SNS push).

Usage:
    result = execute_aws_api_call(
        service_name="dynamodb",
        method="get_item",
        TableName="marketplace-notifications",
        Key={"notification_id": {"S": "abc"}},
    )
    if result.is_success:
        item = result.data.get("Item")

    # Paginated reads collect every page of the requested keys
    result = execute_aws_api_call(
        service_name="dynamodb",
        method="query",
        keys=["Items"],
        paginate=True,
        TableName="marketplace-notifications",
        KeyConditionExpression="recipient_key = :rk",
        ExpressionAttributeValues={":rk": {"S": "user#u1"}},
    )
"""

import time
from functools import lru_cache
from typing import Any, Callable, List, Optional

import boto3  # type: ignore
from botocore.client import BaseClient  # type: ignore
from botocore.config import Config  # type: ignore
from botocore.exceptions import BotoCoreError, ClientError  # type: ignore

from infrastructure.configuration import settings
from infrastructure.logging import get_module_logger
from infrastructure.operations import OperationResult, classify_aws_error

logger = get_module_logger()

AWS_REGION = settings.aws.AWS_REGION
ENDPOINT_URL = settings.aws.ENDPOINT_URL
THROTTLING_ERRS = settings.aws.THROTTLING_ERRS

DEFAULT_MAX_RETRIES = 3
DEFAULT_BACKOFF_FACTOR = 0.5

# Channel deadlines are a few seconds, so sockets must give up sooner.
CLIENT_CONFIG = Config(connect_timeout=2, read_timeout=5, retries={"max_attempts": 0})


def _error_code(error: Exception) -> Optional[str]:
    if isinstance(error, ClientError):
        return error.response.get("Error", {}).get("Code")
    return None


def _should_retry(error: Exception, attempt: int, max_retries: int) -> bool:
    return _error_code(error) in THROTTLING_ERRS and attempt < max_retries


def _calculate_retry_delay(attempt: int) -> float:
    return DEFAULT_BACKOFF_FACTOR * (2**attempt)


@lru_cache(maxsize=None)
def get_aws_client(service_name: str) -> BaseClient:
    """Create (once per process) a boto3 client for the given service.

    boto3 clients are thread-safe, so the channel executor threads share them.

    Args:
        service_name (str): The name of the AWS service.
    """
    session = boto3.Session(region_name=AWS_REGION)
    return session.client(service_name, endpoint_url=ENDPOINT_URL, config=CLIENT_CONFIG)


def _paginate_all_results(
    client: BaseClient, method: str, keys: Optional[List[str]] = None, **kwargs
) -> List[dict]:
    paginator = client.get_paginator(method)
    results: List[dict] = []
    for page in paginator.paginate(**kwargs):
        if keys is None:
            for key, value in page.items():
                if key == "ResponseMetadata":
                    continue
                if isinstance(value, list):
                    results.extend(value)
                else:
                    results.append(value)
        else:
            for key in keys:
                results.extend(page.get(key, []))
    return results


def execute_api_call(
    func_name: str,
    api_call: Callable[[], Any],
    max_retries: Optional[int] = None,
) -> OperationResult:
    """Run an AWS API call with throttling retries.

    Args:
        func_name (str): Name of the call for logging, e.g. "dynamodb_update_item"
        api_call (callable): The API call to execute
        max_retries (int): Override the default number of retries

    Returns:
        OperationResult: SUCCESS with the raw response as data, or the
        classified failure.
    """
    max_retry_attempts = max_retries if max_retries is not None else DEFAULT_MAX_RETRIES

    for attempt in range(max_retry_attempts + 1):
        try:
            logger.debug(
                "aws_api_call_start",
                function=func_name,
                attempt=attempt + 1,
                max_attempts=max_retry_attempts + 1,
            )
            result = api_call()
            if attempt > 0:
                logger.info("aws_api_retry_success", function=func_name, attempt=attempt + 1)
            return OperationResult.success(data=result, message=f"{func_name} ok")

        except (BotoCoreError, ClientError) as e:
            if _should_retry(e, attempt, max_retry_attempts):
                delay = _calculate_retry_delay(attempt)
                logger.warning(
                    "aws_api_retrying",
                    function=func_name,
                    attempt=attempt + 1,
                    error=str(e),
                    delay=delay,
                )
                time.sleep(delay)
                continue

            result = classify_aws_error(e)
            if result.is_conflict:
                logger.debug("aws_api_conditional_check_failed", function=func_name)
            else:
                logger.error(
                    "aws_api_error_final",
                    function=func_name,
                    error=str(e),
                    error_code=_error_code(e),
                )
            return result

    # Unreachable: the final iteration either returns or stops retrying
    return OperationResult.transient_error(
        f"{func_name} exhausted retries", error_code="RETRIES_EXHAUSTED"
    )


def execute_aws_api_call(
    service_name: str,
    method: str,
    keys: Optional[List[str]] = None,
    paginate: bool = False,
    max_retries: Optional[int] = None,
    **kwargs,
) -> OperationResult:
    """Call ``method`` on the ``service_name`` client with standard handling.

    Args:
        service_name (str): The name of the AWS service.
        method (str): The method to call on the service.
        keys (list, optional): The keys to collect from paginated results.
        paginate (bool): Collect every page instead of the first response.
        max_retries (int, optional): Override default max retries.
        **kwargs: Keyword arguments for the API call.

    Returns:
        OperationResult: Raw response (or the list of paginated items) in data.
    """

    def api_call():
        client = get_aws_client(service_name)
        if paginate:
            return _paginate_all_results(client, method, keys, **kwargs)
        return getattr(client, method)(**kwargs)

    return execute_api_call(
        f"{service_name}_{method}",
        api_call,
        max_retries=max_retries,
    )
