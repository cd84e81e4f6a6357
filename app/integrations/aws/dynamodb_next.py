"""AWS DynamoDB Next Module

Thin DynamoDB functions on top of client_next.execute_aws_api_call.

Features:
- Consistent error handling and throttling retries
- Standardized OperationResult responses
- Automatic pagination for query/scan, single-page bounded queries

Usage:
    result = get_item(
        table_name="marketplace-notifications",
        Key={"notification_id": {"S": "abc"}},
    )
    if result.is_success:
        item = result.data.get("Item")
    elif result.is_conflict:
        ...
"""

from typing import Any, Dict

from integrations.aws.client_next import execute_aws_api_call
from infrastructure.operations import OperationResult


def get_item(
    table_name: str,
    Key: Dict[str, Any],
    **kwargs,
) -> OperationResult:
    """Get an item from a DynamoDB table.

    Args:
        table_name: DynamoDB table name
        Key: Primary key attributes (DynamoDB format)
        **kwargs: Additional parameters for get_item call

    Returns:
        OperationResult: Raw response (``Item`` absent when not found)
    """
    return execute_aws_api_call(
        service_name="dynamodb",
        method="get_item",
        TableName=table_name,
        Key=Key,
        **kwargs,
    )


def put_item(
    table_name: str,
    Item: Dict[str, Any],
    **kwargs,
) -> OperationResult:
    """Put an item into a DynamoDB table."""
    return execute_aws_api_call(
        service_name="dynamodb",
        method="put_item",
        TableName=table_name,
        Item=Item,
        **kwargs,
    )


def update_item(
    table_name: str,
    Key: Dict[str, Any],
    **kwargs,
) -> OperationResult:
    """Update an item in a DynamoDB table.

    A failed ``ConditionExpression`` comes back as a CONFLICT result.
    """
    return execute_aws_api_call(
        service_name="dynamodb",
        method="update_item",
        TableName=table_name,
        Key=Key,
        **kwargs,
    )


def delete_item(
    table_name: str,
    Key: Dict[str, Any],
    **kwargs,
) -> OperationResult:
    """Delete an item from a DynamoDB table."""
    return execute_aws_api_call(
        service_name="dynamodb",
        method="delete_item",
        TableName=table_name,
        Key=Key,
        **kwargs,
    )


def query(
    table_name: str,
    KeyConditionExpression: str,
    **kwargs,
) -> OperationResult:
    """Query a DynamoDB table or index, collecting every page.

    Returns:
        OperationResult: list of items in data
    """
    return execute_aws_api_call(
        service_name="dynamodb",
        method="query",
        keys=["Items"],
        paginate=True,
        TableName=table_name,
        KeyConditionExpression=KeyConditionExpression,
        **kwargs,
    )


def query_page(
    table_name: str,
    KeyConditionExpression: str,
    **kwargs,
) -> OperationResult:
    """Query a DynamoDB table or index for a single page.

    Use with ``Limit`` when the caller wants a bounded read.

    Returns:
        OperationResult: raw response (``Items``, ``LastEvaluatedKey``) in data
    """
    return execute_aws_api_call(
        service_name="dynamodb",
        method="query",
        TableName=table_name,
        KeyConditionExpression=KeyConditionExpression,
        **kwargs,
    )


def scan(
    table_name: str,
    **kwargs,
) -> OperationResult:
    """Scan a DynamoDB table, collecting every page.

    Returns:
        OperationResult: list of items in data
    """
    return execute_aws_api_call(
        service_name="dynamodb",
        method="scan",
        keys=["Items"],
        paginate=True,
        TableName=table_name,
        **kwargs,
    )
