from unittest.mock import MagicMock, patch

from botocore.exceptions import ClientError, EndpointConnectionError

from integrations.aws import client_next
from infrastructure.operations import OperationResult, OperationStatus


def client_error(code):
    return ClientError({"Error": {"Code": code, "Message": code}}, "op")


def test_execute_api_call_success():
    result = client_next.execute_api_call("svc_method", lambda: {"items": [1, 2, 3]})

    assert isinstance(result, OperationResult)
    assert result.is_success
    assert result.data == {"items": [1, 2, 3]}


@patch("integrations.aws.client_next.time.sleep")
def test_execute_api_call_retries_throttling(mock_sleep):
    api_call = MagicMock(side_effect=[client_error("ThrottlingException"), {"ok": True}])

    result = client_next.execute_api_call("svc_method", api_call, max_retries=2)

    assert result.is_success
    assert api_call.call_count == 2
    mock_sleep.assert_called_once_with(client_next.DEFAULT_BACKOFF_FACTOR)


@patch("integrations.aws.client_next.time.sleep")
def test_execute_api_call_gives_up_after_retries(mock_sleep):
    api_call = MagicMock(side_effect=client_error("ThrottlingException"))

    result = client_next.execute_api_call("svc_method", api_call, max_retries=1)

    assert result.status == OperationStatus.TRANSIENT_ERROR
    assert result.error_code == "RATE_LIMITED"
    assert api_call.call_count == 2


def test_execute_api_call_conditional_failure_is_conflict():
    api_call = MagicMock(side_effect=client_error("ConditionalCheckFailedException"))
    result = client_next.execute_api_call("dynamodb_update_item", api_call)
    assert result.is_conflict
    api_call.assert_called_once()


def test_execute_api_call_connection_error():
    api_call = MagicMock(side_effect=EndpointConnectionError(endpoint_url="https://x"))
    result = client_next.execute_api_call("sns_publish", api_call)
    assert result.error_code == "CONNECTION_ERROR"


def test_paginate_all_results_respects_keys():
    paginator = MagicMock()
    paginator.paginate.return_value = [
        {"Items": [{"id": 1}], "ResponseMetadata": {"RequestId": "r1"}},
        {"Items": [{"id": 2}], "Other": ["x"]},
    ]
    client = MagicMock()
    client.get_paginator.return_value = paginator

    results = client_next._paginate_all_results(client, "query", keys=["Items"], TableName="t")

    assert results == [{"id": 1}, {"id": 2}]
    paginator.paginate.assert_called_once_with(TableName="t")


def test_paginate_all_results_without_keys_skips_metadata():
    paginator = MagicMock()
    paginator.paginate.return_value = [
        {"Items": [{"id": 1}], "Count": 1, "ResponseMetadata": {}},
    ]
    client = MagicMock()
    client.get_paginator.return_value = paginator

    assert client_next._paginate_all_results(client, "scan") == [{"id": 1}, 1]


@patch("integrations.aws.client_next.get_aws_client")
def test_execute_aws_api_call_non_paginated(mock_get_client):
    mock_get_client.return_value.get_item.return_value = {"Item": {"id": {"S": "1"}}}

    result = client_next.execute_aws_api_call(
        service_name="dynamodb", method="get_item", TableName="t", Key={}
    )

    assert result.data == {"Item": {"id": {"S": "1"}}}
    mock_get_client.assert_called_once_with("dynamodb")
    mock_get_client.return_value.get_item.assert_called_once_with(TableName="t", Key={})


@patch("integrations.aws.client_next._paginate_all_results")
@patch("integrations.aws.client_next.get_aws_client")
def test_execute_aws_api_call_paginated(mock_get_client, mock_paginate):
    mock_paginate.return_value = [{"id": 1}]

    result = client_next.execute_aws_api_call(
        service_name="dynamodb", method="query", keys=["Items"], paginate=True, TableName="t"
    )

    assert result.data == [{"id": 1}]
    mock_paginate.assert_called_once_with(
        mock_get_client.return_value, "query", ["Items"], TableName="t"
    )


@patch("integrations.aws.client_next.boto3")
def test_get_aws_client_uses_region_and_endpoint(mock_boto3):
    client_next.get_aws_client.cache_clear()
    try:
        client_next.get_aws_client("sesv2")
    finally:
        client_next.get_aws_client.cache_clear()

    mock_boto3.Session.assert_called_once_with(region_name=client_next.AWS_REGION)
    mock_boto3.Session.return_value.client.assert_called_once_with(
        "sesv2", endpoint_url=client_next.ENDPOINT_URL, config=client_next.CLIENT_CONFIG
    )
