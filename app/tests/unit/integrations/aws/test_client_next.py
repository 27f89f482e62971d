"""Unit tests for the AWS call wrapper in client_next.py."""

from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from infrastructure.operations import OperationStatus
from integrations.aws import client_next

pytestmark = pytest.mark.unit


def _client_error(code):
    return ClientError({"Error": {"Code": code, "Message": "boom"}}, "PutItem")


@pytest.fixture(autouse=True)
def no_sleep():
    with patch("integrations.aws.client_next.time.sleep") as sleep:
        yield sleep


@pytest.fixture(autouse=True)
def clear_client_cache():
    client_next._clients.clear()
    yield
    client_next._clients.clear()


class TestExecuteApiCall:
    def test_success_wraps_response(self):
        result = client_next.execute_api_call("dynamodb_get_item", lambda: {"Item": {}})

        assert result.is_success
        assert result.data == {"Item": {}}

    def test_throttling_is_retried_then_succeeds(self, no_sleep):
        call = MagicMock(side_effect=[_client_error("ThrottlingException"), {"ok": True}])

        result = client_next.execute_api_call("dynamodb_query", call)

        assert result.is_success
        assert call.call_count == 2
        no_sleep.assert_called_once_with(0.5)

    def test_throttling_exhausts_retries(self, no_sleep):
        call = MagicMock(side_effect=_client_error("ProvisionedThroughputExceededException"))

        result = client_next.execute_api_call("dynamodb_query", call, max_retries=2)

        assert call.call_count == 3
        assert result.status == OperationStatus.TRANSIENT_ERROR
        assert result.error_code == "RATE_LIMITED"
        assert [c.args[0] for c in no_sleep.call_args_list] == [0.5, 1.0]

    def test_condition_failed_is_not_retried(self):
        call = MagicMock(side_effect=_client_error("ConditionalCheckFailedException"))

        result = client_next.execute_api_call("dynamodb_update_item", call)

        assert call.call_count == 1
        assert result.error_code == "CONDITION_FAILED"

    def test_botocore_error_is_transient(self):
        call = MagicMock(side_effect=EndpointConnectionError(endpoint_url="http://x"))

        result = client_next.execute_api_call("dynamodb_scan", call)

        assert result.status == OperationStatus.TRANSIENT_ERROR
        assert result.error_code == "CONNECTION_ERROR"

    def test_unexpected_exception_is_captured(self):
        call = MagicMock(side_effect=KeyError("missing"))

        result = client_next.execute_api_call("dynamodb_scan", call)

        assert result.error_code == "UNEXPECTED_ERROR"


class TestExecuteAwsApiCall:
    @patch("integrations.aws.client_next.get_aws_client")
    def test_calls_client_method(self, mock_get_client):
        client = MagicMock()
        client.get_item.return_value = {"Item": {"id": {"S": "1"}}}
        mock_get_client.return_value = client

        result = client_next.execute_aws_api_call(
            "dynamodb", "get_item", TableName="t", Key={"id": {"S": "1"}}
        )

        client.get_item.assert_called_once_with(TableName="t", Key={"id": {"S": "1"}})
        assert result.data["Item"]["id"]["S"] == "1"

    @patch("integrations.aws.client_next.get_aws_client")
    def test_force_paginate_merges_pages(self, mock_get_client):
        client = MagicMock()
        client.get_paginator.return_value.paginate.return_value = [
            {"Items": [{"id": 1}], "Count": 1},
            {"Items": [{"id": 2}]},
            {},
        ]
        mock_get_client.return_value = client

        result = client_next.execute_aws_api_call(
            "dynamodb", "scan", keys=["Items"], force_paginate=True, TableName="t"
        )

        client.get_paginator.assert_called_once_with("scan")
        client.get_paginator.return_value.paginate.assert_called_once_with(TableName="t")
        assert result.data == {"Items": [{"id": 1}, {"id": 2}]}


class TestGetAwsClient:
    @patch("integrations.aws.client_next.boto3.session.Session")
    def test_client_is_cached_per_service(self, mock_session):
        first = client_next.get_aws_client("dynamodb")
        second = client_next.get_aws_client("dynamodb")

        assert first is second
        assert mock_session.return_value.client.call_count == 1

    @patch("integrations.aws.client_next.get_settings")
    @patch("integrations.aws.client_next.boto3.session.Session")
    def test_endpoint_override(self, mock_session, mock_get_settings):
        mock_get_settings.return_value.aws.AWS_REGION = "ca-central-1"
        mock_get_settings.return_value.aws.ENDPOINT_URL = "http://localhost:8000"

        client_next.get_aws_client("dynamodb")

        mock_session.return_value.client.assert_called_once_with(
            "dynamodb", region_name="ca-central-1", endpoint_url="http://localhost:8000"
        )
