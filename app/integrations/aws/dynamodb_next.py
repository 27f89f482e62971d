"""AWS DynamoDB Next Module

Thin wrappers over the low-level DynamoDB client using client_next.py.
Features:
- Consistent error handling and throttling retries via execute_aws_api_call
- Standardized OperationResult responses
- Automatic pagination for scan/query operations (merged under "Items")
- Batched key lookups with unprocessed-key resubmission

Usage:
    result = get_item(
        table_name="notification_channels",
        Key={"id": {"S": "channel-1"}},
    )
    if result.is_success:
        item = result.data.get("Item")
    else:
        error = result.message
"""

from typing import Any, Dict, List

from infrastructure.logging import get_module_logger
from infrastructure.operations import OperationResult
from integrations.aws.client_next import execute_aws_api_call

logger = get_module_logger()

# DynamoDB BatchGetItem accepts at most 100 keys per request
BATCH_GET_MAX_KEYS = 100
BATCH_GET_MAX_ROUNDS = 5


def get_item(
    table_name: str,
    Key: Dict[str, Any],
    **kwargs,
) -> OperationResult:
    """Get an item from DynamoDB table.

    Args:
        table_name: DynamoDB table name
        Key: Primary key attributes (DynamoDB format)
        **kwargs: Additional parameters for get_item call (e.g. ConsistentRead)

    Returns:
        OperationResult: Raw response; data["Item"] is absent when not found
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
    """Put an item into DynamoDB table.

    Args:
        table_name: DynamoDB table name
        Item: Item attributes (DynamoDB format)
        **kwargs: Additional parameters for put_item call

    Returns:
        OperationResult: Success or error details
    """
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
    """Update an item in DynamoDB table.

    Pass a ConditionExpression for compare-and-swap updates; a lost race
    returns error_code "CONDITION_FAILED".

    Args:
        table_name: DynamoDB table name
        Key: Primary key attributes (DynamoDB format)
        **kwargs: Additional parameters for update_item call

    Returns:
        OperationResult: Updated attributes or error details
    """
    return execute_aws_api_call(
        service_name="dynamodb",
        method="update_item",
        TableName=table_name,
        Key=Key,
        **kwargs,
    )


def query(
    table_name: str,
    KeyConditionExpression: str,
    paginate: bool = True,
    **kwargs,
) -> OperationResult:
    """Query a DynamoDB table, by default walking every page.

    Args:
        table_name: DynamoDB table name
        KeyConditionExpression: Query condition
        paginate: When False, only the first page (bounded by Limit) is read
        **kwargs: Additional parameters for query call

    Returns:
        OperationResult: data["Items"] holds the matching items
    """
    if not paginate:
        return execute_aws_api_call(
            service_name="dynamodb",
            method="query",
            TableName=table_name,
            KeyConditionExpression=KeyConditionExpression,
            **kwargs,
        )

    return execute_aws_api_call(
        service_name="dynamodb",
        method="query",
        TableName=table_name,
        KeyConditionExpression=KeyConditionExpression,
        keys=["Items"],
        force_paginate=True,
        **kwargs,
    )


def scan(
    table_name: str,
    **kwargs,
) -> OperationResult:
    """Scan a DynamoDB table with automatic pagination.

    Args:
        table_name: DynamoDB table name
        **kwargs: Additional parameters for scan call

    Returns:
        OperationResult: data["Items"] holds every scanned item
    """
    return execute_aws_api_call(
        service_name="dynamodb",
        method="scan",
        TableName=table_name,
        keys=["Items"],
        force_paginate=True,
        **kwargs,
    )


def batch_get_items(
    table_name: str,
    keys: List[Dict[str, Any]],
    **kwargs,
) -> OperationResult:
    """Fetch many items by primary key.

    Splits the keys into chunks of 100 and resubmits UnprocessedKeys a
    bounded number of times.

    Args:
        table_name: DynamoDB table name
        keys: Primary keys (DynamoDB format)
        **kwargs: Extra per-table request options (e.g. ConsistentRead)

    Returns:
        OperationResult: data["Items"] holds the items that were found
    """
    items: List[Dict[str, Any]] = []

    for start in range(0, len(keys), BATCH_GET_MAX_KEYS):
        pending: Dict[str, Any] = {
            table_name: {"Keys": keys[start : start + BATCH_GET_MAX_KEYS], **kwargs}
        }
        for _ in range(BATCH_GET_MAX_ROUNDS):
            result = execute_aws_api_call(
                service_name="dynamodb",
                method="batch_get_item",
                RequestItems=pending,
            )
            if not result.is_success:
                return result
            items.extend(result.data.get("Responses", {}).get(table_name, []))
            pending = result.data.get("UnprocessedKeys") or {}
            if not pending:
                break
        else:
            logger.warning(
                "dynamodb_batch_get_unprocessed_keys",
                table_name=table_name,
                remaining=len(pending.get(table_name, {}).get("Keys", [])),
            )
            return OperationResult.transient_error(
                "DynamoDB left keys unprocessed after retries",
                error_code="UNPROCESSED_KEYS",
            )

    return OperationResult.success(data={"Items": items})
