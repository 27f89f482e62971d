"""
AWS Service Next Module

Centralized error handling, throttling retry and pagination for boto3 calls.
Every call returns an OperationResult; AWS exceptions never escape.

Usage:
    result = execute_aws_api_call(
        service_name="dynamodb",
        method="get_item",
        TableName="notification_rules",
        Key={"id": {"S": "rule-1"}},
    )
    if result.is_success:
        item = result.data.get("Item")

    # Conditional writes that lose their race come back as
    # PERMANENT_ERROR with error_code "CONDITION_FAILED".
"""

import threading
import time
from typing import Any, Callable, Dict, List, Optional

import boto3  # type: ignore
from botocore.client import BaseClient  # type: ignore
from botocore.exceptions import BotoCoreError, ClientError  # type: ignore

from infrastructure.logging import get_module_logger
from infrastructure.operations import OperationResult, classify_aws_error
from infrastructure.services.providers import get_settings

logger = get_module_logger()

DEFAULT_MAX_RETRIES = 3
DEFAULT_BACKOFF_FACTOR = 0.5

_clients: Dict[str, BaseClient] = {}
_clients_lock = threading.Lock()


def _error_code(error: Exception) -> Optional[str]:
    if isinstance(error, ClientError):
        return error.response.get("Error", {}).get("Code")
    return None


def _should_retry(error: Exception, attempt: int, max_attempts: int) -> bool:
    throttling_errors = get_settings().aws.THROTTLING_ERRS
    return _error_code(error) in throttling_errors and attempt < max_attempts


def _calculate_retry_delay(attempt: int) -> float:
    return DEFAULT_BACKOFF_FACTOR * (2**attempt)


def get_aws_client(service_name: str) -> BaseClient:
    """
    Return a cached boto3 client for the configured region.

    boto3 clients are thread-safe, so one client per service is shared by the
    trigger path, the submitter threads and the retry worker.

    Args:
        service_name (str): The name of the AWS service.
    """
    with _clients_lock:
        client = _clients.get(service_name)
        if client is None:
            aws_settings = get_settings().aws
            client_config: Dict[str, Any] = {"region_name": aws_settings.AWS_REGION}
            if aws_settings.ENDPOINT_URL:
                client_config["endpoint_url"] = aws_settings.ENDPOINT_URL
            client = boto3.session.Session().client(service_name, **client_config)
            _clients[service_name] = client
        return client


def _paginate_all_results(
    client: BaseClient, method: str, keys: List[str], **kwargs
) -> Dict[str, List[Any]]:
    paginator = client.get_paginator(method)
    results: Dict[str, List[Any]] = {key: [] for key in keys}
    for page in paginator.paginate(**kwargs):
        for key in keys:
            results[key].extend(page.get(key, []))
    return results


def execute_api_call(
    func_name: str,
    api_call: Callable[[], Any],
    max_retries: Optional[int] = None,
) -> OperationResult:
    """
    Module-level error handling for AWS API calls.

    Throttling errors are retried with exponential backoff; everything else is
    classified once and returned.

    Args:
        func_name (str): Name of the calling function for logging
        api_call (callable): The API call to execute
        max_retries (int): Override default max retries

    Returns:
        OperationResult: success with the raw response as data, or the
        classified error.
    """
    max_retry_attempts = max_retries if max_retries is not None else DEFAULT_MAX_RETRIES

    for attempt in range(max_retry_attempts + 1):
        try:
            result = api_call()
            if attempt > 0:
                logger.info(
                    "aws_api_retry_success",
                    function=func_name,
                    attempt=attempt + 1,
                )
            return OperationResult.success(data=result)

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

            classified = classify_aws_error(e)
            if classified.error_code == "CONDITION_FAILED":
                logger.debug("aws_api_condition_failed", function=func_name)
            else:
                logger.error(
                    "aws_api_error_final",
                    function=func_name,
                    error=str(e),
                    error_code=_error_code(e),
                )
            return classified

        except Exception as e:  # pylint: disable=broad-except
            logger.error(
                "aws_api_unexpected_error",
                function=func_name,
                error=str(e),
            )
            return OperationResult.transient_error(
                f"Unexpected AWS error: {type(e).__name__}: {e}",
                error_code="UNEXPECTED_ERROR",
            )

    return OperationResult.transient_error(
        f"{func_name} failed after {max_retry_attempts + 1} attempts",
        error_code="RETRIES_EXHAUSTED",
    )


def execute_aws_api_call(
    service_name: str,
    method: str,
    keys: Optional[List[str]] = None,
    max_retries: Optional[int] = None,
    force_paginate: bool = False,
    **kwargs,
) -> OperationResult:
    """
    Execute a single AWS API call with centralized error handling.

    Args:
        service_name (str): The name of the AWS service.
        method (str): The method to call on the service.
        keys (list, optional): Result keys to merge across pages when paginating.
        max_retries (int, optional): Override default max retries.
        force_paginate (bool, optional): Walk every page and merge `keys`.
        **kwargs: Additional keyword arguments for the API call.

    Returns:
        OperationResult: Raw response (or merged pages) on success.
    """

    def api_call():
        client = get_aws_client(service_name)
        if force_paginate:
            return _paginate_all_results(client, method, keys or [], **kwargs)
        return getattr(client, method)(**kwargs)

    return execute_api_call(
        f"{service_name}_{method}",
        api_call,
        max_retries=max_retries,
    )
