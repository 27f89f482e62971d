"""Error classifiers for provider exceptions and responses.

Converts outbound HTTP failures (requests) and AWS SDK errors (botocore)
into standardized OperationResult objects, so callers branch on
OperationStatus instead of catching provider-specific exceptions.

Key Functions:
- classify_http_error(): requests exceptions -> OperationResult
- classify_http_response(): non-2xx requests.Response -> OperationResult
- classify_aws_error(): AWS SDK errors -> OperationResult

Usage:
    from infrastructure.operations.classifiers import classify_http_error

    try:
        response = session.post(url, json=payload, timeout=10)
    except requests.RequestException as exc:
        return classify_http_error(exc)
"""

from typing import Optional

import requests
from botocore.exceptions import ClientError

from infrastructure.operations.result import OperationResult
from infrastructure.operations.status import OperationStatus

DEFAULT_ERROR_MAX_LENGTH = 200


def truncate_message(message: str, max_length: int = DEFAULT_ERROR_MAX_LENGTH) -> str:
    """Cap an error string so provider bodies cannot grow without bound."""
    if len(message) <= max_length:
        return message
    return message[:max_length]


def classify_http_error(
    exc: Exception, max_length: int = DEFAULT_ERROR_MAX_LENGTH
) -> OperationResult:
    """Classify a requests exception raised before a response was received.

    Every transport failure is transient: timeouts, refused connections and
    TLS errors are expected to clear up on a later attempt.

    Args:
        exc: Exception raised by requests (or the adapter beneath it)
        max_length: Maximum length of the resulting message

    Returns:
        OperationResult with TRANSIENT_ERROR status
    """
    if isinstance(exc, requests.Timeout):
        error_code = "TIMEOUT"
    elif isinstance(exc, requests.ConnectionError):
        error_code = "CONNECTION_ERROR"
    elif isinstance(exc, requests.RequestException):
        error_code = "REQUEST_ERROR"
    else:
        error_code = "UNEXPECTED_ERROR"

    return OperationResult.transient_error(
        truncate_message(f"{type(exc).__name__}: {exc}", max_length),
        error_code=error_code,
    )


def classify_http_response(
    response: requests.Response,
    label: str,
    max_length: int = DEFAULT_ERROR_MAX_LENGTH,
) -> OperationResult:
    """Classify an HTTP response from a delivery provider.

    Status Code Mapping:
    - 2xx: SUCCESS (response status code in data)
    - 429: TRANSIENT_ERROR with retry_after from the Retry-After header
    - any other status: TRANSIENT_ERROR (error_code HTTP_ERROR)

    The message has the form "{label} error ({status}): {body}" with the body
    truncated to max_length characters.

    Args:
        response: Response returned by requests
        label: Provider label used in the error message ("Webhook", "Slack", ...)
        max_length: Maximum number of body characters kept

    Returns:
        OperationResult describing the delivery outcome
    """
    status_code = response.status_code
    if 200 <= status_code < 300:
        return OperationResult.success(data={"status_code": status_code})

    body = truncate_message(response.text or "", max_length)
    message = f"{label} error ({status_code}): {body}"

    if status_code == 429:
        retry_after: Optional[int] = None
        header_value = response.headers.get("Retry-After")
        if header_value:
            try:
                retry_after = int(header_value)
            except (TypeError, ValueError):
                retry_after = None
        return OperationResult.transient_error(
            message, error_code="RATE_LIMITED", retry_after=retry_after
        )

    return OperationResult.transient_error(message, error_code="HTTP_ERROR")


def classify_aws_error(exc: Exception) -> OperationResult:
    """Classify AWS SDK errors into OperationResult.

    Error Code Mapping:
    - ConditionalCheckFailedException: PERMANENT_ERROR, error_code CONDITION_FAILED
      (a conditional write lost its race; callers treat this as "no row changed")
    - ThrottlingException / ProvisionedThroughputExceededException:
      TRANSIENT_ERROR with retry_after
    - AccessDeniedException: PERMANENT_ERROR
    - ResourceNotFoundException: NOT_FOUND
    - ValidationException: PERMANENT_ERROR
    - Other: TRANSIENT_ERROR (AWS convention)

    Args:
        exc: Exception raised by boto3/botocore

    Returns:
        OperationResult with appropriate status and error_code
    """
    if not isinstance(exc, ClientError):
        return OperationResult.transient_error(
            f"AWS connection error: {type(exc).__name__}: {str(exc)}",
            error_code="CONNECTION_ERROR",
        )

    error_code = "Unknown"
    if exc.response:
        error_code = exc.response.get("Error", {}).get("Code", "Unknown")

    if error_code == "ConditionalCheckFailedException":
        return OperationResult.permanent_error(
            "Conditional check failed",
            error_code="CONDITION_FAILED",
        )

    if error_code in (
        "ThrottlingException",
        "Throttling",
        "ProvisionedThroughputExceededException",
        "RequestLimitExceeded",
    ):
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
        return OperationResult.not_found("AWS resource not found")

    if error_code in ("ValidationException", "InvalidParameterException"):
        return OperationResult.permanent_error(
            f"AWS validation error: {error_code}",
            error_code="INVALID_REQUEST",
        )

    return OperationResult.transient_error(
        f"AWS client error: {error_code}",
        error_code="AWS_CLIENT_ERROR",
    )
