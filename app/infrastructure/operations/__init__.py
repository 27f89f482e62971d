"""Operation result types and status enums.

Standardized result types for operations across the application, including
the status enum, the result dataclass, and error classifiers for outbound
HTTP and AWS calls.
"""

from infrastructure.operations.classifiers import (
    classify_aws_error,
    classify_http_error,
    classify_http_response,
    truncate_message,
)
from infrastructure.operations.result import OperationResult
from infrastructure.operations.status import OperationStatus

__all__ = [
    "OperationResult",
    "OperationStatus",
    "classify_aws_error",
    "classify_http_error",
    "classify_http_response",
    "truncate_message",
]
