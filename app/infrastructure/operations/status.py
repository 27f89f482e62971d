"""Operation status enumeration."""

from enum import Enum


class OperationStatus(Enum):
    """Outcome classes shared by stores, senders and the retry worker.

    Attributes:
        SUCCESS: Operation completed successfully
        TRANSIENT_ERROR: Retryable error (network, timeout, non-2xx, throttling)
        PERMANENT_ERROR: Retrying cannot help (bad config, malformed payload)
        NOT_FOUND: Referenced record does not exist
    """

    SUCCESS = "success"
    TRANSIENT_ERROR = "transient_error"
    PERMANENT_ERROR = "permanent_error"
    NOT_FOUND = "not_found"
