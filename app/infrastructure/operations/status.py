"""Operation status enumeration.

Classifies the outcome of calls to stores and outbound providers so callers
can decide between retrying, failing a channel, or surfacing an error.
"""

from enum import Enum


class OperationStatus(Enum):
    """Status codes for operation results.

    Attributes:
        SUCCESS: Operation completed successfully
        TRANSIENT_ERROR: Retryable error (network, timeout, rate limit)
        PERMANENT_ERROR: Non-retryable error (validation, auth, bad address)
        NOT_FOUND: Resource not found
        CONFLICT: A conditional write lost against a concurrent writer
    """

    SUCCESS = "success"
    TRANSIENT_ERROR = "transient_error"
    PERMANENT_ERROR = "permanent_error"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
