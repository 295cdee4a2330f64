from __future__ import annotations

from typing import Any


class RelayError(Exception):
    """Base for failures that carry a stable code and a short message."""

    code = "RELAY_ERROR"
    default_message = "Operation failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message}


class ClassificationSkip(RelayError):
    """Not a failure: the event was deliberately dropped by the classifier."""

    code = "CLASSIFICATION_SKIP"
    default_message = "Notification is not a transaction candidate"


class DeliveryError(RelayError):
    code = "DELIVERY_ERROR"
    default_message = "Delivery failed"

    def __init__(self, message: str | None = None, retryable: bool = True) -> None:
        super().__init__(message)
        self.retryable = retryable


class PermissionDenied(RelayError):
    code = "SMS_PERMISSION_DENIED"
    default_message = "SMS read permission not granted"


class ReadError(RelayError):
    code = "SMS_READ_ERROR"
    default_message = "Failed to read messages"
