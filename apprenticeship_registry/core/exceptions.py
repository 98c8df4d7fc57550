"""
Registry-wide exception hierarchy.

Services raise these types; the app factory registers one error handler
per type so every blueprint gets the same status code and body shape.

Usage:
    from apprenticeship_registry.core.exceptions import NotFoundError, ConflictError

    raise NotFoundError(resource="User", resource_id=user_id)
    raise ConflictError("Apprenticeship", "attendance already confirmed", resource_id=aid)
"""


class NotFoundError(Exception):
    """Raised when a referenced record does not exist.

    Args:
        resource: Human-readable entity name (e.g. "User", "Apprenticeship").
        resource_id: The key that was looked up. Included in logs and message.
    """

    def __init__(self, resource: str, resource_id: str | int | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when input fails business-rule validation in the service layer.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown. Keys are field names.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when the requested change clashes with current state.

    Covers a workflow flag that is already set, a duplicate unique value,
    and deleting a record that is still referenced.

    Args:
        resource: Model name.
        detail: What conflicts.
        resource_id: Optional key of the conflicting record.
    """

    def __init__(self, resource: str, detail: str, resource_id: str | int | None = None) -> None:
        self.resource = resource
        self.detail = detail
        self.resource_id = resource_id
        prefix = f"{resource} id={resource_id}" if resource_id is not None else resource
        super().__init__(f"{prefix}: {detail}")


class DeliveryFailedError(Exception):
    """Raised when the messaging channel rejects or cannot receive a message.

    Args:
        channel_id: Recipient chat id.
        reason: Gateway error text.
        status_code: HTTP status from the channel, None on network failure.
    """

    def __init__(self, channel_id: str, reason: str | None, status_code: int | None = None) -> None:
        self.channel_id = channel_id
        self.reason = reason
        self.status_code = status_code
        super().__init__(f"Delivery to channel {channel_id} failed: {reason or 'unknown error'}")


class StoreFailedError(Exception):
    """Raised when the record store cannot complete a write.

    Args:
        operation: Store operation name (e.g. "commit", "delete").
        reason: Underlying database error text. Logged, not returned to clients.
    """

    def __init__(self, operation: str, reason: str | None = None) -> None:
        self.operation = operation
        self.reason = reason
        super().__init__(f"Record store {operation} failed")
