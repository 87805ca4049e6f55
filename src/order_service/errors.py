"""
Order service exceptions.

ERROR TAXONOMY:
- MalformedOrderError: undecodable payload or missing order_uid.
  Non-retryable, the message is acknowledged and dropped.
- Transient persistence failure: any sqlalchemy.exc.SQLAlchemyError raised
  by the store. Retried with exponential backoff.
- RetriesExhaustedError: the store never accepted the order within the
  attempt budget. The message is left unacknowledged.
- PersistCancelledError: shutdown interrupted a backoff wait. The message is
  left unacknowledged.
- Not found is not an error: lookups return None.
"""

from typing import Optional


class OrderServiceError(Exception):
    """Base exception for the order service."""

    def __init__(self, message: str, order_uid: Optional[str] = None):
        self.message = message
        self.order_uid = order_uid
        super().__init__(message)


class MalformedOrderError(OrderServiceError, ValueError):
    """Change event that cannot be decoded or carries no order_uid."""


class RetriesExhaustedError(OrderServiceError):
    """Persistence failed on every attempt."""

    def __init__(self, order_uid: str, attempts: int, last_error: Optional[BaseException] = None):
        super().__init__(
            f"Failed to persist order {order_uid} after {attempts} attempts",
            order_uid=order_uid,
        )
        self.attempts = attempts
        self.last_error = last_error


class PersistCancelledError(OrderServiceError):
    """Shutdown was requested while waiting to retry a persistence attempt."""

    def __init__(self, order_uid: str, attempt: int):
        super().__init__(
            f"Persistence of order {order_uid} cancelled after attempt {attempt}",
            order_uid=order_uid,
        )
        self.attempt = attempt
