"""Request context management utilities for transaction IDs."""

import uuid
from contextvars import ContextVar

TRANSACTION_ID_PREFIX = "default-"

# Context variable for storing the transaction ID across async boundaries
_transaction_id_var: ContextVar[str | None] = ContextVar(
    "transaction_id", default=None
)


class RequestContext:
    """Manages request context using contextvars for async-safe storage.

    The transaction ID set here is the one every audit record of the
    current request is tagged with.
    """

    @staticmethod
    def set_transaction_id(transaction_id: str) -> None:
        """Set the transaction ID for the current context.

        Args:
            transaction_id: The transaction ID to store in the context.
        """
        _transaction_id_var.set(transaction_id)

    @staticmethod
    def get_transaction_id() -> str | None:
        """Get the transaction ID from the current context.

        Returns:
            str | None: The transaction ID if set, None otherwise.
        """
        return _transaction_id_var.get()

    @staticmethod
    def clear() -> None:
        """Clear all context variables."""
        _transaction_id_var.set(None)


def generate_transaction_id() -> str:
    """Generate a transaction ID for a request that arrived without one.

    Returns:
        str: ``default-`` followed by a UUID4 string.

    Examples:
        >>> generate_transaction_id().startswith("default-")
        True
    """
    return f"{TRANSACTION_ID_PREFIX}{uuid.uuid4()}"
