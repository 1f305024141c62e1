"""
Error types for the pickup orders service.

Services raise these instead of HTTPException so they can be used outside a
request (the sweeper, scripts, tests). main.py maps every OrderServiceError
to a JSON response using its status_code.

NotificationError is not an OrderServiceError: a failed text or
email never fails the operation that triggered it.
"""


class OrderServiceError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class OrderValidationError(OrderServiceError):
    """Missing or malformed input, invalid enum value, out-of-range index."""

    status_code = 400


class InvalidTransitionError(OrderValidationError):
    """Requested status change is not allowed from the order's current status."""

    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot change order status from '{current}' to '{requested}'")


class OrderNotFoundError(OrderServiceError):
    status_code = 404

    def __init__(self, order_ref: str):
        self.order_ref = order_ref
        super().__init__("Order not found")


class ProductNotFoundError(OrderServiceError):
    status_code = 404

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Product not found: {product_id}")


class ContactMismatchError(OrderServiceError):
    """Tracking lookup contact did not match. The message never says which field."""

    status_code = 403

    def __init__(self):
        super().__init__("Order details do not match our records")


class ConcurrentModificationError(OrderServiceError):
    """The order changed between read and write (optimistic concurrency)."""

    status_code = 409

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__("Order was modified by another request, please retry")


class PersistenceError(OrderServiceError):
    """The order store backend failed (I/O, connection, constraint)."""

    status_code = 500


class NotificationError(Exception):
    """SMS or email provider failed to accept a message."""

    def __init__(self, message: str, channel: str = "sms"):
        self.channel = channel
        super().__init__(message)
