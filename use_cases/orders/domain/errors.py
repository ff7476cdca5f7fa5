"""
Order domain errors.

Policy denials are returned as ``PolicyDecision`` values. These exceptions
are for hard failures that must abort the surrounding operation before
anything is written.
"""

from typing import Optional


class OrderError(Exception):
    """Base error for the order domain. ``code`` is a stable machine-readable tag."""

    code = "ORDER_ERROR"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code


class OrderNotFoundError(OrderError):
    code = "ORDER_NOT_FOUND"

    def __init__(self, order_id: str):
        super().__init__(f"Order {order_id} not found")
        self.order_id = order_id


class CancellationNotFoundError(OrderError):
    code = "CANCELLATION_NOT_FOUND"

    def __init__(self, cancellation_id: str):
        super().__init__(f"Cancellation {cancellation_id} not found")
        self.cancellation_id = cancellation_id


class ReturnNotFoundError(OrderError):
    code = "RETURN_NOT_FOUND"

    def __init__(self, return_id: str):
        super().__init__(f"Return {return_id} not found")
        self.return_id = return_id


class InvalidStatusTransitionError(OrderError):
    """A status change that is absent from the transition table."""

    code = "INVALID_STATUS_TRANSITION"

    def __init__(self, current_status: str, requested_status: str):
        super().__init__(
            f"Invalid status transition from {current_status} to {requested_status}"
        )
        self.current_status = current_status
        self.requested_status = requested_status


class OrderCancellationError(OrderError):
    code = "CANCELLATION_ERROR"

    def __init__(self, message: str = "This order cannot be cancelled"):
        super().__init__(message)


class OrderReturnError(OrderError):
    code = "RETURN_ERROR"

    def __init__(self, message: str = "This order cannot be returned"):
        super().__init__(message)


class OrderPermissionError(OrderError):
    code = "PERMISSION_DENIED"

    def __init__(self, message: str = "Not authorized"):
        super().__init__(message)


class OrderValidationError(OrderError):
    code = "VALIDATION_ERROR"

    def __init__(self, message: str, errors: Optional[list] = None):
        super().__init__(message)
        self.errors = errors or []
