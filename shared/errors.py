"""
Error taxonomy for the checkout backend.

Only ValidationError, PaymentNotCompleted and OrderNotFound are meant to reach
the caller as request failures. Everything else degrades to "order exists,
side effect incomplete" inside order materialization and is surfaced through
logs and metrics.
"""


class CheckoutError(Exception):
    """Base class for every error raised by this service."""

    status_code = 500

    def __init__(self, message: str, **context):
        super().__init__(message)
        self.message = message
        self.context = context


class ValidationError(CheckoutError):
    """Malformed caller input. Never retried."""

    status_code = 400


class InvalidSessionMetadata(ValidationError):
    """Payment session metadata does not match a known payload version."""


class PaymentNotCompleted(CheckoutError):
    """The authoritative payment status is not 'paid'."""

    status_code = 400

    def __init__(self, session_id: str, payment_status: str | None):
        super().__init__(
            "Payment not completed",
            session_id=session_id,
            payment_status=payment_status,
        )
        self.session_id = session_id
        self.payment_status = payment_status


class OrderNotFound(CheckoutError):
    status_code = 404

    def __init__(self, message: str = "Order not found", **context):
        super().__init__(message, **context)


class UpstreamUnavailable(CheckoutError):
    """Payment processor unreachable or not configured."""

    status_code = 503


class NotificationFailure(CheckoutError):
    """Email could not be rendered for or delivered to the customer."""

    status_code = 502


class DuplicateSessionId(CheckoutError):
    """An order already exists for this payment session id."""

    status_code = 409

    def __init__(self, session_id: str):
        super().__init__(f"Order already exists for session {session_id}", session_id=session_id)
        self.session_id = session_id


class PersistenceFailure(CheckoutError):
    """The order store rejected or could not complete a read or write."""

    status_code = 500
