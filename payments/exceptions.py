"""
Errors raised by the payment orchestrator.

Provider failures are reported with GatewayException (see gateways.base);
everything the orchestrator itself rejects derives from PaymentError.
"""

from typing import Optional


class PaymentError(Exception):
    """Base class for payment orchestration errors."""
    status_code = 400
    default_error_code = 'payment_error'

    def __init__(self, message: str, error_code: Optional[str] = None):
        self.message = message
        self.error_code = error_code or self.default_error_code
        super().__init__(self.message)


class ValidationError(PaymentError):
    """Input rejected before any call to the payment provider."""
    default_error_code = 'invalid_payment_request'


class NotFoundError(PaymentError):
    """No transaction is stored under the given reference."""
    status_code = 404
    default_error_code = 'transaction_not_found'


class ConflictError(PaymentError):
    """A generated reference is already in use."""
    status_code = 409
    default_error_code = 'reference_conflict'
