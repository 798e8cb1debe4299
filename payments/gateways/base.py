"""
Base classes for payment gateway abstraction.

This module defines the interface that all payment gateways must implement,
so that the payment service can work with Paystack, Flutterwave or Razorpay
without knowing which one is configured.

Amounts cross this interface in the smallest currency unit (kobo, cents,
paise) on the way in. Verification reports the amount in the major unit as a
Decimal. Each gateway converts to whatever its own API expects.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional, Dict, Any

import requests

logger = logging.getLogger(__name__)


@dataclass
class PaymentInitialization:
    """
    Result of starting a payment with a provider.

    Attributes:
        authorization_url: Hosted checkout page the payer should be sent to
        access_code: Provider specific session code (None when the provider has none)
        reference: Reference the provider registered the payment under
        gateway_response: Raw gateway response for debugging and logging
    """
    authorization_url: str
    access_code: Optional[str]
    reference: str
    gateway_response: Optional[Dict[str, Any]] = None


@dataclass
class PaymentVerification:
    """
    Normalized outcome of a payment as reported by the provider.

    Attributes:
        success: Whether the provider considers the payment completed
        reference: Payment reference
        amount: Amount paid in the major currency unit
        currency: Currency code
        status: Provider's own status word ('success', 'successful', 'paid', ...)
        paid_at: When the provider completed the payment, if reported
        customer: Customer details echoed back by the provider
        metadata: Metadata echoed back by the provider
        gateway_response: Raw verification payload, kept for audit
    """
    success: bool
    reference: str
    amount: Decimal
    currency: str
    status: str
    paid_at: Optional[datetime] = None
    customer: Dict[str, Any] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)
    gateway_response: Optional[Dict[str, Any]] = None


@dataclass
class PaymentRefund:
    """
    Result of a refund request.

    refunded_amount is in the smallest currency unit.
    """
    success: bool
    reference: str
    refunded_amount: int
    message: str
    gateway_response: Optional[Dict[str, Any]] = None


class GatewayException(Exception):
    """
    Custom exception for payment gateway errors.

    Raised when a provider call fails at the transport level or the provider
    answers with a non-success envelope. Carries the provider's own message
    where one is available.
    """
    def __init__(self, message: str, error_code: Optional[str] = None, gateway_response: Optional[Dict] = None):
        self.message = message
        self.error_code = error_code
        self.gateway_response = gateway_response
        super().__init__(self.message)


class BasePaymentGateway(ABC):
    """
    Abstract base class for payment gateway implementations.

    Every gateway implements the same four operations:
        - initialize_payment: open a hosted checkout session
        - verify_payment: ask the provider how a payment ended
        - refund_payment: full or partial refund
        - get_payment_details: raw provider data, for diagnostics

    Credentials are gateway specific and passed to the constructor; they are
    not part of the portable contract.
    """

    # Identifier stored on every transaction handled by this gateway
    name = ''

    def __init__(self, api_key: str, api_secret: Optional[str] = None, timeout: Optional[float] = None):
        """
        Initialize the payment gateway.

        Args:
            api_key: Secret key (or key id) used to authenticate against the provider
            api_secret: Second credential for providers that need a key pair
            timeout: Optional socket timeout in seconds for outbound calls
        """
        self.api_key = api_key
        self.api_secret = api_secret
        self.timeout = timeout

    @staticmethod
    def _require_positive_amount(amount_minor: int):
        if amount_minor is None or amount_minor <= 0:
            raise GatewayException(
                message=f"Amount must be greater than zero, got {amount_minor}",
                error_code='invalid_amount'
            )

    @abstractmethod
    def initialize_payment(
        self,
        email: str,
        amount_minor: int,
        currency: str,
        reference: Optional[str] = None,
        callback_url: Optional[str] = None,
        name: Optional[str] = None,
        phone: Optional[str] = None,
        metadata: Optional[Dict] = None
    ) -> PaymentInitialization:
        """
        Start a payment and obtain a checkout URL.

        Args:
            email: Payer email address
            amount_minor: Amount in smallest currency unit, must be positive
            currency: Currency code (e.g. 'NGN')
            reference: Reference to register the payment under; generated when omitted
            callback_url: Where the provider sends the payer afterwards
            name: Payer full name
            phone: Payer phone number
            metadata: Key/value data the provider should echo back

        Returns:
            PaymentInitialization

        Raises:
            GatewayException: If the provider rejects the request or cannot be reached
        """
        pass

    @abstractmethod
    def verify_payment(self, reference: str) -> PaymentVerification:
        """
        Ask the provider for the outcome of a payment.

        Raises:
            GatewayException: If the provider rejects the request or cannot be reached
        """
        pass

    @abstractmethod
    def refund_payment(
        self,
        reference: str,
        amount_minor: Optional[int] = None,
        reason: Optional[str] = None
    ) -> PaymentRefund:
        """
        Refund a completed payment.

        Args:
            reference: Payment reference
            amount_minor: Partial refund amount in smallest unit; full refund when omitted
            reason: Free text reason passed to the provider
        """
        pass

    @abstractmethod
    def get_payment_details(self, reference: str) -> Dict[str, Any]:
        """Return the provider's raw record of a payment."""
        pass


class RestPaymentGateway(BasePaymentGateway):
    """
    Shared plumbing for gateways reached over plain HTTPS + JSON with a
    bearer secret key.
    """

    base_url = ''
    display_name = ''

    def __init__(
        self,
        api_key: str,
        api_secret: Optional[str] = None,
        timeout: Optional[float] = None,
        base_url: Optional[str] = None
    ):
        super().__init__(api_key, api_secret, timeout)
        if base_url:
            self.base_url = base_url
        self.base_url = self.base_url.rstrip('/')
        self.session = requests.Session()
        self.session.headers.update({
            'Authorization': f'Bearer {api_key}',
            'Content-Type': 'application/json',
        })

    def _request(self, method: str, path: str, action: str, **kwargs) -> Dict[str, Any]:
        """
        Perform one call against the provider API and return its JSON body.

        Raises:
            GatewayException: On transport errors and non-2xx responses
        """
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            logger.error(
                f"{self.display_name} request failed",
                extra={'action': action, 'url': url, 'error': str(e)}
            )
            raise GatewayException(
                message=f"Failed to {action}: {self.display_name} is unreachable ({str(e)})",
                error_code='gateway_unreachable'
            )

        try:
            body = response.json()
        except ValueError:
            body = {}

        if not response.ok:
            provider_message = body.get('message') if isinstance(body, dict) else None
            logger.warning(
                f"{self.display_name} returned an error",
                extra={'action': action, 'status_code': response.status_code, 'error': provider_message}
            )
            raise GatewayException(
                message=f"Failed to {action}: {provider_message or response.reason}",
                error_code=f'{action.replace(" ", "_")}_failed',
                gateway_response=body or None
            )

        return body
