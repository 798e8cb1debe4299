"""
Razorpay payment gateway implementation.

Uses Razorpay Payment Links: the link's reference_id carries our payment
reference, so verification and refunds can find the link again without
storing Razorpay's own ids. Razorpay amounts are in paise (minor units).
"""

import razorpay
import logging
from datetime import datetime, timezone
from typing import Optional, Dict, Any
from .base import (
    BasePaymentGateway,
    PaymentInitialization,
    PaymentVerification,
    PaymentRefund,
    GatewayException,
)
from ..amounts import to_major_units

logger = logging.getLogger(__name__)


class RazorpayGateway(BasePaymentGateway):
    """
    Razorpay gateway implementation.

    Provides integration with Razorpay's Payment Links and Refunds APIs
    through the official SDK.
    """

    name = 'razorpay'

    PAID_STATUS = 'paid'
    # Razorpay limits notes to 15 string values
    MAX_NOTES = 15

    def __init__(self, api_key: str, api_secret: Optional[str] = None, timeout: Optional[float] = None):
        """
        Initialize Razorpay client.

        Args:
            api_key: Razorpay Key ID (starts with rzp_test_ or rzp_live_)
            api_secret: Razorpay Key Secret
            timeout: Accepted for interface parity; the SDK manages its own session
        """
        super().__init__(api_key, api_secret, timeout)
        self.client = razorpay.Client(auth=(api_key, api_secret))

    def _notes(self, metadata: Optional[Dict]) -> Dict[str, str]:
        notes = {str(key): str(value) for key, value in (metadata or {}).items() if value is not None}
        return dict(list(notes.items())[:self.MAX_NOTES])

    def _find_link(self, reference: str, action: str) -> Dict[str, Any]:
        try:
            result = self.client.payment_link.all({'reference_id': reference})
        except razorpay.errors.BadRequestError as e:
            logger.warning(
                "Razorpay payment link lookup failed",
                extra={'reference': reference, 'error': str(e)}
            )
            raise GatewayException(
                message=f"Failed to {action}: {str(e)}",
                error_code='payment_not_found',
                gateway_response=e.args[0] if e.args else None
            )
        except Exception as e:
            logger.error(
                "Unexpected error fetching Razorpay payment link",
                extra={'reference': reference, 'error': str(e)},
                exc_info=True
            )
            raise GatewayException(
                message=f"Unexpected error trying to {action}: {str(e)}",
                error_code='unexpected_error'
            )

        links = result.get('payment_links') or []
        if not links:
            raise GatewayException(
                message=f"Failed to {action}: no Razorpay payment link for reference {reference}",
                error_code='payment_not_found',
                gateway_response=result
            )
        return links[0]

    @staticmethod
    def _captured_payment(link: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        for payment in link.get('payments') or []:
            if payment.get('status') == 'captured':
                return payment
        return None

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
        Create a Payment Link in Razorpay.

        The link id doubles as the access code.
        """
        self._require_positive_amount(amount_minor)

        try:
            link_data = {
                'amount': amount_minor,  # Amount in paise
                'currency': currency.upper(),
                'customer': {'email': email},
                'notify': {'email': False, 'sms': False},
            }

            if reference:
                link_data['reference_id'] = reference
            if name:
                link_data['customer']['name'] = name
            if phone:
                link_data['customer']['contact'] = phone
            if callback_url:
                link_data['callback_url'] = callback_url
                link_data['callback_method'] = 'get'
            if metadata:
                link_data['notes'] = self._notes(metadata)

            link = self.client.payment_link.create(link_data)

            logger.info(
                "Razorpay payment link created",
                extra={'reference': link.get('reference_id'), 'amount_minor': amount_minor}
            )

            return PaymentInitialization(
                authorization_url=link['short_url'],
                access_code=link['id'],
                reference=link.get('reference_id') or reference or link['id'],
                gateway_response=link
            )

        except razorpay.errors.BadRequestError as e:
            logger.warning(
                "Failed to create Razorpay payment link",
                extra={'email': email, 'reference': reference, 'error': str(e)}
            )
            raise GatewayException(
                message=f"Failed to initialize payment: {str(e)}",
                error_code='initialize_payment_failed',
                gateway_response=e.args[0] if e.args else None
            )
        except Exception as e:
            logger.error(
                "Unexpected error creating Razorpay payment link",
                extra={'email': email, 'reference': reference, 'error': str(e)},
                exc_info=True
            )
            raise GatewayException(
                message=f"Unexpected error initializing payment: {str(e)}",
                error_code='unexpected_error'
            )

    def verify_payment(self, reference: str) -> PaymentVerification:
        link = self._find_link(reference, 'verify payment')

        status = link.get('status', '')
        payment = self._captured_payment(link)
        paid_at = None
        if payment and payment.get('created_at'):
            paid_at = datetime.fromtimestamp(payment['created_at'], tz=timezone.utc)

        customer = link.get('customer') or {}

        return PaymentVerification(
            success=status == self.PAID_STATUS,
            reference=link.get('reference_id') or reference,
            amount=to_major_units(link.get('amount_paid') or link.get('amount') or 0),
            currency=link.get('currency', ''),
            status=status,
            paid_at=paid_at,
            customer={
                'email': customer.get('email'),
                'name': customer.get('name'),
                'phone': customer.get('contact'),
            },
            metadata=link.get('notes') or {},
            gateway_response=link
        )

    def refund_payment(
        self,
        reference: str,
        amount_minor: Optional[int] = None,
        reason: Optional[str] = None
    ) -> PaymentRefund:
        """
        Refund the captured payment behind a payment link.

        Razorpay refunds the full captured amount when no amount is given.
        """
        link = self._find_link(reference, 'refund payment')
        payment = self._captured_payment(link)
        if not payment:
            raise GatewayException(
                message=f"Failed to refund payment: no captured payment for reference {reference}",
                error_code='refund_failed',
                gateway_response=link
            )

        refund_data = {}
        if amount_minor is not None:
            self._require_positive_amount(amount_minor)
            refund_data['amount'] = amount_minor
        if reason:
            refund_data['notes'] = {'reason': reason}

        try:
            refund = self.client.payment.refund(payment['payment_id'], refund_data)
        except razorpay.errors.BadRequestError as e:
            logger.warning(
                "Failed to refund Razorpay payment",
                extra={'reference': reference, 'payment_id': payment['payment_id'], 'error': str(e)}
            )
            raise GatewayException(
                message=f"Failed to refund payment: {str(e)}",
                error_code='refund_failed',
                gateway_response=e.args[0] if e.args else None
            )
        except Exception as e:
            logger.error(
                "Unexpected error refunding Razorpay payment",
                extra={'reference': reference, 'payment_id': payment['payment_id'], 'error': str(e)},
                exc_info=True
            )
            raise GatewayException(
                message=f"Unexpected error refunding payment: {str(e)}",
                error_code='unexpected_error'
            )

        logger.info(
            "Razorpay refund requested",
            extra={'reference': reference, 'refund_status': refund.get('status')}
        )

        return PaymentRefund(
            success=refund.get('status') in ('processed', 'pending'),
            reference=reference,
            refunded_amount=int(refund.get('amount') or 0),
            message=f"Refund {refund.get('status', 'requested')}",
            gateway_response=refund
        )

    def get_payment_details(self, reference: str) -> Dict[str, Any]:
        return self._find_link(reference, 'get payment details')
