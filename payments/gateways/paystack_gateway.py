"""
Paystack payment gateway implementation.

Paystack works in the smallest currency unit (kobo for NGN), so amounts go
out unchanged and come back divided by 100.
"""

import logging
from typing import Optional, Dict, Any
from urllib.parse import quote

from django.utils.dateparse import parse_datetime

from ..amounts import to_major_units
from .base import (
    RestPaymentGateway,
    PaymentInitialization,
    PaymentVerification,
    PaymentRefund,
    GatewayException,
)

logger = logging.getLogger(__name__)


class PaystackGateway(RestPaymentGateway):
    """
    Paystack gateway implementation.

    Uses the Transaction and Refund APIs; authenticates with the secret key
    as a bearer token.
    """

    name = 'paystack'
    display_name = 'Paystack'
    base_url = 'https://api.paystack.co'

    def _ensure_success(self, body: Dict[str, Any], action: str, error_code: str) -> Dict[str, Any]:
        """Paystack wraps every answer in {status: bool, message, data}."""
        if not body.get('status'):
            raise GatewayException(
                message=f"Failed to {action}: {body.get('message') or 'unknown Paystack error'}",
                error_code=error_code,
                gateway_response=body
            )
        return body.get('data') or {}

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
        self._require_positive_amount(amount_minor)

        payload = {
            'email': email,
            'amount': amount_minor,
            'currency': currency.upper(),
        }
        if reference:
            payload['reference'] = reference
        if callback_url:
            payload['callback_url'] = callback_url

        # Paystack has no first-class name/phone fields on initialize
        payment_metadata = dict(metadata or {})
        if name:
            payment_metadata['customer_name'] = name
        if phone:
            payment_metadata['customer_phone'] = phone
        if payment_metadata:
            payload['metadata'] = payment_metadata

        body = self._request('POST', '/transaction/initialize', 'initialize payment', json=payload)
        data = self._ensure_success(body, 'initialize payment', 'initialize_payment_failed')

        if not data.get('authorization_url'):
            raise GatewayException(
                message="Failed to initialize payment: Paystack returned no authorization URL",
                error_code='initialize_payment_failed',
                gateway_response=body
            )

        logger.info(
            "Paystack payment initialized",
            extra={'reference': data.get('reference'), 'amount_minor': amount_minor}
        )

        return PaymentInitialization(
            authorization_url=data['authorization_url'],
            access_code=data.get('access_code'),
            reference=data.get('reference', reference),
            gateway_response=body
        )

    def verify_payment(self, reference: str) -> PaymentVerification:
        body = self._request('GET', f'/transaction/verify/{quote(reference, safe="")}', 'verify payment')
        data = self._ensure_success(body, 'verify payment', 'verify_payment_failed')

        status = data.get('status', '')
        customer = data.get('customer') or {}
        metadata = data.get('metadata')
        paid_at = data.get('paid_at') or data.get('paidAt')

        return PaymentVerification(
            success=status == 'success',
            reference=data.get('reference', reference),
            amount=to_major_units(data.get('amount') or 0),
            currency=data.get('currency', ''),
            status=status,
            paid_at=parse_datetime(paid_at) if paid_at else None,
            customer={
                'email': customer.get('email'),
                'first_name': customer.get('first_name'),
                'last_name': customer.get('last_name'),
                'phone': customer.get('phone'),
            },
            # Paystack sends an empty string when no metadata was attached
            metadata=metadata if isinstance(metadata, dict) else {},
            gateway_response=body
        )

    def refund_payment(
        self,
        reference: str,
        amount_minor: Optional[int] = None,
        reason: Optional[str] = None
    ) -> PaymentRefund:
        payload = {'transaction': reference}
        if amount_minor is not None:
            self._require_positive_amount(amount_minor)
            payload['amount'] = amount_minor
        if reason:
            payload['merchant_note'] = reason

        body = self._request('POST', '/refund', 'refund payment', json=payload)
        data = self._ensure_success(body, 'refund payment', 'refund_failed')

        logger.info(
            "Paystack refund requested",
            extra={'reference': reference, 'refund_status': data.get('status')}
        )

        return PaymentRefund(
            success=True,
            reference=reference,
            refunded_amount=int(data.get('amount') or amount_minor or 0),
            message=body.get('message') or 'Refund processed successfully',
            gateway_response=body
        )

    def get_payment_details(self, reference: str) -> Dict[str, Any]:
        body = self._request('GET', f'/transaction/verify/{quote(reference, safe="")}', 'get payment details')
        self._ensure_success(body, 'get payment details', 'payment_details_failed')
        return body
