"""
Flutterwave payment gateway implementation.

Flutterwave (v3 Standard) takes and reports amounts in the major currency
unit, so amounts are converted at this boundary in both directions.
"""

import logging
import uuid
from typing import Optional, Dict, Any

from django.utils.dateparse import parse_datetime

from ..amounts import to_decimal, to_major_units, to_minor_units
from .base import (
    RestPaymentGateway,
    PaymentInitialization,
    PaymentVerification,
    PaymentRefund,
    GatewayException,
)

logger = logging.getLogger(__name__)


class FlutterwaveGateway(RestPaymentGateway):
    """
    Flutterwave gateway implementation.

    Payments are looked up by tx_ref, which is our reference. Refunds need
    Flutterwave's numeric transaction id, so they verify first.
    """

    name = 'flutterwave'
    display_name = 'Flutterwave'
    base_url = 'https://api.flutterwave.com/v3'

    SUCCESS_STATUS = 'successful'

    def _ensure_success(self, body: Dict[str, Any], action: str, error_code: str) -> Dict[str, Any]:
        """Flutterwave answers with {status: 'success' | 'error', message, data}."""
        if body.get('status') != 'success':
            raise GatewayException(
                message=f"Failed to {action}: {body.get('message') or 'unknown Flutterwave error'}",
                error_code=error_code,
                gateway_response=body
            )
        return body.get('data') or {}

    def _fetch_transaction(self, reference: str, action: str) -> Dict[str, Any]:
        return self._request(
            'GET',
            '/transactions/verify_by_reference',
            action,
            params={'tx_ref': reference}
        )

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

        tx_ref = reference or f"FLW_{uuid.uuid4().hex}"
        customer = {'email': email}
        if name:
            customer['name'] = name
        if phone:
            customer['phonenumber'] = phone

        payload = {
            'tx_ref': tx_ref,
            'amount': str(to_major_units(amount_minor)),
            'currency': currency.upper(),
            'customer': customer,
        }
        if callback_url:
            payload['redirect_url'] = callback_url
        if metadata:
            payload['meta'] = metadata

        body = self._request('POST', '/payments', 'initialize payment', json=payload)
        data = self._ensure_success(body, 'initialize payment', 'initialize_payment_failed')

        if not data.get('link'):
            raise GatewayException(
                message="Failed to initialize payment: Flutterwave returned no checkout link",
                error_code='initialize_payment_failed',
                gateway_response=body
            )

        logger.info(
            "Flutterwave payment initialized",
            extra={'reference': tx_ref, 'amount_minor': amount_minor}
        )

        # Flutterwave Standard has no access code
        return PaymentInitialization(
            authorization_url=data['link'],
            access_code=None,
            reference=tx_ref,
            gateway_response=body
        )

    def verify_payment(self, reference: str) -> PaymentVerification:
        body = self._fetch_transaction(reference, 'verify payment')
        data = self._ensure_success(body, 'verify payment', 'verify_payment_failed')

        status = data.get('status', '')
        customer = data.get('customer') or {}
        created_at = data.get('created_at')
        metadata = data.get('meta')

        return PaymentVerification(
            success=status == self.SUCCESS_STATUS,
            reference=data.get('tx_ref', reference),
            amount=to_decimal(data.get('amount') or 0),
            currency=data.get('currency', ''),
            status=status,
            paid_at=parse_datetime(created_at) if created_at else None,
            customer={
                'email': customer.get('email'),
                'name': customer.get('name'),
                'phone': customer.get('phone_number'),
            },
            metadata=metadata if isinstance(metadata, dict) else {},
            gateway_response=body
        )

    def refund_payment(
        self,
        reference: str,
        amount_minor: Optional[int] = None,
        reason: Optional[str] = None
    ) -> PaymentRefund:
        body = self._fetch_transaction(reference, 'refund payment')
        transaction = self._ensure_success(body, 'refund payment', 'refund_failed')

        payload = {}
        if amount_minor is not None:
            self._require_positive_amount(amount_minor)
            payload['amount'] = str(to_major_units(amount_minor))
        if reason:
            payload['comments'] = reason

        body = self._request(
            'POST',
            f"/transactions/{transaction['id']}/refund",
            'refund payment',
            json=payload
        )
        data = self._ensure_success(body, 'refund payment', 'refund_failed')

        logger.info(
            "Flutterwave refund requested",
            extra={'reference': reference, 'refund_status': data.get('status')}
        )

        refunded = data.get('amount_refunded')
        return PaymentRefund(
            success=True,
            reference=reference,
            refunded_amount=to_minor_units(refunded) if refunded is not None else (amount_minor or 0),
            message=body.get('message') or 'Refund processed successfully',
            gateway_response=body
        )

    def get_payment_details(self, reference: str) -> Dict[str, Any]:
        body = self._fetch_transaction(reference, 'get payment details')
        self._ensure_success(body, 'get payment details', 'payment_details_failed')
        return body
