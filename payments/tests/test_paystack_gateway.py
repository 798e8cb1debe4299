"""
Tests for the Paystack gateway.

The requests session is replaced with a mock, so no call leaves the process.
"""

from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
import requests

from payments.gateways.base import GatewayException
from payments.gateways.paystack_gateway import PaystackGateway


def make_response(body, ok=True, status_code=200, reason='OK'):
    response = MagicMock(ok=ok, status_code=status_code, reason=reason)
    response.json.return_value = body
    return response


@pytest.fixture
def paystack_gateway():
    gateway = PaystackGateway(api_key='sk_test_dummy', timeout=10)
    gateway.session = MagicMock()
    return gateway


def last_call(gateway):
    args, kwargs = gateway.session.request.call_args
    return args, kwargs


class TestConfiguration:

    def test_bearer_header(self):
        gateway = PaystackGateway(api_key='sk_test_dummy')

        assert gateway.session.headers['Authorization'] == 'Bearer sk_test_dummy'
        assert gateway.base_url == 'https://api.paystack.co'

    def test_base_url_override(self):
        gateway = PaystackGateway(api_key='sk_test_dummy', base_url='http://paystack.local/')

        assert gateway.base_url == 'http://paystack.local'


class TestInitializePayment:

    def test_initialize_success(self, paystack_gateway):
        body = {
            'status': True,
            'message': 'Authorization URL created',
            'data': {
                'authorization_url': 'https://checkout.paystack.com/0peioxfhpn',
                'access_code': '0peioxfhpn',
                'reference': 'PAY_ORD_42_1736528410000',
            },
        }
        paystack_gateway.session.request.return_value = make_response(body)

        result = paystack_gateway.initialize_payment(
            email='buyer@example.com',
            amount_minor=1500000,
            currency='ngn',
            reference='PAY_ORD_42_1736528410000',
            callback_url='http://localhost:8000/api/v1/payment/callback',
            name='Ada Obi',
            phone='+2348000000000',
            metadata={'entity_id': 42},
        )

        assert result.authorization_url == 'https://checkout.paystack.com/0peioxfhpn'
        assert result.access_code == '0peioxfhpn'
        assert result.reference == 'PAY_ORD_42_1736528410000'
        assert result.gateway_response == body

        args, kwargs = last_call(paystack_gateway)
        assert args == ('POST', 'https://api.paystack.co/transaction/initialize')
        assert kwargs['timeout'] == 10
        assert kwargs['json'] == {
            'email': 'buyer@example.com',
            'amount': 1500000,
            'currency': 'NGN',
            'reference': 'PAY_ORD_42_1736528410000',
            'callback_url': 'http://localhost:8000/api/v1/payment/callback',
            'metadata': {
                'entity_id': 42,
                'customer_name': 'Ada Obi',
                'customer_phone': '+2348000000000',
            },
        }

    def test_initialize_rejected_envelope(self, paystack_gateway):
        paystack_gateway.session.request.return_value = make_response(
            {'status': False, 'message': 'Invalid Email Address Passed'}
        )

        with pytest.raises(GatewayException) as exc_info:
            paystack_gateway.initialize_payment('bad', 1500000, 'NGN')

        assert 'Invalid Email Address Passed' in str(exc_info.value)
        assert exc_info.value.error_code == 'initialize_payment_failed'

    def test_initialize_without_authorization_url(self, paystack_gateway):
        paystack_gateway.session.request.return_value = make_response(
            {'status': True, 'message': 'Authorization URL created', 'data': {'access_code': 'abc'}}
        )

        with pytest.raises(GatewayException) as exc_info:
            paystack_gateway.initialize_payment('buyer@example.com', 1500000, 'NGN')

        assert exc_info.value.error_code == 'initialize_payment_failed'
        assert 'no authorization URL' in exc_info.value.message

    def test_initialize_http_error(self, paystack_gateway):
        paystack_gateway.session.request.return_value = make_response(
            {'status': False, 'message': 'Invalid key'}, ok=False, status_code=401, reason='Unauthorized'
        )

        with pytest.raises(GatewayException) as exc_info:
            paystack_gateway.initialize_payment('buyer@example.com', 1500000, 'NGN')

        assert exc_info.value.message == 'Failed to initialize payment: Invalid key'
        assert exc_info.value.error_code == 'initialize_payment_failed'

    def test_initialize_network_error(self, paystack_gateway):
        paystack_gateway.session.request.side_effect = requests.ConnectionError('connection refused')

        with pytest.raises(GatewayException) as exc_info:
            paystack_gateway.initialize_payment('buyer@example.com', 1500000, 'NGN')

        assert exc_info.value.error_code == 'gateway_unreachable'

    def test_initialize_rejects_zero_amount(self, paystack_gateway):
        with pytest.raises(GatewayException) as exc_info:
            paystack_gateway.initialize_payment('buyer@example.com', 0, 'NGN')

        assert exc_info.value.error_code == 'invalid_amount'
        paystack_gateway.session.request.assert_not_called()


class TestVerifyPayment:

    def test_verify_success(self, paystack_gateway):
        body = {
            'status': True,
            'message': 'Verification successful',
            'data': {
                'status': 'success',
                'reference': 'PAY_ORD_42_1736528410000',
                'amount': 1500000,
                'currency': 'NGN',
                'paid_at': '2025-01-10T17:00:12.000Z',
                'customer': {'email': 'buyer@example.com', 'first_name': 'Ada', 'last_name': 'Obi'},
                'metadata': {'entity_id': 42},
            },
        }
        paystack_gateway.session.request.return_value = make_response(body)

        result = paystack_gateway.verify_payment('PAY_ORD_42_1736528410000')

        assert result.success is True
        assert result.amount == Decimal('15000.00')
        assert result.currency == 'NGN'
        assert result.status == 'success'
        assert result.paid_at == datetime(2025, 1, 10, 17, 0, 12, tzinfo=timezone.utc)
        assert result.customer['email'] == 'buyer@example.com'
        assert result.metadata == {'entity_id': 42}
        assert result.gateway_response == body

        args, _ = last_call(paystack_gateway)
        assert args == ('GET', 'https://api.paystack.co/transaction/verify/PAY_ORD_42_1736528410000')

    def test_verify_abandoned(self, paystack_gateway):
        paystack_gateway.session.request.return_value = make_response({
            'status': True,
            'data': {'status': 'abandoned', 'reference': 'ref', 'amount': 1500000, 'metadata': ''},
        })

        result = paystack_gateway.verify_payment('ref')

        assert result.success is False
        assert result.paid_at is None
        assert result.metadata == {}

    def test_verify_unknown_reference(self, paystack_gateway):
        paystack_gateway.session.request.return_value = make_response(
            {'status': False, 'message': 'Transaction reference not found'},
            ok=False, status_code=400, reason='Bad Request'
        )

        with pytest.raises(GatewayException) as exc_info:
            paystack_gateway.verify_payment('missing')

        assert exc_info.value.error_code == 'verify_payment_failed'


class TestRefundPayment:

    def test_partial_refund(self, paystack_gateway):
        paystack_gateway.session.request.return_value = make_response({
            'status': True,
            'message': 'Refund has been queued for processing',
            'data': {'status': 'pending', 'amount': 500000},
        })

        result = paystack_gateway.refund_payment('ref', amount_minor=500000, reason='Cancelled')

        assert result.success is True
        assert result.refunded_amount == 500000
        assert result.message == 'Refund has been queued for processing'

        args, kwargs = last_call(paystack_gateway)
        assert args == ('POST', 'https://api.paystack.co/refund')
        assert kwargs['json'] == {'transaction': 'ref', 'amount': 500000, 'merchant_note': 'Cancelled'}

    def test_full_refund_sends_no_amount(self, paystack_gateway):
        paystack_gateway.session.request.return_value = make_response({
            'status': True, 'message': 'Refund has been queued for processing', 'data': {'amount': 1500000},
        })

        result = paystack_gateway.refund_payment('ref')

        _, kwargs = last_call(paystack_gateway)
        assert kwargs['json'] == {'transaction': 'ref'}
        assert result.refunded_amount == 1500000

    def test_refund_failure(self, paystack_gateway):
        paystack_gateway.session.request.return_value = make_response(
            {'status': False, 'message': 'Transaction has been fully reversed'},
            ok=False, status_code=400, reason='Bad Request'
        )

        with pytest.raises(GatewayException) as exc_info:
            paystack_gateway.refund_payment('ref')

        assert exc_info.value.error_code == 'refund_payment_failed'


def test_get_payment_details_returns_raw_body(paystack_gateway):
    body = {'status': True, 'data': {'status': 'success', 'reference': 'ref'}}
    paystack_gateway.session.request.return_value = make_response(body)

    assert paystack_gateway.get_payment_details('ref') == body
