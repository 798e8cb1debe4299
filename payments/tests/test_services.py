"""
Tests for PaymentService.

Tests cover:
- Reference generation
- Payment session creation and validation
- Verification and the payment status lifecycle
- Provider passthroughs and transaction queries
"""

import re
from datetime import datetime, timezone as dt_timezone
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
from django.test import override_settings

from payments.exceptions import ValidationError, NotFoundError, ConflictError
from payments.gateways.base import (
    BasePaymentGateway,
    GatewayException,
    PaymentInitialization,
    PaymentVerification,
    PaymentRefund,
)
from payments.gateways.flutterwave_gateway import FlutterwaveGateway
from payments.gateways.paystack_gateway import PaystackGateway
from payments.gateways.razorpay_gateway import RazorpayGateway
from payments.models import PaymentTransaction, PaymentType, PaymentStatus
from payments.services import PaymentService

PAID_AT = datetime(2025, 1, 10, 17, 0, tzinfo=dt_timezone.utc)


class StubGateway(BasePaymentGateway):
    """In-memory gateway that records every call"""

    name = 'stub'

    def __init__(self, paid=True, reported_amount=None):
        super().__init__(api_key='sk_test_stub')
        self.paid = paid
        self.reported_amount = reported_amount
        self.calls = {'initialize': 0, 'verify': 0, 'refund': 0, 'details': 0}
        self.initialized = []

    def initialize_payment(self, email, amount_minor, currency, reference=None,
                           callback_url=None, name=None, phone=None, metadata=None):
        self.calls['initialize'] += 1
        self.initialized.append({
            'email': email,
            'amount_minor': amount_minor,
            'currency': currency,
            'reference': reference,
            'callback_url': callback_url,
            'name': name,
            'phone': phone,
            'metadata': metadata,
        })
        return PaymentInitialization(
            authorization_url=f'https://checkout.example.com/{reference}',
            access_code=f'ac_{reference}',
            reference=reference,
        )

    def verify_payment(self, reference):
        self.calls['verify'] += 1
        return PaymentVerification(
            success=self.paid,
            reference=reference,
            amount=self.reported_amount or Decimal('15000.00'),
            currency='NGN',
            status='success' if self.paid else 'abandoned',
            paid_at=PAID_AT if self.paid else None,
            gateway_response={'status': True, 'data': {'reference': reference}},
        )

    def refund_payment(self, reference, amount_minor=None, reason=None):
        self.calls['refund'] += 1
        return PaymentRefund(
            success=True,
            reference=reference,
            refunded_amount=amount_minor or 1500000,
            message='Refund queued',
        )

    def get_payment_details(self, reference):
        self.calls['details'] += 1
        return {'reference': reference}


@pytest.fixture
def gateway():
    return StubGateway()


@pytest.fixture
def service(gateway):
    return PaymentService(gateway=gateway)


def session_kwargs(**overrides):
    kwargs = {
        'payment_type': PaymentType.ORDER,
        'entity_id': 42,
        'user_id': 7,
        'amount': 15000,
        'email': 'buyer@example.com',
    }
    kwargs.update(overrides)
    return kwargs


class TestGenerateReference:

    def test_reference_format(self):
        reference = PaymentService.generate_reference(PaymentType.INSPECTION, 12)

        assert re.fullmatch(r'PAY_INSP_12_\d{13,}', reference)

    @pytest.mark.parametrize('payment_type, prefix', [
        ('inspection', 'PAY_INSP_'),
        ('consultation', 'PAY_CONS_'),
        ('order', 'PAY_ORD_'),
    ])
    def test_prefix_per_type(self, payment_type, prefix):
        assert PaymentService.generate_reference(payment_type, 1).startswith(prefix)

    def test_references_are_distinct_within_a_millisecond(self):
        with patch('payments.services.time.time', return_value=1736528410.0):
            references = [PaymentService.generate_reference('order', 42) for _ in range(5)]

        assert len(set(references)) == 5


@pytest.mark.django_db
class TestCreatePaymentSession:

    def test_end_to_end_order_payment(self, service, gateway):
        """ORDER 42 for user 7 at 15000 Naira, paid and verified"""
        session = service.create_payment_session(**session_kwargs())

        assert session['reference'].startswith('PAY_ORD_42_')
        assert session['amount_minor'] == 1500000
        assert session['currency'] == 'NGN'
        assert session['provider'] == 'stub'
        assert session['authorization_url'] == f"https://checkout.example.com/{session['reference']}"

        result = service.verify_payment_transaction(session['reference'])

        assert result['success'] is True
        assert result['entity_type'] == 'order'
        assert result['entity_id'] == 42
        assert result['amount_minor'] == 1500000

        payment = PaymentTransaction.objects.get(reference=session['reference'])
        assert payment.status == PaymentStatus.SUCCESS
        assert payment.paid_at == PAID_AT

    def test_row_is_stored_pending(self, service):
        session = service.create_payment_session(**session_kwargs(
            first_name='Ada', last_name='Obi', phone='+2348000000000', metadata={'cart': 'c-9'}
        ))

        payment = PaymentTransaction.objects.get(reference=session['reference'])
        assert payment.status == PaymentStatus.PENDING
        assert payment.payment_type == 'order'
        assert payment.entity_id == 42
        assert payment.user_id == 7
        assert payment.amount == Decimal('15000.00')
        assert payment.provider == 'stub'
        assert payment.access_code == f"ac_{session['reference']}"
        assert payment.customer_name == 'Ada Obi'
        assert payment.customer_phone == '+2348000000000'
        assert payment.metadata == {'cart': 'c-9'}

    def test_customer_name_needs_both_names(self, service):
        session = service.create_payment_session(**session_kwargs(first_name='Ada'))

        payment = PaymentTransaction.objects.get(reference=session['reference'])
        assert payment.customer_name is None

    def test_gateway_receives_reference_callback_and_metadata(self, service, gateway):
        session = service.create_payment_session(**session_kwargs(metadata={'cart': 'c-9'}))

        sent = gateway.initialized[0]
        assert sent['reference'] == session['reference']
        assert sent['amount_minor'] == 1500000
        assert sent['currency'] == 'NGN'
        assert sent['callback_url'] == 'http://localhost:8000/api/v1/payment/callback'
        assert sent['metadata'] == {'cart': 'c-9', 'payment_type': 'order', 'entity_id': 42, 'user_id': 7}

    @override_settings(PAYMENT_CALLBACK_URL='https://app.example.com/pay/done')
    def test_configured_callback_url_wins(self, service, gateway):
        service.create_payment_session(**session_kwargs())

        assert gateway.initialized[0]['callback_url'] == 'https://app.example.com/pay/done'

    def test_fractional_amount_is_exact(self, service):
        session = service.create_payment_session(**session_kwargs(amount=500.5))

        assert session['amount_minor'] == 50050
        payment = PaymentTransaction.objects.get(reference=session['reference'])
        assert payment.amount == Decimal('500.50')

    def test_largest_storable_amount(self, service):
        session = service.create_payment_session(**session_kwargs(amount=Decimal('9999999999.99')))

        assert session['amount_minor'] == 999999999999
        payment = PaymentTransaction.objects.get(reference=session['reference'])
        assert payment.amount == Decimal('9999999999.99')

    def test_repeated_sessions_get_distinct_references(self, service):
        first = service.create_payment_session(**session_kwargs())
        second = service.create_payment_session(**session_kwargs())

        assert first['reference'] != second['reference']
        assert PaymentTransaction.objects.filter(entity_id=42).count() == 2

    @pytest.mark.parametrize('amount', [0, -100, Decimal('0.001'), 'abc', 10**11, Decimal('10000000000')])
    def test_invalid_amount_never_reaches_gateway(self, service, gateway, amount):
        with pytest.raises(ValidationError) as exc_info:
            service.create_payment_session(**session_kwargs(amount=amount))

        assert exc_info.value.error_code == 'invalid_amount'
        assert gateway.calls['initialize'] == 0
        assert not PaymentTransaction.objects.exists()

    def test_unsupported_payment_type(self, service, gateway):
        with pytest.raises(ValidationError) as exc_info:
            service.create_payment_session(**session_kwargs(payment_type='subscription'))

        assert exc_info.value.error_code == 'invalid_payment_type'
        assert gateway.calls['initialize'] == 0

    @pytest.mark.parametrize('field', ['entity_id', 'user_id'])
    @pytest.mark.parametrize('value', [0, -1, '42', True])
    def test_ids_must_be_positive_integers(self, service, gateway, field, value):
        with pytest.raises(ValidationError):
            service.create_payment_session(**session_kwargs(**{field: value}))

        assert gateway.calls['initialize'] == 0

    def test_invalid_email(self, service, gateway):
        with pytest.raises(ValidationError) as exc_info:
            service.create_payment_session(**session_kwargs(email='not-an-email'))

        assert exc_info.value.error_code == 'invalid_email'
        assert gateway.calls['initialize'] == 0

    def test_gateway_failure_stores_nothing(self, service, gateway):
        gateway.initialize_payment = MagicMock(
            side_effect=GatewayException('Failed to initialize payment: Invalid key', 'initialize_payment_failed')
        )

        with pytest.raises(GatewayException):
            service.create_payment_session(**session_kwargs())

        assert not PaymentTransaction.objects.exists()

    def test_existing_reference_is_a_conflict(self, service, gateway):
        with patch.object(PaymentService, 'generate_reference', return_value='PAY_ORD_42_1'):
            service.create_payment_session(**session_kwargs())

            with pytest.raises(ConflictError):
                service.create_payment_session(**session_kwargs())

        assert gateway.calls['initialize'] == 1


@pytest.mark.django_db
class TestVerifyPaymentTransaction:

    def test_unknown_reference(self, service, gateway):
        with pytest.raises(NotFoundError):
            service.verify_payment_transaction('PAY_ORD_404_1')

        assert gateway.calls['verify'] == 0

    def test_success_is_not_verified_twice(self, service, gateway):
        session = service.create_payment_session(**session_kwargs())

        first = service.verify_payment_transaction(session['reference'])
        second = service.verify_payment_transaction(session['reference'])

        assert first == second
        assert gateway.calls['verify'] == 1

    def test_unpaid_payment_is_marked_failed(self, service, gateway):
        gateway.paid = False
        session = service.create_payment_session(**session_kwargs())

        result = service.verify_payment_transaction(session['reference'])

        assert result['success'] is False
        assert result['status'] == PaymentStatus.FAILED
        payment = PaymentTransaction.objects.get(reference=session['reference'])
        assert payment.status == PaymentStatus.FAILED
        assert payment.paid_at is None
        assert payment.provider_response == {'status': True, 'data': {'reference': session['reference']}}

    def test_failed_payment_is_verified_again(self, service, gateway):
        gateway.paid = False
        session = service.create_payment_session(**session_kwargs())
        service.verify_payment_transaction(session['reference'])

        gateway.paid = True
        result = service.verify_payment_transaction(session['reference'])

        assert result['success'] is True
        assert gateway.calls['verify'] == 2

    def test_concurrent_success_is_never_overwritten(self, service, gateway):
        """A slower verifier seeing 'not paid' must not undo a recorded success"""
        gateway.paid = False
        session = service.create_payment_session(**session_kwargs())
        reference = session['reference']
        original_verify = gateway.verify_payment

        def verify_while_other_worker_succeeds(ref):
            PaymentTransaction.objects.filter(reference=ref).update(
                status=PaymentStatus.SUCCESS, paid_at=PAID_AT
            )
            return original_verify(ref)

        gateway.verify_payment = verify_while_other_worker_succeeds

        result = service.verify_payment_transaction(reference)

        assert result['success'] is True
        assert PaymentTransaction.objects.get(reference=reference).status == PaymentStatus.SUCCESS

    def test_missing_paid_at_defaults_to_now(self, service, gateway):
        session = service.create_payment_session(**session_kwargs())
        gateway.verify_payment = MagicMock(return_value=PaymentVerification(
            success=True, reference=session['reference'], amount=Decimal('15000.00'),
            currency='NGN', status='success'
        ))

        service.verify_payment_transaction(session['reference'])

        payment = PaymentTransaction.objects.get(reference=session['reference'])
        assert payment.paid_at is not None
        assert payment.provider_response['amount'] == '15000.00'

    def test_amount_mismatch_is_logged(self, service, gateway, caplog):
        gateway.reported_amount = Decimal('100.00')
        session = service.create_payment_session(**session_kwargs())

        with caplog.at_level('WARNING', logger='payments.services'):
            result = service.verify_payment_transaction(session['reference'])

        assert result['success'] is True
        assert 'different amount' in caplog.text

    def test_gateway_error_propagates_and_keeps_pending(self, service, gateway):
        session = service.create_payment_session(**session_kwargs())
        gateway.verify_payment = MagicMock(
            side_effect=GatewayException('Failed to verify payment: timeout', 'gateway_unreachable')
        )

        with pytest.raises(GatewayException):
            service.verify_payment_transaction(session['reference'])

        assert PaymentTransaction.objects.get(reference=session['reference']).status == PaymentStatus.PENDING


@pytest.mark.django_db
class TestPassthroughs:

    def test_initialize_payment(self, service, gateway):
        result = service.initialize_payment(
            email='buyer@example.com', amount_minor=500000, reference='REF_1',
            first_name='Ada', last_name='Obi'
        )

        assert result == {
            'authorization_url': 'https://checkout.example.com/REF_1',
            'access_code': 'ac_REF_1',
            'reference': 'REF_1',
        }
        assert gateway.initialized[0]['currency'] == 'NGN'
        assert gateway.initialized[0]['name'] == 'Ada Obi'
        assert not PaymentTransaction.objects.exists()

    def test_initialize_payment_rejects_non_positive_amount(self, service, gateway):
        with pytest.raises(ValidationError):
            service.initialize_payment(email='buyer@example.com', amount_minor=0)

        assert gateway.calls['initialize'] == 0

    def test_verify_payment_leaves_store_alone(self, service, gateway):
        session = service.create_payment_session(**session_kwargs())

        verification = service.verify_payment(session['reference'])

        assert verification.success is True
        assert PaymentTransaction.objects.get(reference=session['reference']).status == PaymentStatus.PENDING

    def test_refund_keeps_status(self, service, gateway):
        session = service.create_payment_session(**session_kwargs())
        service.verify_payment_transaction(session['reference'])

        result = service.refund_payment(session['reference'], amount_minor=500000, reason='Cancelled')

        assert result == {
            'success': True,
            'reference': session['reference'],
            'refunded_amount': 500000,
            'message': 'Refund queued',
        }
        assert PaymentTransaction.objects.get(reference=session['reference']).status == PaymentStatus.SUCCESS

    def test_refund_rejects_non_positive_amount(self, service, gateway):
        with pytest.raises(ValidationError):
            service.refund_payment('PAY_ORD_42_1', amount_minor=-5)

        assert gateway.calls['refund'] == 0

    def test_get_payment_details(self, service, gateway):
        assert service.get_payment_details('PAY_ORD_42_1') == {'reference': 'PAY_ORD_42_1'}
        assert gateway.calls['details'] == 1


@pytest.mark.django_db
class TestQueries:

    def test_get_payment_by_reference(self, service):
        session = service.create_payment_session(**session_kwargs())

        payment = service.get_payment_by_reference(session['reference'])

        assert payment.entity_id == 42

    def test_get_payment_by_unknown_reference(self, service):
        with pytest.raises(NotFoundError) as exc_info:
            service.get_payment_by_reference('missing')

        assert exc_info.value.status_code == 404

    def test_get_payments_by_entity(self, service):
        first = service.create_payment_session(**session_kwargs())
        second = service.create_payment_session(**session_kwargs())
        service.create_payment_session(**session_kwargs(entity_id=43))
        service.create_payment_session(**session_kwargs(payment_type=PaymentType.INSPECTION))

        payments = service.get_payments_by_entity('order', 42)

        assert [p.reference for p in payments] == [second['reference'], first['reference']]

    def test_get_user_payments(self, service):
        service.create_payment_session(**session_kwargs())
        service.create_payment_session(**session_kwargs(user_id=8))

        payments = service.get_user_payments(7)

        assert len(payments) == 1
        assert payments[0].user_id == 7


def _paystack():
    gateway = PaystackGateway(api_key='sk_test_dummy')
    response = MagicMock(ok=True, status_code=200)
    response.json.return_value = {
        'status': True,
        'message': 'Authorization URL created',
        'data': {
            'authorization_url': 'https://checkout.paystack.com/abc',
            'access_code': 'abc',
        },
    }
    gateway.session = MagicMock()
    gateway.session.request.return_value = response
    return gateway


def _flutterwave():
    gateway = FlutterwaveGateway(api_key='FLWSECK_TEST-dummy')
    response = MagicMock(ok=True, status_code=200)
    response.json.return_value = {
        'status': 'success',
        'message': 'Hosted Link',
        'data': {'link': 'https://checkout.flutterwave.com/v3/hosted/pay/abc'},
    }
    gateway.session = MagicMock()
    gateway.session.request.return_value = response
    return gateway


def _razorpay():
    with patch('payments.gateways.razorpay_gateway.razorpay.Client') as client:
        client.return_value.payment_link.create.return_value = {
            'id': 'plink_abc',
            'short_url': 'https://rzp.io/i/abc',
        }
        return RazorpayGateway(api_key='rzp_test_dummy', api_secret='dummy_secret')


@pytest.mark.django_db
@pytest.mark.parametrize('make_gateway', [_paystack, _flutterwave, _razorpay])
def test_session_shape_is_the_same_for_every_provider(make_gateway):
    session = PaymentService(gateway=make_gateway()).create_payment_session(**session_kwargs())

    assert set(session) == {'reference', 'authorization_url', 'access_code', 'amount_minor', 'currency', 'provider'}
    assert session['reference'].startswith('PAY_ORD_42_')
    assert session['amount_minor'] == 1500000
    assert session['authorization_url'].startswith('https://')
    assert PaymentTransaction.objects.get(reference=session['reference']).provider == session['provider']
