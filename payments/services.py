import logging
import threading
import time
from decimal import Decimal
from functools import lru_cache
from typing import Optional, Dict, Any, List

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.validators import validate_email
from django.db import IntegrityError, transaction
from django.urls import reverse
from django.utils import timezone

from .amounts import quantize_major, to_minor_units
from .exceptions import ValidationError, NotFoundError, ConflictError
from .gateways.base import BasePaymentGateway, PaymentVerification
from .gateways.factory import get_gateway
from .models import PaymentTransaction, PaymentType, PaymentStatus, REFERENCE_PREFIXES

logger = logging.getLogger(__name__)

# Largest amount the transaction table can hold (decimal(12, 2))
MAX_AMOUNT = Decimal('9999999999.99')


class _ReferenceClock:
    """
    Millisecond clock that never hands out the same value twice in this
    process, so two sessions for one entity within a millisecond still get
    distinct references.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._last = 0

    def next(self) -> int:
        with self._lock:
            self._last = max(int(time.time() * 1000), self._last + 1)
            return self._last


_reference_clock = _ReferenceClock()


class PaymentService:
    """
    Service layer for payments.

    The one place business modules (inspections, consultations, orders) go
    through to take a payment. It owns reference generation, the
    payment_transactions audit trail and verification; the configured gateway
    does the talking to the provider.

    Usage:
        session = PaymentService().create_payment_session(
            payment_type=PaymentType.INSPECTION,
            entity_id=inspection.id,
            user_id=user.id,
            amount=inspection.amount,
            email=user.email,
        )
        # redirect the payer to session['authorization_url']
    """

    def __init__(self, gateway: Optional[BasePaymentGateway] = None):
        """
        Args:
            gateway: Gateway to use; defaults to the one named by PAYMENT_PROVIDER
        """
        self.gateway = gateway or get_gateway()

    @property
    def provider_name(self) -> str:
        return self.gateway.name

    @property
    def currency(self) -> str:
        return getattr(settings, 'PAYMENT_CURRENCY', 'NGN')

    # Helpers

    def get_callback_url(self) -> str:
        """Single callback URL shared by every payment type."""
        configured = getattr(settings, 'PAYMENT_CALLBACK_URL', None)
        if configured:
            return configured
        base_url = getattr(settings, 'APP_URL', 'http://localhost:8000').rstrip('/')
        return f"{base_url}{reverse('payment-callback')}"

    @staticmethod
    def generate_reference(payment_type: str, entity_id: int) -> str:
        """Build '<PREFIX>_<entity_id>_<epoch millis>', e.g. PAY_ORD_42_1736528410000."""
        prefix = REFERENCE_PREFIXES[PaymentType(payment_type).value]
        return f"{prefix}_{entity_id}_{_reference_clock.next()}"

    @staticmethod
    def _validate_payment_type(payment_type) -> PaymentType:
        if payment_type not in PaymentType.values:
            supported = ', '.join(PaymentType.values)
            raise ValidationError(
                f"Unsupported payment type: {payment_type}. Supported types: {supported}",
                error_code='invalid_payment_type'
            )
        return PaymentType(payment_type)

    @staticmethod
    def _validate_id(value, field_name: str):
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise ValidationError(
                f"{field_name} must be a positive integer, got {value!r}",
                error_code=f'invalid_{field_name}'
            )

    @staticmethod
    def _validate_email(email):
        try:
            validate_email(email)
        except DjangoValidationError:
            raise ValidationError(f"Invalid email address: {email!r}", error_code='invalid_email')

    @staticmethod
    def _validate_amount(amount):
        """Returns (amount_major, amount_minor) or raises ValidationError."""
        try:
            amount_major = quantize_major(amount)
            amount_minor = to_minor_units(amount)
        except ValueError as e:
            raise ValidationError(str(e), error_code='invalid_amount')

        if amount_major <= 0 or amount_minor <= 0:
            raise ValidationError(
                f"Amount must be greater than zero, got {amount}",
                error_code='invalid_amount'
            )
        if amount_major > MAX_AMOUNT:
            raise ValidationError(
                f"Amount must not exceed {MAX_AMOUNT}, got {amount}",
                error_code='invalid_amount'
            )
        return amount_major, amount_minor

    @staticmethod
    def _verification_result(payment: PaymentTransaction) -> Dict[str, Any]:
        return {
            'success': payment.is_successful(),
            'reference': payment.reference,
            'amount_minor': payment.amount_minor,
            'status': payment.status,
            'entity_id': payment.entity_id,
            'entity_type': payment.payment_type,
            'paid_at': payment.paid_at,
        }

    @staticmethod
    def _audit_payload(verification: PaymentVerification) -> Dict[str, Any]:
        if verification.gateway_response is not None:
            return verification.gateway_response
        return {
            'success': verification.success,
            'reference': verification.reference,
            'amount': str(verification.amount),
            'currency': verification.currency,
            'status': verification.status,
        }

    # Sessions

    def create_payment_session(
        self,
        payment_type: str,
        entity_id: int,
        user_id: int,
        amount,
        email: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        phone: Optional[str] = None,
        metadata: Optional[Dict] = None
    ) -> Dict[str, Any]:
        """
        Start a payment for a business entity.

        Everything is validated before the provider is called, and the
        transaction row is written only once the provider accepted the
        request, so a failed initialization leaves nothing behind.

        Args:
            payment_type: One of PaymentType
            entity_id: ID of the inspection, consultation or order
            user_id: ID of the paying user
            amount: Amount in the major currency unit (e.g. 5000 Naira)
            email: Payer email address
            first_name: Payer first name
            last_name: Payer last name
            phone: Payer phone number
            metadata: Extra data stored on the transaction and sent to the provider

        Returns:
            Dict with reference, authorization_url, access_code, amount_minor,
            currency and provider

        Raises:
            ValidationError: If any input is invalid
            ConflictError: If the generated reference is already taken
            GatewayException: If the provider rejects the request
        """
        payment_type = self._validate_payment_type(payment_type)
        self._validate_id(entity_id, 'entity_id')
        self._validate_id(user_id, 'user_id')
        self._validate_email(email)
        amount_major, amount_minor = self._validate_amount(amount)

        reference = self.generate_reference(payment_type, entity_id)
        if PaymentTransaction.objects.filter(reference=reference).exists():
            raise ConflictError(f"Payment reference already exists: {reference}")

        currency = self.currency
        provider_metadata = {
            **(metadata or {}),
            'payment_type': payment_type.value,
            'entity_id': entity_id,
            'user_id': user_id,
        }
        payer_name = ' '.join(part for part in (first_name, last_name) if part) or None

        initialization = self.gateway.initialize_payment(
            email=email,
            amount_minor=amount_minor,
            currency=currency,
            reference=reference,
            callback_url=self.get_callback_url(),
            name=payer_name,
            phone=phone,
            metadata=provider_metadata
        )

        try:
            with transaction.atomic():
                PaymentTransaction.objects.create(
                    reference=reference,
                    payment_type=payment_type,
                    entity_id=entity_id,
                    user_id=user_id,
                    amount=amount_major,
                    amount_minor=amount_minor,
                    currency=currency,
                    status=PaymentStatus.PENDING,
                    provider=self.provider_name,
                    authorization_url=initialization.authorization_url,
                    access_code=initialization.access_code,
                    customer_email=email,
                    customer_name=f"{first_name} {last_name}" if first_name and last_name else None,
                    customer_phone=phone,
                    metadata=metadata or {},
                )
        except IntegrityError as e:
            logger.error(
                "Payment reference collision while storing session",
                extra={'reference': reference, 'error': str(e)}
            )
            raise ConflictError(f"Payment reference already exists: {reference}")

        logger.info(
            "Payment session created",
            extra={
                'reference': reference,
                'payment_type': payment_type.value,
                'entity_id': entity_id,
                'amount_minor': amount_minor,
                'provider': self.provider_name,
            }
        )

        return {
            'reference': reference,
            'authorization_url': initialization.authorization_url,
            'access_code': initialization.access_code,
            'amount_minor': amount_minor,
            'currency': currency,
            'provider': self.provider_name,
        }

    def verify_payment_transaction(self, reference: str) -> Dict[str, Any]:
        """
        Verify a payment with the provider and record the outcome.

        A transaction already marked success is returned as stored without
        calling the provider. Failed transactions are verified again, so a
        payment that completes late can still move to success.

        The status write only applies while the row is not yet successful;
        when two verifications race, both may call the provider but the
        stored success is never overwritten.

        Returns:
            Dict with success, reference, amount_minor, status, entity_id,
            entity_type and paid_at

        Raises:
            NotFoundError: If no transaction exists for the reference
            GatewayException: If the provider call fails
        """
        payment = self.get_payment_by_reference(reference)

        if payment.is_successful():
            logger.debug("Payment already verified", extra={'reference': reference})
            return self._verification_result(payment)

        verification = self.gateway.verify_payment(reference)

        updates = {
            'status': PaymentStatus.SUCCESS if verification.success else PaymentStatus.FAILED,
            'provider_response': self._audit_payload(verification),
            'updated_at': timezone.now(),
        }
        if verification.success:
            updates['paid_at'] = verification.paid_at or timezone.now()

        updated = (
            PaymentTransaction.objects
            .filter(pk=payment.pk)
            .exclude(status=PaymentStatus.SUCCESS)
            .update(**updates)
        )
        payment.refresh_from_db()

        if not updated:
            logger.info(
                "Payment was marked successful by a concurrent verification",
                extra={'reference': reference}
            )
        elif verification.success and to_minor_units(verification.amount) != payment.amount_minor:
            logger.warning(
                "Provider reported a different amount than was requested",
                extra={
                    'reference': reference,
                    'expected_minor': payment.amount_minor,
                    'reported_amount': str(verification.amount),
                }
            )

        logger.info(
            "Payment verified",
            extra={'reference': reference, 'status': payment.status, 'provider_status': verification.status}
        )

        return self._verification_result(payment)

    # Provider passthroughs

    def initialize_payment(
        self,
        email: str,
        amount_minor: int,
        currency: Optional[str] = None,
        reference: Optional[str] = None,
        callback_url: Optional[str] = None,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        phone: Optional[str] = None,
        metadata: Optional[Dict] = None
    ) -> Dict[str, Any]:
        """
        Initialize a payment directly with the provider.

        Nothing is stored; prefer create_payment_session for anything that
        needs an audit trail.
        """
        if isinstance(amount_minor, bool) or not isinstance(amount_minor, int) or amount_minor <= 0:
            raise ValidationError(
                f"Amount must be a positive number of minor units, got {amount_minor!r}",
                error_code='invalid_amount'
            )

        initialization = self.gateway.initialize_payment(
            email=email,
            amount_minor=amount_minor,
            currency=currency or self.currency,
            reference=reference,
            callback_url=callback_url or self.get_callback_url(),
            name=' '.join(part for part in (first_name, last_name) if part) or None,
            phone=phone,
            metadata=metadata
        )
        return {
            'authorization_url': initialization.authorization_url,
            'access_code': initialization.access_code,
            'reference': initialization.reference,
        }

    def verify_payment(self, reference: str) -> PaymentVerification:
        """Ask the provider about a payment without touching the stored transaction."""
        return self.gateway.verify_payment(reference)

    def refund_payment(
        self,
        reference: str,
        amount_minor: Optional[int] = None,
        reason: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Refund a payment, fully or in part.

        The stored transaction status is left as it is.
        """
        if amount_minor is not None and (
            isinstance(amount_minor, bool) or not isinstance(amount_minor, int) or amount_minor <= 0
        ):
            raise ValidationError(
                f"Refund amount must be a positive number of minor units, got {amount_minor!r}",
                error_code='invalid_amount'
            )

        refund = self.gateway.refund_payment(reference, amount_minor=amount_minor, reason=reason)

        logger.info(
            "Refund processed",
            extra={'reference': reference, 'success': refund.success, 'refunded_amount': refund.refunded_amount}
        )

        return {
            'success': refund.success,
            'reference': refund.reference,
            'refunded_amount': refund.refunded_amount,
            'message': refund.message,
        }

    def get_payment_details(self, reference: str) -> Dict[str, Any]:
        return self.gateway.get_payment_details(reference)

    # Queries

    def get_payment_by_reference(self, reference: str) -> PaymentTransaction:
        try:
            return PaymentTransaction.objects.get(reference=reference)
        except PaymentTransaction.DoesNotExist:
            raise NotFoundError(f"Payment transaction not found: {reference}")

    def get_payments_by_entity(self, payment_type: str, entity_id: int) -> List[PaymentTransaction]:
        """All payments for one inspection, consultation or order, newest first."""
        payment_type = self._validate_payment_type(payment_type)
        return list(
            PaymentTransaction.objects
            .filter(payment_type=payment_type, entity_id=entity_id)
            .order_by('-created_at')
        )

    def get_user_payments(self, user_id: int) -> List[PaymentTransaction]:
        return list(PaymentTransaction.objects.filter(user_id=user_id).order_by('-created_at'))


@lru_cache(maxsize=None)
def get_payment_service() -> PaymentService:
    """Process-wide PaymentService bound to the configured gateway."""
    service = PaymentService()
    logger.info("Payment service started", extra={'provider': service.provider_name})
    return service
