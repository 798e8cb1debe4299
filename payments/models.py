from django.conf import settings
from django.db import models


class PaymentType(models.TextChoices):
    """
    Kind of business entity a transaction pays for.

    Paired with PaymentTransaction.entity_id this forms a polymorphic
    reference; the table it points at depends on the type.
    """
    INSPECTION = 'inspection', 'Inspection'
    CONSULTATION = 'consultation', 'Consultation'
    ORDER = 'order', 'Order'


# Short tag placed at the front of every reference
REFERENCE_PREFIXES = {
    PaymentType.INSPECTION.value: 'PAY_INSP',
    PaymentType.CONSULTATION.value: 'PAY_CONS',
    PaymentType.ORDER.value: 'PAY_ORD',
}


class PaymentStatus(models.TextChoices):
    PENDING = 'pending', 'Pending'
    SUCCESS = 'success', 'Success'
    FAILED = 'failed', 'Failed'


def default_currency():
    return getattr(settings, 'PAYMENT_CURRENCY', 'NGN')


class PaymentTransaction(models.Model):
    """
    A single payment attempt made through a payment gateway.

    Rows are created only after the provider accepted the initialization
    request and are never deleted; together they form the payment audit trail.
    A row in the success state is terminal and is not written again.
    """

    reference = models.CharField(
        max_length=255,
        unique=True,
        editable=False,
        help_text="Globally unique payment reference shared with the provider"
    )
    payment_type = models.CharField(
        max_length=50,
        choices=PaymentType.choices,
        help_text="Kind of business entity this payment is for"
    )
    entity_id = models.PositiveBigIntegerField(
        help_text="ID of the inspection, consultation or order being paid for"
    )
    user_id = models.PositiveBigIntegerField(
        help_text="ID of the paying user"
    )
    amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        help_text="Amount in the major currency unit (e.g. 5000.00 Naira)"
    )
    amount_minor = models.PositiveBigIntegerField(
        help_text="Amount in the smallest currency unit (e.g. kobo, cents)"
    )
    currency = models.CharField(
        max_length=10,
        default=default_currency,
        help_text="Currency code (ISO 4217)"
    )
    status = models.CharField(
        max_length=50,
        choices=PaymentStatus.choices,
        default=PaymentStatus.PENDING,
        db_index=True,
        help_text="Current status of the payment"
    )
    provider = models.CharField(
        max_length=50,
        help_text="Payment gateway that handled this transaction"
    )
    authorization_url = models.URLField(
        max_length=500,
        null=True,
        blank=True,
        help_text="Checkout URL the payer is redirected to"
    )
    access_code = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Provider specific checkout session code"
    )
    customer_email = models.EmailField(max_length=255)
    customer_name = models.CharField(max_length=255, null=True, blank=True)
    customer_phone = models.CharField(max_length=50, null=True, blank=True)
    metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Caller supplied metadata"
    )
    provider_response = models.JSONField(
        null=True,
        blank=True,
        help_text="Raw verification payload returned by the provider"
    )
    paid_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the payment was confirmed"
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'payment_transactions'
        ordering = ['-created_at']
        verbose_name = 'Payment Transaction'
        verbose_name_plural = 'Payment Transactions'
        indexes = [
            models.Index(fields=['payment_type', 'entity_id'], name='payment_tx_type_entity_idx'),
            models.Index(fields=['user_id'], name='payment_tx_user_idx'),
        ]

    def __str__(self):
        return f"{self.reference} ({self.status})"

    @property
    def amount_display(self):
        """Returns formatted amount (e.g., '15000.00 NGN')"""
        return f"{self.amount:.2f} {self.currency}"

    def is_successful(self):
        return self.status == PaymentStatus.SUCCESS
