from rest_framework import serializers
from .models import PaymentTransaction, PaymentType


class PaymentTransactionSerializer(serializers.ModelSerializer):
    """
    Serializer for stored payment transactions.
    The raw provider response stays out of API output; it is kept for audit only.
    """
    amount_display = serializers.ReadOnlyField()
    status_display = serializers.CharField(
        source='get_status_display',
        read_only=True
    )
    payment_type_display = serializers.CharField(
        source='get_payment_type_display',
        read_only=True
    )

    class Meta:
        model = PaymentTransaction
        fields = [
            'id',
            'reference',
            'payment_type',
            'payment_type_display',
            'entity_id',
            'user_id',
            'amount',
            'amount_minor',
            'amount_display',
            'currency',
            'status',
            'status_display',
            'provider',
            'authorization_url',
            'access_code',
            'customer_email',
            'customer_name',
            'customer_phone',
            'metadata',
            'paid_at',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields


class InitializePaymentSerializer(serializers.Serializer):
    """
    Validates a direct initialization request.
    Amount is in the smallest currency unit (kobo for NGN, cents for USD).
    """
    email = serializers.EmailField()
    amount = serializers.IntegerField(min_value=100)
    currency = serializers.CharField(max_length=10, required=False)
    reference = serializers.CharField(max_length=255, required=False)
    callback_url = serializers.URLField(required=False)
    metadata = serializers.DictField(required=False)
    first_name = serializers.CharField(max_length=255, required=False)
    last_name = serializers.CharField(max_length=255, required=False)
    phone = serializers.CharField(max_length=50, required=False)


class RefundPaymentSerializer(serializers.Serializer):
    reference = serializers.CharField(max_length=255)
    amount = serializers.IntegerField(
        min_value=100,
        required=False,
        help_text="Partial refund amount in the smallest currency unit"
    )
    reason = serializers.CharField(required=False, allow_blank=True)


class PaymentVerificationSerializer(serializers.Serializer):
    """Output shape of a raw provider verification."""
    success = serializers.BooleanField()
    reference = serializers.CharField()
    amount = serializers.DecimalField(max_digits=14, decimal_places=2)
    currency = serializers.CharField()
    status = serializers.CharField()
    paid_at = serializers.DateTimeField(allow_null=True)
    customer = serializers.DictField()
    metadata = serializers.DictField()


class TransactionFilterSerializer(serializers.Serializer):
    """Query parameters for listing transactions of one business entity."""
    payment_type = serializers.ChoiceField(choices=PaymentType.choices)
    entity_id = serializers.IntegerField(min_value=1)
