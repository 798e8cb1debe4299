"""
Django Admin configuration for the payments app.

Payment transactions are an audit trail: the admin can browse and
re-verify them but never add, edit or delete rows.
"""

from django.contrib import admin, messages
from django.utils.html import format_html
from .models import PaymentTransaction


@admin.register(PaymentTransaction)
class PaymentTransactionAdmin(admin.ModelAdmin):
    """
    Admin interface for PaymentTransaction model.

    Features:
    - List view with reference, type, entity, amount and status
    - Filter by status, type, provider, dates
    - Search by reference, customer email, entity id
    - Action to verify pending/failed payments with the provider
    - Color-coded status indicators
    """

    list_display = [
        'reference',
        'payment_type',
        'entity_id',
        'user_id',
        'amount_display_formatted',
        'status_display',
        'provider',
        'paid_at',
        'created_at',
    ]

    list_filter = [
        'status',
        'payment_type',
        'provider',
        'created_at',
        'paid_at',
    ]

    search_fields = [
        'reference',
        'customer_email',
        'customer_name',
        'entity_id',
    ]

    fieldsets = (
        ('Payment', {
            'fields': ('reference', 'payment_type', 'entity_id', 'user_id', 'status', 'paid_at')
        }),
        ('Amount', {
            'fields': ('amount', 'amount_minor', 'currency')
        }),
        ('Gateway Details', {
            'fields': ('provider', 'authorization_url', 'access_code', 'provider_response')
        }),
        ('Customer', {
            'fields': ('customer_email', 'customer_name', 'customer_phone', 'metadata')
        }),
        ('Timestamps', {
            'fields': ('created_at', 'updated_at')
        }),
    )

    actions = ['verify_with_gateway']
    date_hierarchy = 'created_at'

    def amount_display_formatted(self, obj):
        """Display formatted amount"""
        return obj.amount_display
    amount_display_formatted.short_description = 'Amount'
    amount_display_formatted.admin_order_field = 'amount_minor'

    def status_display(self, obj):
        """Display status with color coding"""
        status_colors = {
            'pending': 'orange',
            'success': 'green',
            'failed': 'red',
        }
        color = status_colors.get(obj.status, 'gray')
        return format_html(
            '<span style="color: {}; font-weight: bold;">{}</span>',
            color,
            obj.get_status_display()
        )
    status_display.short_description = 'Status'
    status_display.admin_order_field = 'status'

    def verify_with_gateway(self, request, queryset):
        """Action to verify selected payments with the payment provider"""
        from .services import get_payment_service
        from .exceptions import PaymentError
        from .gateways.base import GatewayException

        MAX_VERIFY_PER_REQUEST = 50

        count = queryset.count()
        if count > MAX_VERIFY_PER_REQUEST:
            self.message_user(
                request,
                f"Cannot verify more than {MAX_VERIFY_PER_REQUEST} payments at once. "
                f"You selected {count}. Please select fewer items.",
                level=messages.ERROR
            )
            return

        service = get_payment_service()
        succeeded = 0
        unpaid = 0
        failed = 0

        for payment in queryset:
            try:
                result = service.verify_payment_transaction(payment.reference)
            except (PaymentError, GatewayException):
                failed += 1
                continue
            if result['success']:
                succeeded += 1
            else:
                unpaid += 1

        self.message_user(
            request,
            f"Verified {count} payment(s): {succeeded} successful, {unpaid} not paid, {failed} could not be checked."
        )
    verify_with_gateway.short_description = "Verify selected payments with gateway"

    def has_add_permission(self, request):
        """Transactions are created only by the payment service"""
        return False

    def has_change_permission(self, request, obj=None):
        """Transactions are read-only in the admin"""
        return False

    def has_delete_permission(self, request, obj=None):
        """Transactions are never deleted"""
        return False
