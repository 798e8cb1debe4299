"""
URL configuration for the payments app.

Defines API endpoints for:
- The shared payment callback (all payment types, all providers)
- Provider passthroughs (initialize, verify, refund, details)
- Stored transaction lookups
"""

from django.urls import path
from .views import (
    PaymentCallbackView,
    PaymentProviderView,
    InitializePaymentView,
    VerifyPaymentView,
    RefundPaymentView,
    PaymentDetailsView,
    PaymentTransactionView,
    PaymentTransactionListView,
)


urlpatterns = [
    path(
        'payment/callback',
        PaymentCallbackView.as_view(),
        name='payment-callback'
    ),
    path(
        'payment/provider',
        PaymentProviderView.as_view(),
        name='payment-provider'
    ),
    path(
        'payment/initialize',
        InitializePaymentView.as_view(),
        name='payment-initialize'
    ),
    path(
        'payment/verify/<str:reference>',
        VerifyPaymentView.as_view(),
        name='payment-verify'
    ),
    path(
        'payment/refund',
        RefundPaymentView.as_view(),
        name='payment-refund'
    ),
    path(
        'payment/details/<str:reference>',
        PaymentDetailsView.as_view(),
        name='payment-details'
    ),
    path(
        'payment/transaction/<str:reference>',
        PaymentTransactionView.as_view(),
        name='payment-transaction'
    ),
    path(
        'payment/transactions',
        PaymentTransactionListView.as_view(),
        name='payment-transactions'
    ),
]
