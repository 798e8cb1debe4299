"""
Payment gateway abstraction layer.

Provides a unified interface for interacting with different payment providers.
"""

from .base import (
    BasePaymentGateway,
    RestPaymentGateway,
    PaymentInitialization,
    PaymentVerification,
    PaymentRefund,
    GatewayException,
)
from .paystack_gateway import PaystackGateway
from .flutterwave_gateway import FlutterwaveGateway
from .razorpay_gateway import RazorpayGateway
from .factory import get_gateway

__all__ = [
    'BasePaymentGateway',
    'RestPaymentGateway',
    'PaymentInitialization',
    'PaymentVerification',
    'PaymentRefund',
    'GatewayException',
    'PaystackGateway',
    'FlutterwaveGateway',
    'RazorpayGateway',
    'get_gateway',
]
