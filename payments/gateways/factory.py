"""
Payment gateway factory.

Builds the configured payment gateway from Django settings. The set of
gateways is fixed in code; the choice between them is made once from
PAYMENT_PROVIDER when the payment service starts.
"""

from typing import Optional
from django.conf import settings
from .base import BasePaymentGateway, GatewayException
from .flutterwave_gateway import FlutterwaveGateway
from .paystack_gateway import PaystackGateway
from .razorpay_gateway import RazorpayGateway


# Gateway registry - maps gateway names to their classes
GATEWAY_REGISTRY = {
    'paystack': PaystackGateway,
    'flutterwave': FlutterwaveGateway,
    'razorpay': RazorpayGateway,
}


def _gateway_config(gateway_name: str) -> dict:
    """
    Read the credentials for a gateway from settings.

    Raises:
        AttributeError: If a required setting is absent
    """
    if gateway_name == 'paystack':
        return {
            'api_key': settings.PAYSTACK_SECRET_KEY,
            'base_url': getattr(settings, 'PAYSTACK_BASE_URL', None),
        }
    if gateway_name == 'flutterwave':
        return {
            'api_key': settings.FLUTTERWAVE_SECRET_KEY,
            'base_url': getattr(settings, 'FLUTTERWAVE_BASE_URL', None),
        }
    if gateway_name == 'razorpay':
        return {
            'api_key': settings.RAZORPAY_KEY_ID,
            'api_secret': settings.RAZORPAY_KEY_SECRET,
        }
    raise GatewayException(
        message=f"Configuration not found for gateway: {gateway_name}",
        error_code='gateway_config_missing'
    )


def get_gateway(gateway_name: Optional[str] = None) -> BasePaymentGateway:
    """
    Get a payment gateway instance.

    Args:
        gateway_name: Name of the gateway ('paystack', 'flutterwave', 'razorpay').
                     If None, uses PAYMENT_PROVIDER from settings

    Returns:
        Configured payment gateway instance

    Raises:
        GatewayException: If gateway is not supported or configuration is missing

    Example:
        >>> gateway = get_gateway('paystack')
        >>> session = gateway.initialize_payment('user@example.com', 500000, 'NGN')
    """
    if gateway_name is None:
        gateway_name = getattr(settings, 'PAYMENT_PROVIDER', 'paystack')

    gateway_name = gateway_name.lower().strip()

    if gateway_name not in GATEWAY_REGISTRY:
        supported = ', '.join(GATEWAY_REGISTRY.keys())
        raise GatewayException(
            message=f"Unsupported payment gateway: {gateway_name}. Supported gateways: {supported}",
            error_code='unsupported_gateway'
        )

    try:
        config = _gateway_config(gateway_name)
    except AttributeError as e:
        raise GatewayException(
            message=f"Missing configuration for {gateway_name}: {str(e)}",
            error_code='gateway_config_missing'
        )

    missing = [key for key in ('api_key', 'api_secret') if key in config and not config[key]]
    if missing:
        raise GatewayException(
            message=f"Missing configuration for {gateway_name}: {', '.join(missing)} is empty",
            error_code='gateway_config_missing'
        )

    config = {key: value for key, value in config.items() if value is not None}
    timeout = getattr(settings, 'PAYMENT_GATEWAY_TIMEOUT', None)
    if timeout:
        config['timeout'] = timeout

    return GATEWAY_REGISTRY[gateway_name](**config)
