from rest_framework import status, views
from rest_framework.response import Response
from rest_framework.permissions import AllowAny, IsAuthenticated

from .exceptions import PaymentError
from .gateways.base import GatewayException
from .models import PaymentType
from .serializers import (
    PaymentTransactionSerializer,
    InitializePaymentSerializer,
    RefundPaymentSerializer,
    PaymentVerificationSerializer,
    TransactionFilterSerializer,
)
from .services import get_payment_service


# Per payment type: message shown to the payer and where the frontend sends them
CALLBACK_ROUTES = {
    PaymentType.INSPECTION.value: (
        'Payment verified successfully. Your inspection has been scheduled.',
        '/appointments/inspections/{entity_id}',
    ),
    PaymentType.CONSULTATION.value: (
        'Payment verified successfully. Your consultation has been scheduled.',
        '/appointments/consultations/{entity_id}',
    ),
    PaymentType.ORDER.value: (
        'Payment verified successfully. Your order is being processed.',
        '/orders/{entity_id}',
    ),
}

DEFAULT_SUCCESS_MESSAGE = 'Payment verified successfully'
FAILURE_MESSAGE = 'Payment verification failed'

# Redirect parameters providers append on their own, checked after 'reference'
REFERENCE_PARAMS = ('reference', 'trxref', 'tx_ref', 'razorpay_payment_link_reference_id')


def _error_response(exc):
    """Turn a PaymentError or GatewayException into an API error response."""
    status_code = exc.status_code if isinstance(exc, PaymentError) else status.HTTP_400_BAD_REQUEST
    return Response(
        {'error': exc.message, 'error_code': exc.error_code},
        status=status_code
    )


class PaymentCallbackView(views.APIView):
    """
    Single callback for every payment type.

    GET /api/v1/payment/callback?reference=<reference>

    Providers send the payer here after checkout. The payment is verified
    and recorded, and the response tells the frontend what to show and
    where to go next:
        - success, reference, entity_id, entity_type, amount, status
        - message (str): text for the payer
        - redirect_url (str | null): frontend path, only on success
    """
    permission_classes = [AllowAny]
    authentication_classes = []

    def get(self, request):
        reference = next(
            (request.query_params[name] for name in REFERENCE_PARAMS if request.query_params.get(name)),
            None
        )
        if not reference:
            return Response(
                {'error': 'reference is required'},
                status=status.HTTP_400_BAD_REQUEST
            )

        try:
            result = get_payment_service().verify_payment_transaction(reference)
        except (PaymentError, GatewayException) as e:
            return _error_response(e)

        message, redirect_url = FAILURE_MESSAGE, None
        if result['success']:
            message, redirect_template = CALLBACK_ROUTES.get(
                result['entity_type'], (DEFAULT_SUCCESS_MESSAGE, None)
            )
            if redirect_template:
                redirect_url = redirect_template.format(entity_id=result['entity_id'])

        return Response({
            'success': result['success'],
            'reference': result['reference'],
            'entity_id': result['entity_id'],
            'entity_type': result['entity_type'],
            'amount': result['amount_minor'],
            'status': result['status'],
            'message': message,
            'redirect_url': redirect_url,
        }, status=status.HTTP_200_OK)


class PaymentProviderView(views.APIView):
    """
    GET /api/v1/payment/provider

    Name of the payment provider this deployment uses.
    """
    permission_classes = [AllowAny]

    def get(self, request):
        try:
            provider = get_payment_service().provider_name
        except GatewayException as e:
            return _error_response(e)

        return Response({'provider': provider})


class InitializePaymentView(views.APIView):
    """
    Initialize a payment directly with the provider.

    POST /api/v1/payment/initialize
    Request body:
        - email (str)
        - amount (int): amount in the smallest currency unit
        - currency, reference, callback_url, metadata, first_name, last_name, phone (optional)

    No transaction is recorded for payments started this way.
    """
    permission_classes = [IsAuthenticated]

    def post(self, request):
        serializer = InitializePaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            result = get_payment_service().initialize_payment(
                email=data['email'],
                amount_minor=data['amount'],
                currency=data.get('currency'),
                reference=data.get('reference'),
                callback_url=data.get('callback_url'),
                first_name=data.get('first_name'),
                last_name=data.get('last_name'),
                phone=data.get('phone'),
                metadata=data.get('metadata')
            )
        except (PaymentError, GatewayException) as e:
            return _error_response(e)

        return Response({
            'success': True,
            'data': result,
            'message': 'Payment initialized successfully',
        }, status=status.HTTP_200_OK)


class VerifyPaymentView(views.APIView):
    """
    GET /api/v1/payment/verify/<reference>

    Raw verification with the provider; the stored transaction is not updated.
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, reference):
        try:
            verification = get_payment_service().verify_payment(reference)
        except GatewayException as e:
            return _error_response(e)

        return Response({
            'success': verification.success,
            'data': PaymentVerificationSerializer(verification).data,
            'message': 'Payment verified successfully' if verification.success else FAILURE_MESSAGE,
        }, status=status.HTTP_200_OK)


class RefundPaymentView(views.APIView):
    """
    POST /api/v1/payment/refund
    Request body:
        - reference (str)
        - amount (int, optional): partial refund in the smallest currency unit
        - reason (str, optional)
    """
    permission_classes = [IsAuthenticated]

    def post(self, request):
        serializer = RefundPaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            result = get_payment_service().refund_payment(
                reference=data['reference'],
                amount_minor=data.get('amount'),
                reason=data.get('reason') or None
            )
        except (PaymentError, GatewayException) as e:
            return _error_response(e)

        return Response({
            'success': result['success'],
            'data': result,
            'message': 'Refund processed successfully' if result['success'] else 'Refund processing failed',
        }, status=status.HTTP_200_OK)


class PaymentDetailsView(views.APIView):
    """
    GET /api/v1/payment/details/<reference>

    The provider's raw record of a payment.
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, reference):
        try:
            details = get_payment_service().get_payment_details(reference)
        except GatewayException as e:
            return _error_response(e)

        return Response({
            'success': True,
            'data': details,
            'message': 'Payment details retrieved successfully',
        }, status=status.HTTP_200_OK)


class PaymentTransactionView(views.APIView):
    """
    GET /api/v1/payment/transaction/<reference>
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, reference):
        try:
            payment = get_payment_service().get_payment_by_reference(reference)
        except (PaymentError, GatewayException) as e:
            return _error_response(e)

        return Response(PaymentTransactionSerializer(payment).data, status=status.HTTP_200_OK)


class PaymentTransactionListView(views.APIView):
    """
    List stored transactions.

    GET /api/v1/payment/transactions?payment_type=<type>&entity_id=<id>
        Payments for one inspection, consultation or order.
    GET /api/v1/payment/transactions
        Payments made by the requesting user.
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        try:
            service = get_payment_service()
        except GatewayException as e:
            return _error_response(e)

        if 'payment_type' in request.query_params or 'entity_id' in request.query_params:
            filters = TransactionFilterSerializer(data=request.query_params)
            filters.is_valid(raise_exception=True)
            payments = service.get_payments_by_entity(
                filters.validated_data['payment_type'],
                filters.validated_data['entity_id']
            )
        else:
            payments = service.get_user_payments(request.user.pk)

        return Response(PaymentTransactionSerializer(payments, many=True).data, status=status.HTTP_200_OK)
