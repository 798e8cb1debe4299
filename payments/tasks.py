"""
Celery tasks for the payments app.

Payers do not always come back through the callback (closed tab, lost
connection), so pending payments are swept periodically and verified with
the provider.
"""
from celery import shared_task
from django.conf import settings
from django.utils import timezone
from datetime import timedelta
import logging

from .models import PaymentTransaction, PaymentStatus
from .services import get_payment_service
from .exceptions import PaymentError
from .gateways.base import GatewayException

logger = logging.getLogger(__name__)


@shared_task
def reconcile_pending_payments():
    """
    Verify pending payments that have been waiting for a while.

    Only payments older than PAYMENT_RECONCILE_AFTER_MINUTES (so the payer
    has had time to finish checkout) and younger than
    PAYMENT_RECONCILE_WINDOW_HOURS are checked. A provider error on one
    payment is logged and the sweep moves on; the next run picks it up again.

    Returns:
        dict: Summary of reconciliation
    """
    now = timezone.now()
    settle_after = timedelta(minutes=getattr(settings, 'PAYMENT_RECONCILE_AFTER_MINUTES', 30))
    window = timedelta(hours=getattr(settings, 'PAYMENT_RECONCILE_WINDOW_HOURS', 24))

    references = list(
        PaymentTransaction.objects.filter(
            status=PaymentStatus.PENDING,
            created_at__lte=now - settle_after,
            created_at__gte=now - window,
        ).values_list('reference', flat=True)
    )

    service = get_payment_service()
    succeeded = 0
    unpaid = 0
    errors = []

    for reference in references:
        try:
            result = service.verify_payment_transaction(reference)
        except (PaymentError, GatewayException) as e:
            errors.append(reference)
            logger.error(f"Failed to reconcile payment {reference}: {str(e)}")
            continue
        except Exception as e:
            errors.append(reference)
            logger.error(f"Unexpected error reconciling payment {reference}: {str(e)}", exc_info=True)
            continue

        if result['success']:
            succeeded += 1
        else:
            unpaid += 1
        logger.info(f"Reconciled payment {reference}: {result['status']}")

    result = {
        'status': 'completed',
        'checked_count': len(references),
        'success_count': succeeded,
        'failed_count': unpaid,
        'error_count': len(errors),
        'error_references': errors,
        'message': f'Checked {len(references)} pending payments: '
                   f'{succeeded} successful, {unpaid} failed, {len(errors)} errors'
    }

    logger.info(f"Payment reconciliation completed: {result}")
    return result
