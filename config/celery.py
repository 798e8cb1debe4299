"""
Celery application for the payments backend.

Workers run the pending payment reconciliation sweep; beat triggers it on
the schedule in CELERY_BEAT_SCHEDULE.
"""
import os
from celery import Celery

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings')

app = Celery('payments_backend')

# Settings keys carry a `CELERY_` prefix
app.config_from_object('django.conf:settings', namespace='CELERY')

# Keep Django's LOGGING in charge of worker output
app.conf.worker_hijack_root_logger = False

app.autodiscover_tasks()
