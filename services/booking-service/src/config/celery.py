"""Celery application for Booking Service workers and beat."""
import os

from celery import Celery

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings.base')

app = Celery('booking_service')
app.config_from_object('django.conf:settings', namespace='CELERY')
app.autodiscover_tasks()
