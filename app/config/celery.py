"""
Celery configuration for the chat backend.

Celery runs periodic maintenance for the chat app, such as reconciling
persisted user status with Redis presence. Schedules live in the
database (django-celery-beat) and are created by data migrations.

This configuration uses Redis as both the message broker and result backend.
Tasks are auto-discovered from all installed Django apps.

Usage:
    from chat.tasks import mark_stale_users_offline

    mark_stale_users_offline.delay()

For more information, see:
https://docs.celeryq.dev/en/stable/django/first-steps-with-django.html
"""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("chat_backend")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

app.autodiscover_tasks()
