"""Celery application for background ride/token work."""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "hicut.settings")

app = Celery("hicut")
app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()
