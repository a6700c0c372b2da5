"""Celery application for background work queue maintenance.

Tasks are declared with @shared_task in their own modules and registered
here through `include`. Run a worker with:

    celery -A workers.celery_app worker --loglevel=info
"""

from celery import Celery

from config import settings

celery_app = Celery(
    "webhook_queue",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=[
        "retention.tasks",
        "workers.retry_sweep",
    ],
)

celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    task_acks_late=True,
)
