from celery import Celery

from storefront.core.config import settings

# Only customer and store-owner e-mails run here; order writes never wait on this app.
celery_app = Celery(
    "storefront",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["storefront.tasks.email_tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_default_queue="emails",
    # SMTP round trips are slow; one message per worker slot at a time
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_time_limit=120,
    task_soft_time_limit=90,
    task_ignore_result=True,
    broker_connection_retry_on_startup=True,
)
