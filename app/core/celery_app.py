"""
Celery application for enhancement jobs.

Enhancement tasks run on their own queue so a burst of AI generation never
delays other work sharing the broker. A job is acknowledged only after it has
finished; its status row, not the Celery result, is the source of truth.
"""

import sentry_sdk
from celery import Celery
from celery.signals import setup_logging, worker_ready
from sentry_sdk.integrations.celery import CeleryIntegration

from app.core.config import settings
from app.utils.logger import configure_logging, get_logger

ENHANCEMENT_QUEUE = "enhancement"


@setup_logging.connect
def setup_celery_logging(**kwargs):
    """Route worker logging through structlog"""
    configure_logging()


@worker_ready.connect
def log_worker_ready(sender=None, **kwargs):
    get_logger(__name__).info(
        "Enhancement worker ready",
        queue=ENHANCEMENT_QUEUE,
        eager=settings.CELERY_TASK_ALWAYS_EAGER,
    )


if settings.SENTRY_DSN:
    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        integrations=[CeleryIntegration()],
        environment=settings.APP_ENV,
        traces_sample_rate=0.1,
    )


celery_app = Celery(
    "seo_report_engine",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["app.tasks.enhancement_tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_routes={"app.tasks.enhancement_tasks.*": {"queue": ENHANCEMENT_QUEUE}},
    task_default_queue=ENHANCEMENT_QUEUE,
    task_acks_late=True,
    task_reject_on_worker_lost=False,
    task_time_limit=15 * 60,
    task_soft_time_limit=12 * 60,
    result_expires=settings.ENHANCEMENT_JOB_TTL_DAYS * 24 * 60 * 60,
    task_always_eager=settings.CELERY_TASK_ALWAYS_EAGER,
    task_eager_propagates=True,
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=200,
)
