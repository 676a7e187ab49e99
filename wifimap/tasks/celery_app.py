"""Celery application configuration."""

# Load environment variables first
from dotenv import load_dotenv
load_dotenv()

from celery import Celery
from celery.signals import setup_logging

from wifimap.core.config import settings
from wifimap.core.logging_config import configure_logging

# Create Celery app
celery_app = Celery(
    "wifimap",
    broker=settings.broker_url,
    backend=settings.REDIS_URL,
    include=[
        'wifimap.tasks.optimization_task',
    ]
)

# Configure Celery
celery_app.conf.update(
    # Serialization
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',

    # Timezone
    timezone='UTC',
    enable_utc=True,

    # Task tracking
    task_track_started=True,
    result_extended=True,

    # Timeouts
    task_time_limit=settings.CELERY_TASK_TIME_LIMIT,
    task_soft_time_limit=max(1, settings.CELERY_TASK_TIME_LIMIT - 30),

    # Worker settings
    worker_prefetch_multiplier=1,  # Placement searches are CPU heavy
    worker_max_tasks_per_child=50,

    # Task result expiration
    result_expires=86400,  # Results expire after 24 hours

    task_acks_late=True,
    task_reject_on_worker_lost=True,
)


@setup_logging.connect
def _configure_worker_logging(**kwargs):
    configure_logging()
