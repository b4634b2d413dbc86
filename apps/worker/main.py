"""
Celery worker entry point.

Run one process per worker instance; each consumes the activity queue one
fact at a time:

    celery -A main worker --loglevel=INFO
"""
from celery.signals import setup_logging as celery_setup_logging

from core.logging import setup_logging
from tasks import celery_app  # noqa: F401


@celery_setup_logging.connect
def configure_logging(**kwargs):
    """Use the API's structured logging instead of Celery's defaults."""
    setup_logging()


# This makes Celery discover tasks
celery_app.autodiscover_tasks(["tasks"])
