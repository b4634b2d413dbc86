"""
Celery tasks for background processing.

Tasks are defined here and imported by both the API (to publish) and
the worker (to execute). Activity facts travel over a direct exchange
to a single queue; every worker instance consumes that queue.
"""
from celery import Celery
from kombu import Exchange, Queue
from core.config import settings

RECOMMENDATION_TASK = "tasks.generate_recommendation"

activity_exchange = Exchange(settings.ACTIVITY_EXCHANGE, type="direct", durable=True)
activity_queue = Queue(
    settings.ACTIVITY_QUEUE,
    exchange=activity_exchange,
    routing_key=settings.ACTIVITY_ROUTING_KEY,
    durable=True,
)

# Create Celery app instance
celery_app = Celery(
    "fitness_recommendations",
    broker=settings.CELERY_BROKER_URL,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    task_ignore_result=True,
    task_queues=(activity_queue,),
    task_default_queue=settings.ACTIVITY_QUEUE,
    task_routes={
        RECOMMENDATION_TASK: {
            "queue": settings.ACTIVITY_QUEUE,
            "exchange": settings.ACTIVITY_EXCHANGE,
            "routing_key": settings.ACTIVITY_ROUTING_KEY,
        },
    },
    # Ack after the task body returns; the body never raises.
    task_acks_late=True,
    task_reject_on_worker_lost=False,
    # One in-flight fact per worker instance; scale by running more workers.
    worker_prefetch_multiplier=1,
    worker_concurrency=1,
    # Bounded broker connect so publishing cannot stall the API.
    broker_connection_timeout=settings.BROKER_PUBLISH_TIMEOUT_S,
    broker_connection_retry_on_startup=True,
    task_soft_time_limit=int(settings.GENERATION_TIMEOUT_S) + 30,
    task_time_limit=int(settings.GENERATION_TIMEOUT_S) + 60,
)

# Import tasks to register them
from . import recommendation_tasks  # noqa: E402

__all__ = ["celery_app", "RECOMMENDATION_TASK"]
