"""
Activity Event Publisher.

After an activity is stored, announce it on the broker so the
recommendation worker can pick it up. Best-effort: a failed publish is
logged and reported as False, never raised to the request path.
The broker connect timeout (BROKER_PUBLISH_TIMEOUT_S) is applied on the
Celery app, and publishing never retries.
"""
import logging
from typing import Any

from services.activity_fact import ActivityFact

logger = logging.getLogger(__name__)


class ActivityEventPublisher:
    def __init__(
        self,
        celery_app: Any,
        task_name: str,
        exchange: str,
        routing_key: str,
    ):
        self.celery_app = celery_app
        self.task_name = task_name
        self.exchange = exchange
        self.routing_key = routing_key

    @classmethod
    def from_settings(cls) -> "ActivityEventPublisher":
        from core.config import settings
        from tasks import celery_app, RECOMMENDATION_TASK

        return cls(
            celery_app=celery_app,
            task_name=RECOMMENDATION_TASK,
            exchange=settings.ACTIVITY_EXCHANGE,
            routing_key=settings.ACTIVITY_ROUTING_KEY,
        )

    def publish(self, fact: ActivityFact) -> bool:
        try:
            self.celery_app.send_task(
                self.task_name,
                args=[fact.to_message()],
                exchange=self.exchange,
                routing_key=self.routing_key,
                retry=False,
            )
        except Exception as e:
            logger.error(
                f"Failed to publish activity {fact.id} to {self.exchange}/{self.routing_key}: {e}",
                extra={"extra_fields": {"activity_id": fact.id, "error": str(e)}},
            )
            return False

        logger.info(f"Published activity {fact.id} for recommendation processing")
        return True
