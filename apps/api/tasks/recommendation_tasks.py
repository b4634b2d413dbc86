"""
Celery task that consumes activity facts and stores recommendations.

Task contract:
- One fact per invocation, bound to the activity queue
- Malformed payloads are logged and dropped
- Never raises: the message is acknowledged after every outcome
- No retries, no dead-letter path
"""
import logging
from typing import Any, Dict, Optional

from celery import Task

from tasks import celery_app, RECOMMENDATION_TASK
from services.activity_fact import ActivityFact
from services.recommendation_worker import RecommendationWorker

logger = logging.getLogger(__name__)

_worker: Optional[RecommendationWorker] = None


def get_worker() -> RecommendationWorker:
    """Assemble the worker's collaborators once per process."""
    global _worker
    if _worker is None:
        from core.database import SessionLocal
        from services.generation_client import GeminiClient
        from services.recommendation_store import RecommendationStore

        _worker = RecommendationWorker(
            generator=GeminiClient.from_settings(),
            store=RecommendationStore(SessionLocal),
        )
    return _worker


@celery_app.task(name=RECOMMENDATION_TASK, bind=True, acks_late=True, ignore_result=True)
def generate_recommendation_task(self: Task, payload: Any) -> Dict:
    """Process one activity fact from the queue."""
    try:
        fact = ActivityFact.from_message(payload)
    except (ValueError, TypeError) as e:
        logger.error(f"Dropping malformed activity fact: {e}")
        return {"status": "dropped", "error": str(e)}

    try:
        result = get_worker().process(fact)
    except Exception as e:
        logger.error(f"Failed processing activityId={fact.id} error={e}", exc_info=True)
        return {"status": "error", "activity_id": fact.id, "error": str(e)}

    return {
        "status": "success" if result.persisted else "persist_failed",
        "activity_id": fact.id,
        "model": result.model.value,
        "parse": result.parse.value,
    }
