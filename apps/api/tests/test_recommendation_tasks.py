"""
Recommendation task and publisher tests.

Covers:
- Task decodes the fact, runs the worker, and never raises
- Malformed payloads are dropped
- Queue/exchange wiring on the Celery app
- Publisher: success, broker failure absorbed
"""
from unittest.mock import MagicMock, patch

from kombu.exceptions import OperationalError

from core.config import settings
from services.activity_events import ActivityEventPublisher
from services.recommendation_worker import RecommendationWorker
from tasks import celery_app, RECOMMENDATION_TASK
from tasks.recommendation_tasks import generate_recommendation_task
from tests.pipeline_helpers import FakeGenerator, InMemoryRecommendationStore, make_fact


class TestGenerateRecommendationTask:

    def test_valid_payload_is_processed(self, unavailable_generator):
        store = InMemoryRecommendationStore()
        worker = RecommendationWorker(unavailable_generator, store)

        with patch("tasks.recommendation_tasks.get_worker", return_value=worker):
            result = generate_recommendation_task(make_fact().to_message())

        assert result["status"] == "success"
        assert result["parse"] == "fallback"
        assert "a1" in store.rows

    def test_malformed_payload_is_dropped(self):
        worker = MagicMock()

        with patch("tasks.recommendation_tasks.get_worker", return_value=worker):
            result = generate_recommendation_task({"id": "a1"})

        assert result["status"] == "dropped"
        worker.process.assert_not_called()

    def test_non_object_payload_is_dropped(self):
        with patch("tasks.recommendation_tasks.get_worker") as get_worker:
            result = generate_recommendation_task("not a fact")

        assert result["status"] == "dropped"
        get_worker.assert_not_called()

    def test_worker_crash_does_not_raise(self):
        with patch("tasks.recommendation_tasks.get_worker", side_effect=RuntimeError("no database")):
            result = generate_recommendation_task(make_fact().to_message())

        assert result["status"] == "error"
        assert result["activity_id"] == "a1"

    def test_persist_failure_is_reported_not_raised(self):
        store = InMemoryRecommendationStore(fail_with=RuntimeError("database down"))
        worker = RecommendationWorker(FakeGenerator("{}"), store)

        with patch("tasks.recommendation_tasks.get_worker", return_value=worker):
            result = generate_recommendation_task(make_fact().to_message())

        assert result["status"] == "persist_failed"


class TestQueueWiring:

    def test_task_is_registered_with_late_ack(self):
        task = celery_app.tasks[RECOMMENDATION_TASK]
        assert task.acks_late is True

    def test_task_routes_to_activity_queue(self):
        route = celery_app.conf.task_routes[RECOMMENDATION_TASK]
        assert route["queue"] == settings.ACTIVITY_QUEUE
        assert route["exchange"] == settings.ACTIVITY_EXCHANGE
        assert route["routing_key"] == settings.ACTIVITY_ROUTING_KEY

    def test_single_fact_in_flight_per_worker(self):
        assert celery_app.conf.worker_prefetch_multiplier == 1
        assert celery_app.conf.worker_concurrency == 1

    def test_broker_connect_is_bounded(self):
        assert celery_app.conf.broker_connection_timeout == settings.BROKER_PUBLISH_TIMEOUT_S


class TestActivityEventPublisher:

    def _publisher(self, app) -> ActivityEventPublisher:
        return ActivityEventPublisher(
            celery_app=app,
            task_name=RECOMMENDATION_TASK,
            exchange="fitness.exchange",
            routing_key="activity.tracking",
        )

    def test_publish_sends_fact_to_exchange(self):
        app = MagicMock()
        fact = make_fact()

        assert self._publisher(app).publish(fact) is True

        app.send_task.assert_called_once_with(
            RECOMMENDATION_TASK,
            args=[fact.to_message()],
            exchange="fitness.exchange",
            routing_key="activity.tracking",
            retry=False,
        )

    def test_broker_failure_is_absorbed(self):
        app = MagicMock()
        app.send_task.side_effect = OperationalError("connection refused")

        assert self._publisher(app).publish(make_fact()) is False

    def test_serialization_failure_is_absorbed(self):
        app = MagicMock()
        app.send_task.side_effect = TypeError("Object of type set is not JSON serializable")

        assert self._publisher(app).publish(make_fact()) is False
