"""
Recommendation Worker Tests

Organization:
    1. Structured path — parsed model output is stored
    2. Fallback path — generation or parse failure stores the fallback
    3. Persistence failure — logged, never raised
    4. Reprocessing — last write wins, one row per activity
"""
import json

from core.database import SessionLocal
from core.exceptions import GenerationError
from models import Recommendation
from services.recommendation_store import RecommendationStore
from services.recommendation_worker import ModelOutcome, ParseOutcome, RecommendationWorker
from tests.pipeline_helpers import FakeGenerator, InMemoryRecommendationStore, make_fact


MODEL_TEXT = "```json\n" + json.dumps({
    "analysis": "Even effort throughout.",
    "improvements": ["Lengthen the warm-up"],
    "suggestions": ["Easy 40 minute run tomorrow", "Hill repeats on Friday"],
    "safety": ["Stay hydrated"],
}) + "\n```"


# ===================================================================
# 1. STRUCTURED PATH
# ===================================================================

class TestStructuredPath:

    def test_parsed_response_is_persisted(self):
        store = InMemoryRecommendationStore()
        worker = RecommendationWorker(FakeGenerator(MODEL_TEXT), store)

        result = worker.process(make_fact())

        assert result.model is ModelOutcome.SUCCESS
        assert result.parse is ParseOutcome.STRUCTURED
        assert result.persisted is True
        stored = store.rows["a1"]
        assert stored.analysis == "Even effort throughout."
        assert stored.suggestions == ["Easy 40 minute run tomorrow", "Hill repeats on Friday"]

    def test_prompt_describes_the_fact(self):
        generator = FakeGenerator(MODEL_TEXT)
        RecommendationWorker(generator, InMemoryRecommendationStore()).process(
            make_fact(additional_metrics={"maxHeartRate": 181})
        )

        assert len(generator.prompts) == 1
        assert "maxHeartRate=181" in generator.prompts[0]


# ===================================================================
# 2. FALLBACK PATH
# ===================================================================

class TestFallbackPath:

    def test_malformed_model_text_stores_fallback(self):
        store = InMemoryRecommendationStore()
        worker = RecommendationWorker(FakeGenerator("I think you did great!"), store)

        result = worker.process(make_fact(id="a1", user_id="u1", duration=30, calories_burned=300))

        assert result.model is ModelOutcome.SUCCESS
        assert result.parse is ParseOutcome.FALLBACK
        stored = store.rows["a1"]
        assert stored.analysis
        assert stored.improvements == []
        assert stored.suggestions == []
        assert stored.safety == []

    def test_generation_failure_stores_fallback(self, unavailable_generator):
        store = InMemoryRecommendationStore()

        result = RecommendationWorker(unavailable_generator, store).process(make_fact())

        assert result.model is ModelOutcome.FAILURE
        assert result.parse is ParseOutcome.FALLBACK
        assert result.persisted is True
        assert store.rows["a1"].is_fallback is True

    def test_unexpected_generator_exception_stores_fallback(self):
        store = InMemoryRecommendationStore()

        result = RecommendationWorker(FakeGenerator(KeyError("candidates")), store).process(make_fact())

        assert result.model is ModelOutcome.FAILURE
        assert "a1" in store.rows

    def test_non_text_model_output_stores_fallback(self):
        store = InMemoryRecommendationStore()

        result = RecommendationWorker(FakeGenerator({"analysis": "not a string"}), store).process(make_fact())

        assert result.model is ModelOutcome.SUCCESS
        assert result.parse is ParseOutcome.FALLBACK
        assert store.rows["a1"].is_fallback is True


# ===================================================================
# 3. PERSISTENCE FAILURE
# ===================================================================

class TestPersistenceFailure:

    def test_persist_failure_is_swallowed(self):
        store = InMemoryRecommendationStore(fail_with=RuntimeError("database down"))

        result = RecommendationWorker(FakeGenerator(MODEL_TEXT), store).process(make_fact())

        assert result.persisted is False
        assert "persist_failed" in result.error
        assert len(store.put_calls) == 1


# ===================================================================
# 4. REPROCESSING
# ===================================================================

class TestReprocessing:

    def test_fallback_twice_is_idempotent(self, unavailable_generator):
        store = InMemoryRecommendationStore()
        worker = RecommendationWorker(unavailable_generator, store)
        fact = make_fact()

        worker.process(fact)
        worker.process(fact)

        assert len(store.put_calls) == 2
        first, second = store.put_calls
        assert (first.analysis, first.improvements, first.suggestions, first.safety) == (
            second.analysis, second.improvements, second.suggestions, second.safety
        )
        assert store.rows["a1"].analysis == first.analysis

    def test_reprocessing_replaces_stored_row(self, db_session):
        store = RecommendationStore(SessionLocal)
        fact = make_fact()

        RecommendationWorker(FakeGenerator(GenerationError("down")), store).process(fact)
        assert store.get("a1").is_fallback is True
        RecommendationWorker(FakeGenerator(MODEL_TEXT), store).process(fact)
        assert store.get("a1").is_fallback is False

        rows = db_session.query(Recommendation).filter(Recommendation.activity_id == "a1").all()
        assert len(rows) == 1
        assert rows[0].analysis == "Even effort throughout."
        assert rows[0].safety == ["Stay hydrated"]

    def test_every_fact_gets_exactly_one_recommendation(self, db_session):
        store = RecommendationStore(SessionLocal)
        worker = RecommendationWorker(FakeGenerator(MODEL_TEXT, "garbage", GenerationError("down")), store)

        for activity_id in ("a1", "a2", "a3"):
            worker.process(make_fact(id=activity_id))

        for activity_id in ("a1", "a2", "a3"):
            assert store.get(activity_id) is not None
        assert db_session.query(Recommendation).count() == 3
