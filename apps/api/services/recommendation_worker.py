"""
Recommendation Worker — turns one Activity Fact into one stored recommendation.

Per fact:
    Received → ModelInvoked{success|failure} → Parsed{structured|fallback}
             → Persisted|PersistFailed → Acknowledged

Non-negotiable rules:
- Every accepted fact yields a recommendation: generation or parse failure
  selects the deterministic fallback, never a rejection
- No retries within one delivery, no backoff
- Nothing raises out of process(): a persistence failure is logged and the
  result is dropped, so the caller can always acknowledge the message
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol

from core.exceptions import GenerationError, RecommendationParseError
from services.activity_fact import ActivityFact
from services.recommendation_generator import (
    RecommendationResult,
    build_fallback,
    build_prompt,
    parse_recommendation,
)

logger = logging.getLogger(__name__)


class TextGenerator(Protocol):
    def generate(self, prompt: str) -> str: ...


class RecommendationSink(Protocol):
    def put(self, result: RecommendationResult) -> None: ...


class ModelOutcome(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


class ParseOutcome(str, Enum):
    STRUCTURED = "structured"
    FALLBACK = "fallback"


@dataclass
class ProcessingResult:
    """Telemetry for one processed fact."""
    activity_id: str
    model: ModelOutcome
    parse: ParseOutcome
    persisted: bool
    recommendation: RecommendationResult
    error: Optional[str] = None


class RecommendationWorker:
    def __init__(self, generator: TextGenerator, store: RecommendationSink):
        self.generator = generator
        self.store = store

    def process(self, fact: ActivityFact) -> ProcessingResult:
        logger.info("Received activity for processing: %s", fact.id)
        error: Optional[str] = None

        prompt = build_prompt(fact)
        try:
            raw_text = self.generator.generate(prompt)
            model = ModelOutcome.SUCCESS
        except GenerationError as e:
            logger.warning("Generation failed for activity %s: %s", fact.id, e)
            raw_text, model, error = None, ModelOutcome.FAILURE, str(e)
        except Exception as e:
            logger.error("Unexpected generation error for activity %s: %s", fact.id, e, exc_info=True)
            raw_text, model, error = None, ModelOutcome.FAILURE, str(e)

        recommendation = None
        if raw_text is not None:
            try:
                recommendation = parse_recommendation(raw_text, fact)
            except RecommendationParseError as e:
                logger.warning(
                    "Unparsable model output for activity %s: %s. Raw: %s",
                    fact.id, e, raw_text[:200],
                )
                error = f"parse_failed: {e}"
            except Exception as e:
                logger.error("Unexpected parse error for activity %s: %s", fact.id, e, exc_info=True)
                error = f"parse_failed: {e}"

        if recommendation is None:
            recommendation = build_fallback(fact)
            parse = ParseOutcome.FALLBACK
        else:
            parse = ParseOutcome.STRUCTURED

        persisted = False
        try:
            self.store.put(recommendation)
            persisted = True
        except Exception as e:
            # The message is still acknowledged; this result is lost.
            logger.error(
                "Failed persisting recommendation activityId=%s error=%s", fact.id, e,
                exc_info=True,
            )
            error = f"persist_failed: {e}"

        logger.info(
            "Processed activity %s",
            fact.id,
            extra={
                "extra_fields": {
                    "activity_id": fact.id,
                    "user_id": fact.user_id,
                    "model": model.value,
                    "parse": parse.value,
                    "persisted": persisted,
                }
            },
        )
        return ProcessingResult(
            activity_id=fact.id,
            model=model,
            parse=parse,
            persisted=persisted,
            recommendation=recommendation,
            error=error,
        )
