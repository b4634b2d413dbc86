"""Recommendation Generator — prompt, parse, and fallback for activity recommendations.

Turns an ActivityFact into a prompt for the generation model and turns the
model's text back into a structured recommendation.

Architecture:
- Deterministic prompt: same fact → byte-identical prompt
- Tolerant parser: surrounding prose, markdown fences, and missing optional
  sections are accepted; only "no usable JSON at all" is a parse failure
- Deterministic fallback: activity-kind-aware analysis, empty lists

Rules:
- Section order in the model output is preserved in the stored lists
- The parser never invents content; absent sections become empty
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from core.exceptions import RecommendationParseError
from services.activity_fact import ActivityFact, ActivityType

logger = logging.getLogger(__name__)

SECTIONS = ("analysis", "improvements", "suggestions", "safety")


@dataclass
class RecommendationResult:
    activity_id: str
    user_id: str
    activity_type: ActivityType
    analysis: str
    improvements: List[str] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)
    safety: List[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    is_fallback: bool = False


# ---------------------------------------------------------------------------
# Prompt builder
# ---------------------------------------------------------------------------

RESPONSE_FORMAT = """{
  "analysis": {
    "overall": "Overall analysis here",
    "pace": "Pace analysis here",
    "heartRate": "Heart rate analysis here",
    "caloriesBurned": "Calories analysis here"
  },
  "improvements": [
    {"area": "Area name", "recommendation": "Detailed recommendation"}
  ],
  "suggestions": [
    {"workout": "Workout name", "description": "Detailed workout description"}
  ],
  "safety": [
    "Safety point 1",
    "Safety point 2"
  ]
}"""


def _format_metrics(metrics: Dict[str, float]) -> str:
    if not metrics:
        return "none"
    return ", ".join(f"{name}={metrics[name]}" for name in sorted(metrics))


def build_prompt(fact: ActivityFact) -> str:
    """Build the generation prompt for one activity."""
    lines = [
        "Analyze this fitness activity and provide detailed recommendations "
        "in the following EXACT JSON format:",
        RESPONSE_FORMAT,
        "",
        "Analyze this activity:",
        f"Activity Type: {fact.type.value}",
        f"Duration: {fact.duration} minutes",
        f"Calories Burned: {fact.calories_burned}",
        f"Additional Metrics: {_format_metrics(fact.additional_metrics)}",
        "",
        "Provide detailed analysis focusing on performance, improvements, "
        "next workout suggestions, and safety guidelines.",
        "Ensure the response follows the EXACT JSON format shown above.",
    ]
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Parse model output
# ---------------------------------------------------------------------------

_ANALYSIS_PARTS = (
    ("overall", "Overall"),
    ("pace", "Pace"),
    ("heartRate", "Heart Rate"),
    ("caloriesBurned", "Calories"),
)

_ITEM_PAIRS = (
    ("area", "recommendation"),
    ("workout", "description"),
)


def _strip_fences(text: str) -> str:
    """Drop markdown code-fence lines (```json, ```)."""
    if "```" not in text:
        return text
    lines = [l for l in text.split("\n") if not l.strip().startswith("```")]
    return "\n".join(lines)


def _extract_json_object(text: str) -> Dict[str, Any]:
    """Extract the first JSON object from model output."""
    if not text or not text.strip():
        raise RecommendationParseError("Empty model response")

    cleaned = _strip_fences(text.strip()).strip()

    # Fast path: direct JSON
    try:
        parsed = json.loads(cleaned)
        if isinstance(parsed, dict):
            return parsed
    except json.JSONDecodeError:
        pass

    # Fallback: scan for the first decodable {...} block
    decoder = json.JSONDecoder()
    start = cleaned.find("{")
    while start != -1:
        try:
            parsed, _ = decoder.raw_decode(cleaned, start)
        except json.JSONDecodeError:
            start = cleaned.find("{", start + 1)
            continue
        if isinstance(parsed, dict):
            return parsed
        start = cleaned.find("{", start + 1)

    raise RecommendationParseError("No JSON object found in model response")


def _coerce_analysis(raw: Any) -> str:
    if raw is None:
        return ""
    if isinstance(raw, str):
        return raw.strip()
    if isinstance(raw, dict):
        paragraphs = []
        for key, label in _ANALYSIS_PARTS:
            value = raw.get(key)
            if isinstance(value, str) and value.strip():
                paragraphs.append(f"{label}: {value.strip()}")
        return "\n\n".join(paragraphs)
    raise RecommendationParseError(f"Unsupported analysis type: {type(raw).__name__}")


def _coerce_item(item: Any) -> Optional[str]:
    if isinstance(item, str):
        return item.strip() or None
    if isinstance(item, dict):
        for title_key, body_key in _ITEM_PAIRS:
            title = item.get(title_key)
            body = item.get(body_key)
            if isinstance(title, str) and isinstance(body, str):
                return f"{title.strip()}: {body.strip()}"
            if isinstance(body, str) and body.strip():
                return body.strip()
        return None
    if isinstance(item, (int, float)) and not isinstance(item, bool):
        return str(item)
    return None


def _coerce_list(raw: Any, section: str) -> List[str]:
    if raw is None:
        return []
    if isinstance(raw, str):
        return [raw.strip()] if raw.strip() else []
    if not isinstance(raw, list):
        raise RecommendationParseError(f"Section '{section}' is not a list")
    items = []
    for item in raw:
        text = _coerce_item(item)
        if text is None:
            logger.debug("Dropping unusable %s entry: %r", section, item)
            continue
        items.append(text)
    return items


def parse_recommendation(raw_text: str, fact: ActivityFact) -> RecommendationResult:
    """
    Parse model output into a RecommendationResult.

    Raises RecommendationParseError when no JSON object can be found or the
    object carries none of the four sections.
    """
    data = _extract_json_object(raw_text)

    if not any(section in data for section in SECTIONS):
        raise RecommendationParseError(
            f"Model response has none of the sections {SECTIONS}; keys={sorted(data)[:10]}"
        )

    return RecommendationResult(
        activity_id=fact.id,
        user_id=fact.user_id,
        activity_type=fact.type,
        analysis=_coerce_analysis(data.get("analysis")),
        improvements=_coerce_list(data.get("improvements"), "improvements"),
        suggestions=_coerce_list(data.get("suggestions"), "suggestions"),
        safety=_coerce_list(data.get("safety"), "safety"),
    )


# ---------------------------------------------------------------------------
# Fallback
# ---------------------------------------------------------------------------

_FALLBACK_FOCUS = {
    ActivityType.RUNNING: "Keep most runs at a conversational pace and build weekly distance gradually.",
    ActivityType.WALKING: "Regular brisk walks build aerobic base; add a little distance or incline over time.",
    ActivityType.CYCLING: "Keep a steady cadence and vary terrain to build endurance and leg strength.",
    ActivityType.SWIMMING: "Focus on relaxed breathing and consistent stroke technique across sets.",
    ActivityType.WEIGHT_TRAINING: "Prioritize controlled form and progress load in small steps between sessions.",
    ActivityType.YOGA: "Hold poses with steady breathing and work within a comfortable range of motion.",
    ActivityType.HIIT: "Balance hard intervals with full recovery and allow rest days between sessions.",
    ActivityType.CARDIO: "Mix steady sessions with occasional harder efforts to build fitness.",
    ActivityType.STRETCHING: "Stretch warm muscles and hold each position without bouncing.",
    ActivityType.OTHER: "Stay consistent and increase training load gradually.",
}


def build_fallback(fact: ActivityFact) -> RecommendationResult:
    """Deterministic recommendation used when generation or parsing fails."""
    analysis = (
        f"Unable to generate a detailed analysis for this {fact.type.label} session "
        f"({fact.duration} minutes, {fact.calories_burned} calories). "
        f"{_FALLBACK_FOCUS[fact.type]}"
    )
    return RecommendationResult(
        activity_id=fact.id,
        user_id=fact.user_id,
        activity_type=fact.type,
        analysis=analysis,
        is_fallback=True,
    )
