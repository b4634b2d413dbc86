"""
Recommendation persistence and queries.

One row per activity id; put() replaces whatever was there (last write wins).
"""
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from models import Recommendation
from services.activity_fact import ActivityType
from services.recommendation_generator import RecommendationResult


def _to_result(row: Recommendation) -> RecommendationResult:
    return RecommendationResult(
        activity_id=row.activity_id,
        user_id=row.user_id,
        activity_type=ActivityType.parse(row.activity_type),
        analysis=row.analysis,
        improvements=list(row.improvements or []),
        suggestions=list(row.suggestions or []),
        safety=list(row.safety or []),
        created_at=row.created_at,
        is_fallback=bool(row.is_fallback),
    )


class RecommendationStore:
    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def put(self, result: RecommendationResult) -> None:
        db = self._session_factory()
        try:
            row = Recommendation(
                activity_id=result.activity_id,
                user_id=result.user_id,
                activity_type=result.activity_type.value,
                analysis=result.analysis,
                improvements=list(result.improvements),
                suggestions=list(result.suggestions),
                safety=list(result.safety),
                created_at=result.created_at,
                is_fallback=result.is_fallback,
            )
            db.merge(row)
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def get(self, activity_id: str) -> Optional[RecommendationResult]:
        db = self._session_factory()
        try:
            row = db.get(Recommendation, activity_id)
            return _to_result(row) if row else None
        finally:
            db.close()

    def list_by_user(self, user_id: str) -> List[RecommendationResult]:
        """All recommendations for a user, newest first."""
        db = self._session_factory()
        try:
            rows = (
                db.query(Recommendation)
                .filter(Recommendation.user_id == user_id)
                .order_by(Recommendation.created_at.desc())
                .all()
            )
            return [_to_result(r) for r in rows]
        finally:
            db.close()
