"""
Recommendations API Router

Read-only access to recommendations written by the worker.
"""
from typing import List

from fastapi import APIRouter, Depends, Request

from core.exceptions import NotFoundError
from schemas import RecommendationResponse
from services.recommendation_store import RecommendationStore

router = APIRouter(prefix="/api/recommendations", tags=["recommendations"])


def get_recommendation_store(request: Request) -> RecommendationStore:
    return request.app.state.recommendation_store


@router.get("/user/{user_id}", response_model=List[RecommendationResponse])
def get_user_recommendations(
    user_id: str,
    store: RecommendationStore = Depends(get_recommendation_store),
):
    return store.list_by_user(user_id)


@router.get("/activity/{activity_id}", response_model=RecommendationResponse)
def get_activity_recommendation(
    activity_id: str,
    store: RecommendationStore = Depends(get_recommendation_store),
):
    recommendation = store.get(activity_id)
    if recommendation is None:
        raise NotFoundError("Recommendation", activity_id)
    return recommendation
