"""
Activities API Router

Stores activities for the caller identified by the X-User-ID header (set by
the identity filter) and announces each new activity on the broker.
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, Request, status
from sqlalchemy import desc
from sqlalchemy.orm import Session

from core.database import get_db
from core.exceptions import APIException, NotFoundError
from models import Activity
from schemas import ActivityCreate, ActivityResponse
from services.activity_events import ActivityEventPublisher
from services.activity_fact import ActivityFact

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/activities", tags=["activities"])


def get_publisher(request: Request) -> ActivityEventPublisher:
    return request.app.state.activity_publisher


def require_user_id(x_user_id: Optional[str] = Header(None, alias="X-User-ID")) -> str:
    if not x_user_id:
        raise APIException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing user identity",
            error_code="UNAUTHORIZED",
        )
    return x_user_id


@router.post("", response_model=ActivityResponse)
def create_activity(
    body: ActivityCreate,
    user_id: str = Depends(require_user_id),
    db: Session = Depends(get_db),
    publisher: ActivityEventPublisher = Depends(get_publisher),
):
    """
    Store an activity, then publish it for recommendation processing.

    The activity is committed before publishing; a publish failure is logged
    by the publisher and does not change this response.
    """
    activity = Activity(
        user_id=user_id,
        type=body.type.value,
        duration=body.duration,
        calories_burned=body.calories_burned,
        start_time=body.start_time,
        additional_metrics=dict(body.additional_metrics),
    )
    db.add(activity)
    db.commit()
    db.refresh(activity)

    if not publisher.publish(ActivityFact.from_model(activity)):
        logger.warning(f"Activity {activity.id} stored without a queued recommendation")

    return activity


@router.get("", response_model=List[ActivityResponse])
def list_activities(
    user_id: str = Depends(require_user_id),
    db: Session = Depends(get_db),
):
    """Caller's activities, newest first."""
    return (
        db.query(Activity)
        .filter(Activity.user_id == user_id)
        .order_by(desc(Activity.start_time))
        .all()
    )


@router.get("/{activity_id}", response_model=ActivityResponse)
def get_activity(activity_id: str, db: Session = Depends(get_db)):
    activity = db.get(Activity, activity_id)
    if activity is None:
        raise NotFoundError("Activity", activity_id)
    return activity
