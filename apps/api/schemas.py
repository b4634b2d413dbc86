from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import Optional, List, Dict

from services.activity_fact import ActivityType


class RegisterRequest(BaseModel):
    keycloak_id: Optional[str] = None
    email: str
    password: str = Field(min_length=6)
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class UserResponse(BaseModel):
    id: str
    keycloak_id: Optional[str] = None
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ActivityCreate(BaseModel):
    type: ActivityType
    duration: int = Field(ge=0, description="Duration in minutes")
    calories_burned: int = Field(ge=0)
    start_time: datetime
    additional_metrics: Dict[str, float] = Field(default_factory=dict)


class ActivityResponse(BaseModel):
    id: str
    user_id: str
    type: ActivityType
    duration: int
    calories_burned: int
    start_time: datetime
    additional_metrics: Dict[str, float]
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RecommendationResponse(BaseModel):
    activity_id: str
    user_id: str
    activity_type: ActivityType
    analysis: str
    improvements: List[str]
    suggestions: List[str]
    safety: List[str]
    created_at: datetime
    is_fallback: bool = False

    model_config = ConfigDict(from_attributes=True)
