from sqlalchemy import Boolean, Column, Integer, DateTime, JSON, Text, String, Index
from sqlalchemy.sql import func
from core.database import Base
import uuid


def _new_id() -> str:
    return str(uuid.uuid4())


class User(Base):
    __tablename__ = "app_user"

    id = Column(String(36), primary_key=True, default=_new_id)
    # Subject of the externally issued identity token. One user per subject.
    keycloak_id = Column(String(255), unique=True, nullable=True)
    email = Column(String(320), unique=True, nullable=False)
    password_hash = Column(Text, nullable=False)
    first_name = Column(Text, nullable=True)
    last_name = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


class Activity(Base):
    __tablename__ = "activity"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(255), nullable=False, index=True)
    type = Column(String(32), nullable=False)  # ActivityType value
    duration = Column(Integer, nullable=False)  # minutes
    calories_burned = Column(Integer, nullable=False)
    start_time = Column(DateTime(timezone=True), nullable=False)
    additional_metrics = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


class Recommendation(Base):
    __tablename__ = "recommendation"

    # One recommendation per activity; reprocessing replaces the row.
    activity_id = Column(String(36), primary_key=True)
    user_id = Column(String(255), nullable=False)
    activity_type = Column(String(32), nullable=False)
    analysis = Column(Text, nullable=False)
    improvements = Column(JSON, nullable=False, default=list)
    suggestions = Column(JSON, nullable=False, default=list)
    safety = Column(JSON, nullable=False, default=list)
    is_fallback = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_recommendation_user_created", "user_id", "created_at"),
    )
