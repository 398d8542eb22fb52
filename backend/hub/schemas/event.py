"""Pydantic schemas for Events."""
from __future__ import annotations
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, field_validator

from hub.models.event import EventStatus


class EventCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    start_date: datetime
    end_date: datetime
    description: Optional[str] = None
    category: Optional[str] = None
    location: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    capacity: Optional[int] = None
    is_public: bool = True
    tags: list[str] = []


class EventUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    location: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    capacity: Optional[int] = None
    is_public: Optional[bool] = None
    tags: Optional[list[str]] = None


class EventStatusChange(BaseModel):
    status: EventStatus
    reason: Optional[str] = None


class EventOut(BaseModel):
    id: str
    creator_id: Optional[str] = None
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    location: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    start_date: datetime
    end_date: datetime
    capacity: Optional[int] = None
    is_public: bool
    tags: list[str] = []
    status: EventStatus
    like_count: int
    save_count: int
    activated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    canceled_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}

    @field_validator("tags", mode="before")
    @classmethod
    def _listify_tags(cls, v):
        # ORM hands back an association proxy, not a list
        return list(v) if v is not None else []
