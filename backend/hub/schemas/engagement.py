"""Pydantic schemas for likes, saves and counter reconciliation."""
from __future__ import annotations
from datetime import datetime
from typing import Any, Optional
from pydantic import BaseModel


class LikeIn(BaseModel):
    user_id: str
    is_external: bool = False


class ToggleIn(BaseModel):
    user_id: str


class ToggleOut(BaseModel):
    target_id: str
    changed: bool
    active: bool


class CounterCorrectionOut(BaseModel):
    event_id: str
    like_count_before: int
    like_count_after: int
    save_count_before: int
    save_count_after: int


class SavedPostOut(BaseModel):
    post_id: str
    saved_at: Optional[datetime] = None
    summary: Optional[dict[str, Any]] = None
