"""Pydantic schemas for subscriptions."""
from __future__ import annotations
from datetime import datetime
from typing import Any, Optional
from pydantic import BaseModel

from hub.models.subscription import SubscriptionPlan, PaymentStatus


class SubscriptionCreate(BaseModel):
    user_id: str
    plan: str
    provider_customer_id: Optional[str] = None


class ProviderEventIn(BaseModel):
    provider_customer_id: str
    kind: str  # payment_succeeded, payment_failed, payment_refunded
    amount_cents: Optional[int] = None


class SubscriptionOut(BaseModel):
    id: str
    user_id: str
    plan: SubscriptionPlan
    payment_status: PaymentStatus
    last_renewal_date: Optional[datetime] = None
    next_renewal_date: Optional[datetime] = None
    billing_history: list[dict[str, Any]] = []
    provider_customer_id: Optional[str] = None
    canceled_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}
