"""Subscription ORM model: one per user, kept after cancellation for billing history."""
import uuid
import enum
from sqlalchemy import Column, String, DateTime, JSON, ForeignKey, Enum as SAEnum
from sqlalchemy.sql import func
from hub.database import Base


class SubscriptionPlan(str, enum.Enum):
    FREE = "FREE"
    BASIC = "BASIC"
    PREMIUM = "PREMIUM"
    ENTERPRISE = "ENTERPRISE"


class PaymentStatus(str, enum.Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"
    CANCELED = "CANCELED"


# Price per billing period, in cents
PLAN_PRICES_CENTS = {
    SubscriptionPlan.FREE: 0,
    SubscriptionPlan.BASIC: 499,
    SubscriptionPlan.PREMIUM: 1499,
    SubscriptionPlan.ENTERPRISE: 9999,
}


class Subscription(Base):
    __tablename__ = "subscriptions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    plan = Column(SAEnum(SubscriptionPlan, name="subscription_plan"), nullable=False)
    payment_status = Column(
        SAEnum(PaymentStatus, name="payment_status"), nullable=False, default=PaymentStatus.PENDING,
    )
    last_renewal_date = Column(DateTime(timezone=True), nullable=True)
    next_renewal_date = Column(DateTime(timezone=True), nullable=True)
    # Append-only; entries are never edited once written
    billing_history = Column(JSON, nullable=False, default=list)
    provider_customer_id = Column(String(255), nullable=True, unique=True)
    canceled_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
