"""Subscription & billing state.

payment_status machine:

    PENDING   -> COMPLETED | FAILED
    COMPLETED -> REFUNDED | CANCELED
    FAILED    -> PENDING | CANCELED

Every transition appends one entry to billing_history and queues a
notification linked to the subscription, in the same commit. History entries
are never edited: the column is only ever replaced by a longer list with the
same prefix.
"""
import logging
from datetime import timedelta
from typing import Any, Optional, Union

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from hub.config import settings
from hub.core.clock import as_utc, utcnow
from hub.core.errors import AlreadyCanceled, ConflictError, InvalidTransition, NotFound, ValidationError
from hub.core.validation import coerce_enum
from hub.models.notification import NotificationChannel, NotificationPriority, NotificationType
from hub.models.subscription import Subscription, SubscriptionPlan, PaymentStatus, PLAN_PRICES_CENTS
from hub.services import notification_service
from hub.services.identity_service import require_usable_user
from hub.services.notification_service import LinkedEntity

logger = logging.getLogger(__name__)

_TRANSITIONS: dict[PaymentStatus, set[PaymentStatus]] = {
    PaymentStatus.PENDING: {PaymentStatus.COMPLETED, PaymentStatus.FAILED},
    PaymentStatus.COMPLETED: {PaymentStatus.REFUNDED, PaymentStatus.CANCELED},
    PaymentStatus.FAILED: {PaymentStatus.PENDING, PaymentStatus.CANCELED},
    PaymentStatus.REFUNDED: set(),
    PaymentStatus.CANCELED: set(),
}

_PROVIDER_EVENT_KINDS = ("payment_succeeded", "payment_failed", "payment_refunded")


def _billing_period() -> timedelta:
    return timedelta(days=settings.SUBSCRIPTION_PERIOD_DAYS)


def _append_history(sub: Subscription, kind: str, amount_cents: Optional[int] = None) -> dict[str, Any]:
    entry = {
        "at": utcnow().isoformat(),
        "kind": kind,
        "status": sub.payment_status.value,
        "plan": sub.plan.value,
        "amount_cents": amount_cents,
    }
    # New list object so the JSON column is flagged dirty
    sub.billing_history = [*(sub.billing_history or []), entry]
    return entry


def _notify(
    db: Session,
    sub: Subscription,
    type: NotificationType,
    message: str,
    priority: NotificationPriority = NotificationPriority.NORMAL,
) -> None:
    notification_service.notify(
        db,
        sub.user_id,
        type,
        NotificationChannel.EMAIL,
        {
            "message": message,
            "data": {"subscription_id": sub.id, "plan": sub.plan.value, "payment_status": sub.payment_status.value},
        },
        linked_entity=LinkedEntity.subscription(sub.id),
        priority=priority,
        commit=False,
    )


def _move(sub: Subscription, target: PaymentStatus) -> None:
    if target not in _TRANSITIONS[sub.payment_status]:
        raise InvalidTransition(
            f"Cannot move payment status from {sub.payment_status.value} to {target.value}",
            subscription_id=sub.id, from_status=sub.payment_status.value, to_status=target.value,
        )
    sub.payment_status = target


def get_subscription(db: Session, subscription_id: str, lock: bool = False) -> Subscription:
    query = db.query(Subscription).filter(Subscription.id == subscription_id)
    if lock:
        query = query.with_for_update()
    sub = query.first()
    if sub is None:
        raise NotFound(f"Subscription not found: {subscription_id}", subscription_id=subscription_id)
    return sub


def get_subscription_for_user(db: Session, user_id: str) -> Subscription:
    sub = db.query(Subscription).filter(Subscription.user_id == user_id).first()
    if sub is None:
        raise NotFound(f"User {user_id} has no subscription", user_id=user_id)
    return sub


def subscribe(
    db: Session,
    user_id: str,
    plan: Union[SubscriptionPlan, str],
    provider_customer_id: Optional[str] = None,
) -> Subscription:
    """Open the user's subscription in PENDING, awaiting the first payment."""
    plan = coerce_enum(SubscriptionPlan, plan, "plan")
    require_usable_user(db, user_id)
    if db.query(Subscription.id).filter(Subscription.user_id == user_id).first():
        raise ConflictError(f"User {user_id} already has a subscription", user_id=user_id)

    sub = Subscription(
        user_id=user_id,
        plan=plan,
        payment_status=PaymentStatus.PENDING,
        provider_customer_id=provider_customer_id,
        billing_history=[],
    )
    _append_history(sub, "subscribed", PLAN_PRICES_CENTS[plan])
    db.add(sub)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError(
            "Subscription already exists for this user or provider customer",
            user_id=user_id, provider_customer_id=provider_customer_id,
        ) from exc
    db.refresh(sub)
    logger.info("User %s subscribed to %s (%s)", user_id, plan.value, sub.id)
    return sub


def record_payment_succeeded(db: Session, subscription_id: str, amount_cents: Optional[int] = None) -> Subscription:
    """PENDING -> COMPLETED. Starts the first billing period."""
    sub = get_subscription(db, subscription_id, lock=True)
    _move(sub, PaymentStatus.COMPLETED)
    now = utcnow()
    sub.last_renewal_date = now
    sub.next_renewal_date = now + _billing_period()
    _append_history(sub, "payment_succeeded", amount_cents if amount_cents is not None else PLAN_PRICES_CENTS[sub.plan])
    _notify(db, sub, NotificationType.PAYMENT_SUCCESS, f"Payment received for your {sub.plan.value} plan")
    db.commit()
    db.refresh(sub)
    logger.info("Payment succeeded for subscription %s", subscription_id)
    return sub


def record_payment_failed(db: Session, subscription_id: str, amount_cents: Optional[int] = None) -> Subscription:
    """PENDING -> FAILED."""
    sub = get_subscription(db, subscription_id, lock=True)
    _move(sub, PaymentStatus.FAILED)
    _append_history(sub, "payment_failed", amount_cents)
    _notify(
        db, sub, NotificationType.PAYMENT_FAILED,
        f"Payment for your {sub.plan.value} plan failed", NotificationPriority.HIGH,
    )
    db.commit()
    db.refresh(sub)
    logger.warning("Payment failed for subscription %s", subscription_id)
    return sub


def record_refund(db: Session, subscription_id: str, amount_cents: Optional[int] = None) -> Subscription:
    """COMPLETED -> REFUNDED."""
    sub = get_subscription(db, subscription_id, lock=True)
    _move(sub, PaymentStatus.REFUNDED)
    sub.next_renewal_date = None
    _append_history(sub, "payment_refunded", amount_cents)
    _notify(db, sub, NotificationType.PAYMENT_REFUNDED, f"Your {sub.plan.value} payment was refunded")
    db.commit()
    db.refresh(sub)
    logger.info("Refund recorded for subscription %s", subscription_id)
    return sub


def retry_payment(db: Session, subscription_id: str) -> Subscription:
    """FAILED -> PENDING, ahead of another charge attempt."""
    sub = get_subscription(db, subscription_id, lock=True)
    _move(sub, PaymentStatus.PENDING)
    _append_history(sub, "payment_retry")
    db.commit()
    db.refresh(sub)
    logger.info("Retrying payment for subscription %s", subscription_id)
    return sub


def record_renewal_failed(db: Session, subscription_id: str) -> Subscription:
    """COMPLETED | FAILED -> CANCELED: the renewal charge could not be collected."""
    sub = get_subscription(db, subscription_id, lock=True)
    if sub.payment_status == PaymentStatus.CANCELED:
        raise AlreadyCanceled(f"Subscription {subscription_id} is already canceled", subscription_id=subscription_id)
    if sub.payment_status not in (PaymentStatus.COMPLETED, PaymentStatus.FAILED):
        raise InvalidTransition(
            f"Renewal failure applies to COMPLETED or FAILED subscriptions, not {sub.payment_status.value}",
            subscription_id=subscription_id,
        )
    _move(sub, PaymentStatus.CANCELED)
    sub.canceled_at = utcnow()
    sub.next_renewal_date = None
    _append_history(sub, "renewal_failed")
    _notify(
        db, sub, NotificationType.SUBSCRIPTION_CANCELED,
        f"Your {sub.plan.value} plan was canceled after a failed renewal", NotificationPriority.HIGH,
    )
    db.commit()
    db.refresh(sub)
    logger.warning("Subscription %s canceled after failed renewal", subscription_id)
    return sub


def renew(db: Session, subscription_id: str) -> Subscription:
    """Roll a COMPLETED subscription into its next billing period."""
    sub = get_subscription(db, subscription_id, lock=True)
    if sub.payment_status != PaymentStatus.COMPLETED:
        raise InvalidTransition(
            f"Only COMPLETED subscriptions renew, this one is {sub.payment_status.value}",
            subscription_id=subscription_id,
        )
    now = utcnow()
    anchor = as_utc(sub.next_renewal_date) if sub.next_renewal_date is not None else now
    sub.last_renewal_date = now
    sub.next_renewal_date = anchor + _billing_period()
    _append_history(sub, "renewed", PLAN_PRICES_CENTS[sub.plan])
    _notify(
        db, sub, NotificationType.SUBSCRIPTION_RENEWAL,
        f"Your {sub.plan.value} plan renewed until {sub.next_renewal_date.date().isoformat()}",
    )
    db.commit()
    db.refresh(sub)
    logger.info("Renewed subscription %s until %s", subscription_id, sub.next_renewal_date)
    return sub


def cancel(db: Session, subscription_id: str) -> Subscription:
    """Cancel a paid subscription. The record and its history are kept."""
    sub = get_subscription(db, subscription_id, lock=True)
    if sub.canceled_at is not None or sub.payment_status == PaymentStatus.CANCELED:
        raise AlreadyCanceled(f"Subscription {subscription_id} is already canceled", subscription_id=subscription_id)
    _move(sub, PaymentStatus.CANCELED)
    sub.canceled_at = utcnow()
    sub.next_renewal_date = None
    _append_history(sub, "canceled")
    _notify(db, sub, NotificationType.SUBSCRIPTION_CANCELED, f"Your {sub.plan.value} plan was canceled")
    db.commit()
    db.refresh(sub)
    logger.info("Canceled subscription %s", subscription_id)
    return sub


def apply_provider_event(
    db: Session, provider_customer_id: str, kind: str, amount_cents: Optional[int] = None,
) -> Subscription:
    """Route a payment-provider webhook onto the matching transition."""
    if kind not in _PROVIDER_EVENT_KINDS:
        raise ValidationError(
            f"Unknown provider event kind: {kind}", field="kind", allowed=list(_PROVIDER_EVENT_KINDS),
        )
    sub = db.query(Subscription).filter(Subscription.provider_customer_id == provider_customer_id).first()
    if sub is None:
        raise NotFound(
            f"No subscription for provider customer {provider_customer_id}",
            provider_customer_id=provider_customer_id,
        )
    logger.info("Provider event %s for subscription %s", kind, sub.id)
    if kind == "payment_succeeded":
        return record_payment_succeeded(db, sub.id, amount_cents)
    if kind == "payment_failed":
        if sub.payment_status == PaymentStatus.COMPLETED:
            # A failed charge on a paid-up subscription is a failed renewal
            return record_renewal_failed(db, sub.id)
        return record_payment_failed(db, sub.id, amount_cents)
    return record_refund(db, sub.id, amount_cents)
