"""Subscription API routes — billing state and payment-provider webhooks."""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from hub.database import get_db
from hub.schemas.subscription import SubscriptionCreate, ProviderEventIn, SubscriptionOut
from hub.services import subscription_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/", response_model=SubscriptionOut, status_code=status.HTTP_201_CREATED)
def subscribe(payload: SubscriptionCreate, db: Session = Depends(get_db)):
    return subscription_service.subscribe(db, payload.user_id, payload.plan, payload.provider_customer_id)


@router.get("/{subscription_id}", response_model=SubscriptionOut)
def get_subscription(subscription_id: str, db: Session = Depends(get_db)):
    return subscription_service.get_subscription(db, subscription_id)


@router.get("/by-user/{user_id}", response_model=SubscriptionOut)
def get_subscription_for_user(user_id: str, db: Session = Depends(get_db)):
    return subscription_service.get_subscription_for_user(db, user_id)


@router.post("/{subscription_id}/payment-succeeded", response_model=SubscriptionOut)
def payment_succeeded(
    subscription_id: str, amount_cents: Optional[int] = Query(None), db: Session = Depends(get_db),
):
    return subscription_service.record_payment_succeeded(db, subscription_id, amount_cents)


@router.post("/{subscription_id}/payment-failed", response_model=SubscriptionOut)
def payment_failed(
    subscription_id: str, amount_cents: Optional[int] = Query(None), db: Session = Depends(get_db),
):
    return subscription_service.record_payment_failed(db, subscription_id, amount_cents)


@router.post("/{subscription_id}/refund", response_model=SubscriptionOut)
def refund(subscription_id: str, amount_cents: Optional[int] = Query(None), db: Session = Depends(get_db)):
    return subscription_service.record_refund(db, subscription_id, amount_cents)


@router.post("/{subscription_id}/retry", response_model=SubscriptionOut)
def retry_payment(subscription_id: str, db: Session = Depends(get_db)):
    return subscription_service.retry_payment(db, subscription_id)


@router.post("/{subscription_id}/renewal-failed", response_model=SubscriptionOut)
def renewal_failed(subscription_id: str, db: Session = Depends(get_db)):
    return subscription_service.record_renewal_failed(db, subscription_id)


@router.post("/{subscription_id}/renew", response_model=SubscriptionOut)
def renew(subscription_id: str, db: Session = Depends(get_db)):
    return subscription_service.renew(db, subscription_id)


@router.post("/{subscription_id}/cancel", response_model=SubscriptionOut)
def cancel(subscription_id: str, db: Session = Depends(get_db)):
    """Cancel once; a second call answers 409 already_canceled."""
    return subscription_service.cancel(db, subscription_id)


@router.post("/provider-events", response_model=SubscriptionOut)
def provider_event(payload: ProviderEventIn, db: Session = Depends(get_db)):
    """Webhook entry point for the payment provider."""
    return subscription_service.apply_provider_event(
        db, payload.provider_customer_id, payload.kind, payload.amount_cents,
    )
