"""Engagement API routes — like/save toggles and counter maintenance."""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from hub.database import get_db
from hub.schemas.engagement import LikeIn, ToggleIn, ToggleOut, CounterCorrectionOut, SavedPostOut
from hub.services import engagement_service
from hub.services.document_store import DocumentStoreClient, get_document_store

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/events/{event_id}/like", response_model=ToggleOut)
def like_event(
    event_id: str,
    payload: LikeIn,
    db: Session = Depends(get_db),
    doc_store: DocumentStoreClient = Depends(get_document_store),
):
    changed = engagement_service.like_event(db, payload.user_id, event_id, payload.is_external, doc_store)
    return ToggleOut(target_id=event_id, changed=changed, active=True)


@router.delete("/events/{event_id}/like", response_model=ToggleOut)
def unlike_event(event_id: str, user_id: str = Query(...), db: Session = Depends(get_db)):
    changed = engagement_service.unlike_event(db, user_id, event_id)
    return ToggleOut(target_id=event_id, changed=changed, active=False)


@router.get("/events/{event_id}/like")
def is_liked(event_id: str, user_id: str = Query(...), db: Session = Depends(get_db)):
    return {"event_id": event_id, "user_id": user_id, "liked": engagement_service.is_liked(db, user_id, event_id)}


@router.post("/events/{event_id}/save", response_model=ToggleOut)
def save_event(event_id: str, payload: ToggleIn, db: Session = Depends(get_db)):
    changed = engagement_service.save_event(db, payload.user_id, event_id)
    return ToggleOut(target_id=event_id, changed=changed, active=True)


@router.delete("/events/{event_id}/save", response_model=ToggleOut)
def unsave_event(event_id: str, user_id: str = Query(...), db: Session = Depends(get_db)):
    changed = engagement_service.unsave_event(db, user_id, event_id)
    return ToggleOut(target_id=event_id, changed=changed, active=False)


@router.post("/posts/{post_id}/save", response_model=ToggleOut)
def save_post(
    post_id: str,
    payload: ToggleIn,
    db: Session = Depends(get_db),
    doc_store: DocumentStoreClient = Depends(get_document_store),
):
    changed = engagement_service.save_post(db, payload.user_id, post_id, doc_store)
    return ToggleOut(target_id=post_id, changed=changed, active=True)


@router.delete("/posts/{post_id}/save", response_model=ToggleOut)
def unsave_post(post_id: str, user_id: str = Query(...), db: Session = Depends(get_db)):
    changed = engagement_service.unsave_post(db, user_id, post_id)
    return ToggleOut(target_id=post_id, changed=changed, active=False)


@router.get("/users/{user_id}/saved-posts", response_model=list[SavedPostOut])
def list_saved_posts(
    user_id: str,
    db: Session = Depends(get_db),
    doc_store: DocumentStoreClient = Depends(get_document_store),
):
    """Saved posts with their document-store summaries."""
    return engagement_service.list_saved_posts(db, user_id, doc_store)


@router.post("/reconcile", response_model=list[CounterCorrectionOut])
def reconcile_counters(event_id: Optional[str] = Query(None), db: Session = Depends(get_db)):
    """Recount like/save counters from the join rows."""
    return [CounterCorrectionOut(**vars(c)) for c in engagement_service.reconcile_counters(db, event_id)]


@router.post("/prune")
def prune_dangling_targets(
    db: Session = Depends(get_db),
    doc_store: DocumentStoreClient = Depends(get_document_store),
):
    return engagement_service.prune_dangling_targets(db, doc_store)
