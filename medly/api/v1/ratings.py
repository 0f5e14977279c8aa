from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from medly.api.deps import get_store, unwrap
from medly.core.security import get_current_user
from medly.services import ratings as rating_service
from medly.store import EntityStore

router = APIRouter(tags=["Avaliacoes"])


@router.get("/ratings")
def list_ratings(
    scale_id: Optional[str] = Query(default=None),
    to_user_id: Optional[str] = Query(default=None),
    to_location_id: Optional[str] = Query(default=None),
    current_user: dict = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
):
    return {"items": rating_service.list_ratings(store, scale_id, to_user_id, to_location_id)}


@router.post("/ratings", status_code=status.HTTP_201_CREATED)
def create_rating(
    payload: dict,
    current_user: dict = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
):
    return unwrap(rating_service.create_rating(store, current_user, payload))
