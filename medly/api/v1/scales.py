from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from medly.api.deps import get_store, unwrap
from medly.core.security import get_current_user, require_permission
from medly.schemas import CancelPayload, TransferPayload
from medly.services import scales as scale_service
from medly.services.candidatures import list_candidatures
from medly.services.records import hard_delete_record
from medly.store import SCALES, EntityStore

router = APIRouter(tags=["Escalas"])


def _with_deadlines(scale: dict) -> dict:
    return {
        **scale,
        "days_until": scale_service.days_until(scale),
        "free_cancellation": scale_service.is_free_cancellation(scale),
        "can_transfer": scale_service.can_transfer(scale),
        "duration_hours": scale_service.scale_duration(scale).total_seconds() / 3600,
    }


@router.get("/scales")
def list_scales(
    status_filter: Optional[str] = Query(default=None, alias="status"),
    location_id: Optional[str] = Query(default=None),
    specialty_id: Optional[str] = Query(default=None),
    date_from: Optional[date] = Query(default=None),
    date_to: Optional[date] = Query(default=None),
    current_user: dict = Depends(require_permission("scales", "view")),
    store: EntityStore = Depends(get_store),
):
    items = scale_service.list_scales(
        store, current_user, status_filter, location_id, specialty_id, date_from, date_to
    )
    return {"items": [_with_deadlines(item) for item in items]}


@router.get("/scales/{scale_id}")
def get_scale(
    scale_id: str,
    current_user: dict = Depends(require_permission("scales", "view")),
    store: EntityStore = Depends(get_store),
):
    scale = scale_service.get_scale(store, scale_id)
    if not scale:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Escala nao encontrada")
    return {
        **_with_deadlines(scale),
        "candidatures": list_candidatures(store, current_user, scale_id=scale_id),
    }


@router.post("/scales", status_code=status.HTTP_201_CREATED)
def create_scale(
    payload: dict,
    current_user: dict = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
):
    return unwrap(scale_service.create_scale(store, current_user, payload))


@router.put("/scales/{scale_id}")
def update_scale(
    scale_id: str,
    payload: dict,
    current_user: dict = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
):
    return unwrap(scale_service.update_scale(store, current_user, scale_id, payload))


@router.post("/scales/{scale_id}/publish")
def publish_scale(
    scale_id: str,
    current_user: dict = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
):
    return unwrap(scale_service.publish_scale(store, current_user, scale_id))


@router.post("/scales/{scale_id}/cancel")
def cancel_scale(
    scale_id: str,
    payload: Optional[CancelPayload] = None,
    current_user: dict = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
):
    reason = payload.reason if payload else None
    return unwrap(scale_service.cancel_scale(store, current_user, scale_id, reason))


@router.post("/scales/{scale_id}/start")
def start_scale(
    scale_id: str,
    current_user: dict = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
):
    return unwrap(scale_service.start_scale(store, current_user, scale_id))


@router.post("/scales/{scale_id}/complete")
def complete_scale(
    scale_id: str,
    current_user: dict = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
):
    return unwrap(scale_service.complete_scale(store, current_user, scale_id))


@router.post("/scales/{scale_id}/check-in")
def check_in(
    scale_id: str,
    payload: dict,
    current_user: dict = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
):
    return unwrap(scale_service.check_in(store, current_user, scale_id, payload))


@router.post("/scales/{scale_id}/check-out")
def check_out(
    scale_id: str,
    payload: dict,
    current_user: dict = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
):
    return unwrap(scale_service.check_out(store, current_user, scale_id, payload))


@router.post("/scales/{scale_id}/transfer")
def transfer_scale(
    scale_id: str,
    payload: TransferPayload,
    current_user: dict = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
):
    return unwrap(scale_service.transfer_scale(store, current_user, scale_id, payload.doctor_id))


@router.delete("/scales/{scale_id}/hard")
def hard_delete_scale(
    scale_id: str,
    current_user: dict = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
):
    return unwrap(hard_delete_record(store, current_user, SCALES, scale_id))
