from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from medly.api.deps import get_store, unwrap
from medly.core.security import get_current_user
from medly.schemas import DenyPayload, WorkflowPayload
from medly.services import candidatures as candidature_service
from medly.store import CANDIDATURES, EntityStore

router = APIRouter(tags=["Candidaturas"])


@router.get("/candidatures")
def list_candidatures(
    scale_id: Optional[str] = Query(default=None),
    status_filter: Optional[str] = Query(default=None, alias="status"),
    current_user: dict = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
):
    return {
        "items": candidature_service.list_candidatures(store, current_user, scale_id, status_filter)
    }


@router.post("/scales/{scale_id}/apply", status_code=status.HTTP_201_CREATED)
def apply_to_scale(
    scale_id: str,
    current_user: dict = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
):
    return unwrap(candidature_service.apply_to_scale(store, current_user, scale_id))


@router.get("/candidatures/{candidature_id}/workflow")
def get_workflow(
    candidature_id: str,
    current_user: dict = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
):
    candidature = store.get_by_id(CANDIDATURES, candidature_id)
    if not candidature:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Candidatura nao encontrada")
    return {
        "candidature": candidature,
        "steps": candidature_service.workflow_progress(candidature),
    }


@router.post("/candidatures/{candidature_id}/await")
def mark_awaiting(
    candidature_id: str,
    current_user: dict = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
):
    return unwrap(candidature_service.mark_awaiting(store, current_user, candidature_id))


@router.post("/candidatures/{candidature_id}/accept")
def accept(
    candidature_id: str,
    current_user: dict = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
):
    return unwrap(candidature_service.accept_candidature(store, current_user, candidature_id))


@router.post("/candidatures/{candidature_id}/deny")
def deny(
    candidature_id: str,
    payload: Optional[DenyPayload] = None,
    current_user: dict = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
):
    reason = payload.reason if payload else None
    return unwrap(candidature_service.deny_candidature(store, current_user, candidature_id, reason))


@router.post("/candidatures/{candidature_id}/workflow")
def advance_workflow(
    candidature_id: str,
    payload: WorkflowPayload,
    current_user: dict = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
):
    return unwrap(
        candidature_service.advance_workflow(store, current_user, candidature_id, payload.step)
    )


@router.delete("/candidatures/{candidature_id}")
def withdraw(
    candidature_id: str,
    current_user: dict = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
):
    return unwrap(candidature_service.withdraw_candidature(store, current_user, candidature_id))
