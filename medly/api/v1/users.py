from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel

from medly.api.deps import get_store, unwrap
from medly.core.security import get_current_user, require_permission
from medly.services import users as user_service
from medly.services.records import hard_delete_record
from medly.store import USERS, EntityStore

router = APIRouter(tags=["Usuarios"])


class StatusRequest(BaseModel):
    status: str


@router.get("/users")
def list_users(
    role: Optional[str] = Query(default=None),
    status_filter: Optional[str] = Query(default=None, alias="status"),
    search: Optional[str] = Query(default=None),
    current_user: dict = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
):
    return {"items": user_service.list_users(store, current_user, role, status_filter, search)}


@router.get("/users/{user_id}")
def get_user(
    user_id: str,
    current_user: dict = Depends(require_permission("users", "view")),
    store: EntityStore = Depends(get_store),
):
    user = user_service.get_user(store, user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Usuario nao encontrado")
    return user


@router.get("/users/{user_id}/subordinates")
def get_subordinates(
    user_id: str,
    current_user: dict = Depends(require_permission("users", "view")),
    store: EntityStore = Depends(get_store),
):
    return {"items": user_service.subordinates(store, user_id)}


@router.post("/users", status_code=status.HTTP_201_CREATED)
def create_user(
    payload: dict,
    current_user: dict = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
):
    return unwrap(user_service.create_user(store, current_user, payload))


@router.put("/users/{user_id}")
def update_user(
    user_id: str,
    payload: dict,
    current_user: dict = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
):
    return unwrap(user_service.update_user(store, current_user, user_id, payload))


@router.post("/users/{user_id}/status")
def set_status(
    user_id: str,
    payload: StatusRequest,
    current_user: dict = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
):
    return unwrap(user_service.set_user_status(store, current_user, user_id, payload.status))


@router.post("/users/{user_id}/toggle-status")
def toggle_status(
    user_id: str,
    current_user: dict = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
):
    return unwrap(user_service.toggle_user_status(store, current_user, user_id))


@router.delete("/users/{user_id}")
def delete_user(
    user_id: str,
    current_user: dict = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
):
    return unwrap(user_service.delete_user(store, current_user, user_id))


@router.delete("/users/{user_id}/hard")
def hard_delete_user(
    user_id: str,
    current_user: dict = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
):
    return unwrap(hard_delete_record(store, current_user, USERS, user_id))
