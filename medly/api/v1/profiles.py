from fastapi import APIRouter, Depends, status

from medly.api.deps import get_store, unwrap
from medly.core.security import get_current_user, require_permission
from medly.services import profiles as profile_service
from medly.store import EntityStore

router = APIRouter(tags=["Perfis"])


@router.get("/profiles")
def list_profiles(
    current_user: dict = Depends(require_permission("settings", "view")),
    store: EntityStore = Depends(get_store),
):
    return {"items": profile_service.list_profiles(store)}


@router.post("/profiles", status_code=status.HTTP_201_CREATED)
def create_profile(
    payload: dict,
    current_user: dict = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
):
    return unwrap(profile_service.create_profile(store, current_user, payload))


@router.put("/profiles/{profile_id}")
def update_profile(
    profile_id: str,
    payload: dict,
    current_user: dict = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
):
    return unwrap(profile_service.update_profile(store, current_user, profile_id, payload))


@router.delete("/profiles/{profile_id}")
def delete_profile(
    profile_id: str,
    current_user: dict = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
):
    return unwrap(profile_service.delete_profile(store, current_user, profile_id))
