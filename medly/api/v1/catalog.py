from fastapi import APIRouter, Depends, status

from medly.api.deps import get_store, unwrap
from medly.core.security import get_current_user
from medly.services import catalog as catalog_service
from medly.store import EntityStore

router = APIRouter(tags=["Catalogo"])


@router.get("/specialties")
def list_specialties(current_user: dict = Depends(get_current_user), store: EntityStore = Depends(get_store)):
    return {"items": catalog_service.list_specialties(store)}


@router.post("/specialties", status_code=status.HTTP_201_CREATED)
def create_specialty(
    payload: dict,
    current_user: dict = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
):
    return unwrap(catalog_service.create_specialty(store, current_user, payload))


@router.put("/specialties/{specialty_id}")
def update_specialty(
    specialty_id: str,
    payload: dict,
    current_user: dict = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
):
    return unwrap(catalog_service.update_specialty(store, current_user, specialty_id, payload))


@router.delete("/specialties/{specialty_id}")
def delete_specialty(
    specialty_id: str,
    current_user: dict = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
):
    return unwrap(catalog_service.delete_specialty(store, current_user, specialty_id))


@router.get("/scale-types")
def list_scale_types(current_user: dict = Depends(get_current_user), store: EntityStore = Depends(get_store)):
    return {"items": catalog_service.list_scale_types(store)}


@router.post("/scale-types", status_code=status.HTTP_201_CREATED)
def create_scale_type(
    payload: dict,
    current_user: dict = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
):
    return unwrap(catalog_service.create_scale_type(store, current_user, payload))


@router.put("/scale-types/{scale_type_id}")
def update_scale_type(
    scale_type_id: str,
    payload: dict,
    current_user: dict = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
):
    return unwrap(catalog_service.update_scale_type(store, current_user, scale_type_id, payload))


@router.delete("/scale-types/{scale_type_id}")
def delete_scale_type(
    scale_type_id: str,
    current_user: dict = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
):
    return unwrap(catalog_service.delete_scale_type(store, current_user, scale_type_id))
