from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from medly.api.deps import get_store, unwrap
from medly.core.security import get_current_user, require_permission
from medly.services import catalog as catalog_service
from medly.services import ratings as rating_service
from medly.services.cep import lookup_cep
from medly.store import LOCATIONS, EntityStore

router = APIRouter(tags=["Locais"])


@router.get("/locations")
def list_locations(
    type: Optional[str] = Query(default=None),
    search: Optional[str] = Query(default=None),
    current_user: dict = Depends(require_permission("locations", "view")),
    store: EntityStore = Depends(get_store),
):
    return {"items": catalog_service.list_locations(store, type, search)}


@router.get("/locations/cep/{cep}")
def cep_lookup(cep: str, current_user: dict = Depends(get_current_user)):
    # Lookup failures are reported, never raised: the form stays submittable.
    return lookup_cep(cep)


@router.get("/locations/{location_id}")
def get_location(
    location_id: str,
    current_user: dict = Depends(require_permission("locations", "view")),
    store: EntityStore = Depends(get_store),
):
    location = store.get_by_id(LOCATIONS, location_id)
    if not location:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Local nao encontrado")
    return {**location, "ratings": rating_service.list_ratings(store, to_location_id=location_id)}


@router.post("/locations", status_code=status.HTTP_201_CREATED)
def create_location(
    payload: dict,
    current_user: dict = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
):
    return unwrap(catalog_service.create_location(store, current_user, payload))


@router.put("/locations/{location_id}")
def update_location(
    location_id: str,
    payload: dict,
    current_user: dict = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
):
    return unwrap(catalog_service.update_location(store, current_user, location_id, payload))


@router.delete("/locations/{location_id}")
def delete_location(
    location_id: str,
    current_user: dict = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
):
    return unwrap(catalog_service.delete_location(store, current_user, location_id))
