"""Locations, specialties and scale types."""
import logging
from typing import Optional, Type

from pydantic import BaseModel, ValidationError

from medly.core.results import CONFLICT, STATE, Result, fail, from_validation_error, not_found, ok
from medly.schemas import LocationPayload, ScaleTypePayload, SpecialtyPayload
from medly.services.audit import log_audit
from medly.services.records import ensure_permission, soft_delete_record
from medly.store import LOCATIONS, SCALE_TYPES, SCALES, SPECIALTIES, EntityStore

logger = logging.getLogger("medly.catalog")

OPEN_SCALE_STATUSES = ("rascunho", "publicada", "em_andamento")


def _name_taken(store: EntityStore, collection: str, name: str, exclude_id: Optional[str] = None) -> bool:
    wanted = name.strip().lower()
    return any(
        (item.get("name") or "").strip().lower() == wanted and item["id"] != exclude_id
        for item in store.get_all(collection)
    )


def _validate(schema: Type[BaseModel], data: dict):
    try:
        return schema.model_validate(data), None
    except ValidationError as exc:
        return None, from_validation_error(exc)


def _in_use(store: EntityStore, field: str, entity_id: str) -> bool:
    return any(
        scale.get(field) == entity_id and scale.get("status") in OPEN_SCALE_STATUSES
        for scale in store.get_all(SCALES)
    )


# ---------------------------------------------------------------------------
# Locations
# ---------------------------------------------------------------------------


def _location_attrs(payload: LocationPayload) -> dict:
    attrs = payload.model_dump(exclude={"lat", "lng"})
    attrs["coordinates"] = (
        {"lat": payload.lat, "lng": payload.lng} if payload.lat is not None else None
    )
    return attrs


def list_locations(store: EntityStore, type: Optional[str] = None, search: Optional[str] = None) -> list[dict]:
    items = store.get_all(LOCATIONS)
    if type:
        items = [item for item in items if item.get("type") == type]
    if search:
        term = search.strip().lower()
        items = [
            item
            for item in items
            if term in item["name"].lower() or term in (item.get("address") or {}).get("city", "").lower()
        ]
    return items


def create_location(store: EntityStore, actor: dict, data: dict) -> Result:
    refusal = ensure_permission(store, actor, "locations", "create")
    if refusal:
        return refusal
    payload, error = _validate(LocationPayload, data)
    if error:
        return error
    if _name_taken(store, LOCATIONS, payload.name):
        return fail("Ja existe um local com este nome", CONFLICT)
    location = store.create(LOCATIONS, _location_attrs(payload))
    log_audit(store, actor, "CREATE", LOCATIONS, location["id"], {"name": location["name"]})
    warnings = None if location["coordinates"] else ["Local sem coordenadas: check-in nao sera verificado"]
    return ok(location, warnings)


def update_location(store: EntityStore, actor: dict, location_id: str, data: dict) -> Result:
    refusal = ensure_permission(store, actor, "locations", "edit")
    if refusal:
        return refusal
    current = store.get_by_id(LOCATIONS, location_id)
    if not current:
        return not_found("Local")
    coordinates = current.get("coordinates") or {}
    merged = {
        **current,
        "lat": coordinates.get("lat"),
        "lng": coordinates.get("lng"),
        **data,
    }
    payload, error = _validate(LocationPayload, merged)
    if error:
        return error
    if _name_taken(store, LOCATIONS, payload.name, exclude_id=location_id):
        return fail("Ja existe um local com este nome", CONFLICT)
    location = store.update(LOCATIONS, location_id, _location_attrs(payload))
    log_audit(store, actor, "UPDATE", LOCATIONS, location_id)
    return ok(location)


def delete_location(store: EntityStore, actor: dict, location_id: str) -> Result:
    refusal = ensure_permission(store, actor, "locations", "delete")
    if refusal:
        return refusal
    if _in_use(store, "location_id", location_id):
        return fail("Local possui escalas em aberto", STATE)
    return soft_delete_record(store, actor, LOCATIONS, location_id)


# ---------------------------------------------------------------------------
# Specialties
# ---------------------------------------------------------------------------


def list_specialties(store: EntityStore) -> list[dict]:
    return sorted(store.get_all(SPECIALTIES), key=lambda item: item["name"].lower())


def _missing_scale_types(store: EntityStore, ids: list[str]) -> list[str]:
    return [scale_type_id for scale_type_id in ids if not store.get_by_id(SCALE_TYPES, scale_type_id)]


def create_specialty(store: EntityStore, actor: dict, data: dict) -> Result:
    refusal = ensure_permission(store, actor, "settings", "create")
    if refusal:
        return refusal
    payload, error = _validate(SpecialtyPayload, data)
    if error:
        return error
    if _name_taken(store, SPECIALTIES, payload.name):
        return fail("Ja existe uma especialidade com este nome", CONFLICT)
    missing = _missing_scale_types(store, payload.scale_type_ids)
    if missing:
        return not_found("Tipo de escala")
    specialty = store.create(SPECIALTIES, payload.model_dump())
    log_audit(store, actor, "CREATE", SPECIALTIES, specialty["id"], {"name": specialty["name"]})
    return ok(specialty)


def update_specialty(store: EntityStore, actor: dict, specialty_id: str, data: dict) -> Result:
    refusal = ensure_permission(store, actor, "settings", "edit")
    if refusal:
        return refusal
    current = store.get_by_id(SPECIALTIES, specialty_id)
    if not current:
        return not_found("Especialidade")
    payload, error = _validate(SpecialtyPayload, {**current, **data})
    if error:
        return error
    if _name_taken(store, SPECIALTIES, payload.name, exclude_id=specialty_id):
        return fail("Ja existe uma especialidade com este nome", CONFLICT)
    if _missing_scale_types(store, payload.scale_type_ids):
        return not_found("Tipo de escala")
    specialty = store.update(SPECIALTIES, specialty_id, payload.model_dump())
    log_audit(store, actor, "UPDATE", SPECIALTIES, specialty_id)
    return ok(specialty)


def delete_specialty(store: EntityStore, actor: dict, specialty_id: str) -> Result:
    refusal = ensure_permission(store, actor, "settings", "delete")
    if refusal:
        return refusal
    if _in_use(store, "specialty_id", specialty_id):
        return fail("Especialidade possui escalas em aberto", STATE)
    return soft_delete_record(store, actor, SPECIALTIES, specialty_id)


# ---------------------------------------------------------------------------
# Scale types
# ---------------------------------------------------------------------------


def list_scale_types(store: EntityStore) -> list[dict]:
    return sorted(store.get_all(SCALE_TYPES), key=lambda item: item["name"].lower())


def create_scale_type(store: EntityStore, actor: dict, data: dict) -> Result:
    refusal = ensure_permission(store, actor, "settings", "create")
    if refusal:
        return refusal
    payload, error = _validate(ScaleTypePayload, data)
    if error:
        return error
    if _name_taken(store, SCALE_TYPES, payload.name):
        return fail("Ja existe um tipo de escala com este nome", CONFLICT)
    scale_type = store.create(SCALE_TYPES, payload.model_dump())
    log_audit(store, actor, "CREATE", SCALE_TYPES, scale_type["id"], {"name": scale_type["name"]})
    return ok(scale_type)


def update_scale_type(store: EntityStore, actor: dict, scale_type_id: str, data: dict) -> Result:
    refusal = ensure_permission(store, actor, "settings", "edit")
    if refusal:
        return refusal
    current = store.get_by_id(SCALE_TYPES, scale_type_id)
    if not current:
        return not_found("Tipo de escala")
    payload, error = _validate(ScaleTypePayload, {**current, **data})
    if error:
        return error
    if _name_taken(store, SCALE_TYPES, payload.name, exclude_id=scale_type_id):
        return fail("Ja existe um tipo de escala com este nome", CONFLICT)
    scale_type = store.update(SCALE_TYPES, scale_type_id, payload.model_dump())
    log_audit(store, actor, "UPDATE", SCALE_TYPES, scale_type_id)
    return ok(scale_type)


def delete_scale_type(store: EntityStore, actor: dict, scale_type_id: str) -> Result:
    refusal = ensure_permission(store, actor, "settings", "delete")
    if refusal:
        return refusal
    if _in_use(store, "scale_type_id", scale_type_id):
        return fail("Tipo de escala possui escalas em aberto", STATE)
    result = soft_delete_record(store, actor, SCALE_TYPES, scale_type_id)
    if result.success:
        for specialty in store.get_all(SPECIALTIES):
            ids = specialty.get("scale_type_ids") or []
            if scale_type_id in ids:
                store.update(
                    SPECIALTIES, specialty["id"], {"scale_type_ids": [i for i in ids if i != scale_type_id]}
                )
    return result
