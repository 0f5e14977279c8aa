"""Permission checks shared by every mutating operation."""
import logging
from typing import Optional

from medly.core.permissions import (
    HARD_DELETE_ROLES,
    ProfilePermissions,
    can_perform,
    full_access,
    resolve_permissions,
)
from medly.core.results import Result, denied, fail, not_found, ok, STATE
from medly.services.audit import log_audit
from medly.store import (
    AUDIT_LOGS,
    CANDIDATURES,
    DOCUMENTS,
    LOCATIONS,
    NOTIFICATIONS,
    PAYMENTS,
    RATINGS,
    ROLE_PROFILES,
    SCALE_TYPES,
    SCALES,
    SPECIALTIES,
    USERS,
    EntityStore,
)

logger = logging.getLogger("medly.records")

COLLECTION_MODULES = {
    USERS: "users",
    SCALES: "scales",
    CANDIDATURES: "scales",
    RATINGS: "scales",
    LOCATIONS: "locations",
    PAYMENTS: "payments",
    DOCUMENTS: "documents",
    SPECIALTIES: "settings",
    SCALE_TYPES: "settings",
    ROLE_PROFILES: "settings",
    NOTIFICATIONS: "settings",
    AUDIT_LOGS: "settings",
}

ENTITY_LABELS = {
    USERS: "Usuario",
    SCALES: "Escala",
    CANDIDATURES: "Candidatura",
    RATINGS: "Avaliacao",
    LOCATIONS: "Local",
    PAYMENTS: "Pagamento",
    DOCUMENTS: "Documento",
    SPECIALTIES: "Especialidade",
    SCALE_TYPES: "Tipo de escala",
    ROLE_PROFILES: "Perfil",
    NOTIFICATIONS: "Notificacao",
    AUDIT_LOGS: "Registro de auditoria",
}


def get_profile_for_role(store: EntityStore, role: Optional[str]) -> ProfilePermissions:
    if not role:
        return ProfilePermissions()
    profile = store.find_one(ROLE_PROFILES, role=role)
    if profile:
        return resolve_permissions(profile)
    if role == "admin":
        return full_access()
    return ProfilePermissions()


def actor_permissions(store: EntityStore, actor: Optional[dict]) -> ProfilePermissions:
    if not actor or actor.get("status") == "inativo":
        return ProfilePermissions()
    return get_profile_for_role(store, actor.get("role"))


def ensure_permission(store: EntityStore, actor: Optional[dict], module: str, action: str) -> Optional[Result]:
    """``None`` when allowed, otherwise the failure to hand back to the caller."""
    if not actor:
        return denied("Usuario nao autenticado")
    if actor.get("status") == "inativo":
        return denied("Usuário inativo. Contate o administrador.")
    if not can_perform(actor_permissions(store, actor), module, action):
        logger.warning(
            "permission denied user=%s module=%s action=%s", actor.get("id"), module, action
        )
        return denied()
    return None


def soft_delete_record(store: EntityStore, actor: dict, collection: str, entity_id: str) -> Result:
    module = COLLECTION_MODULES.get(collection, "settings")
    refusal = ensure_permission(store, actor, module, "delete")
    if refusal:
        return refusal
    if not store.get_by_id(collection, entity_id):
        return not_found(ENTITY_LABELS.get(collection, "Registro"))
    store.soft_delete(collection, entity_id)
    log_audit(store, actor, "DELETE", collection, entity_id)
    return ok({"id": entity_id})


def hard_delete_record(store: EntityStore, actor: dict, collection: str, entity_id: str) -> Result:
    """Irreversible removal, limited to administrators with delete rights."""
    module = COLLECTION_MODULES.get(collection, "settings")
    if not actor or actor.get("role") not in HARD_DELETE_ROLES:
        return denied("Exclusao definitiva restrita a administradores")
    refusal = ensure_permission(store, actor, module, "delete")
    if refusal:
        return refusal
    if collection == USERS and entity_id == actor.get("id"):
        return fail("Nao e possivel excluir o proprio usuario", STATE)
    record = next(
        (item for item in store.get_all(collection, include_deleted=True) if item["id"] == entity_id),
        None,
    )
    if not record:
        return not_found(ENTITY_LABELS.get(collection, "Registro"))
    store.hard_delete(collection, entity_id)
    log_audit(store, actor, "HARD_DELETE", collection, entity_id, {"was_deleted": bool(record.get("deleted_at"))})
    logger.warning("hard delete collection=%s id=%s by=%s", collection, entity_id, actor.get("id"))
    return ok({"id": entity_id})
