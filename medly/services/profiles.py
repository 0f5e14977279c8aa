import logging
from typing import Optional

from pydantic import ValidationError

from medly.core.permissions import (
    ACTIONS,
    DASHBOARD_CARDS,
    DASHBOARD_CHARTS,
    MODULES,
    ProfilePermissions,
    count_enabled,
    open_for_edit,
    resolve_permissions,
)
from medly.core.results import CONFLICT, STATE, Result, fail, from_validation_error, not_found, ok
from medly.schemas import RoleProfilePayload
from medly.services.audit import log_audit
from medly.services.records import ensure_permission
from medly.store import ROLE_PROFILES, EntityStore

logger = logging.getLogger("medly.profiles")


class ProfileDraft:
    """Editable copy of a role profile's permissions.

    Changes stay local until :meth:`save`; the stored profile is untouched if
    the draft is discarded.
    """

    def __init__(self, store: EntityStore, profile: dict) -> None:
        self.store = store
        self.profile_id = profile["id"]
        self.permissions: ProfilePermissions = open_for_edit(profile)

    @classmethod
    def open(cls, store: EntityStore, profile_id: str) -> Optional["ProfileDraft"]:
        profile = store.get_by_id(ROLE_PROFILES, profile_id)
        if not profile:
            return None
        return cls(store, profile)

    def set_permission(self, module: str, action: str, value: bool) -> None:
        if module not in MODULES:
            raise ValueError(f"Modulo desconhecido: {module}")
        if action == "viewAll":
            action = "view_all"
        if action not in ACTIONS:
            raise ValueError(f"Acao desconhecida: {action}")
        setattr(getattr(self.permissions, module), action, value)

    def set_dashboard(self, view: Optional[bool] = None, view_all: Optional[bool] = None) -> None:
        if view is not None:
            self.permissions.dashboard.view = view
        if view_all is not None:
            self.permissions.dashboard.view_all = view_all

    def set_card(self, card: str, value: bool) -> None:
        if card not in DASHBOARD_CARDS:
            raise ValueError(f"Card desconhecido: {card}")
        setattr(self.permissions.dashboard.cards, card, value)

    def set_chart(self, chart: str, value: bool) -> None:
        if chart not in DASHBOARD_CHARTS:
            raise ValueError(f"Grafico desconhecido: {chart}")
        setattr(self.permissions.dashboard.charts, chart, value)

    @property
    def enabled(self) -> int:
        return count_enabled(self.permissions)

    def save(self, actor: Optional[dict] = None) -> Optional[dict]:
        updated = self.store.update(
            ROLE_PROFILES, self.profile_id, {"permissions": self.permissions.model_dump()}
        )
        if updated:
            log_audit(self.store, actor, "UPDATE_PERMISSIONS", ROLE_PROFILES, self.profile_id)
        return updated


def list_profiles(store: EntityStore) -> list[dict]:
    profiles = []
    for profile in store.get_all(ROLE_PROFILES):
        permissions = resolve_permissions(profile)
        profiles.append(
            {**profile, "permissions": permissions.model_dump(), "enabled_permissions": count_enabled(permissions)}
        )
    return profiles


def create_profile(store: EntityStore, actor: dict, data: dict) -> Result:
    refusal = ensure_permission(store, actor, "settings", "create")
    if refusal:
        return refusal
    try:
        payload = RoleProfilePayload.model_validate(data)
    except ValidationError as exc:
        return from_validation_error(exc)
    name = payload.name.strip().lower()
    if any(profile.get("name", "").strip().lower() == name for profile in store.get_all(ROLE_PROFILES)):
        return fail("Ja existe um perfil com este nome", CONFLICT)
    profile = store.create(ROLE_PROFILES, payload.model_dump())
    log_audit(store, actor, "CREATE", ROLE_PROFILES, profile["id"], {"name": profile["name"]})
    return ok(profile)


def update_profile(store: EntityStore, actor: dict, profile_id: str, data: dict) -> Result:
    refusal = ensure_permission(store, actor, "settings", "edit")
    if refusal:
        return refusal
    draft = ProfileDraft.open(store, profile_id)
    if not draft:
        return not_found("Perfil")
    current = store.get_by_id(ROLE_PROFILES, profile_id)
    merged = {**current, **data}
    merged.setdefault("permissions", current.get("permissions"))
    try:
        payload = RoleProfilePayload.model_validate(
            {key: merged.get(key) for key in ("name", "role", "description", "permissions")}
        )
    except ValidationError as exc:
        return from_validation_error(exc)
    draft.permissions = open_for_edit(payload.permissions)
    store.update(
        ROLE_PROFILES,
        profile_id,
        {"name": payload.name, "role": payload.role, "description": payload.description},
    )
    return ok(draft.save(actor))


def delete_profile(store: EntityStore, actor: dict, profile_id: str) -> Result:
    refusal = ensure_permission(store, actor, "settings", "delete")
    if refusal:
        return refusal
    profile = store.get_by_id(ROLE_PROFILES, profile_id)
    if not profile:
        return not_found("Perfil")
    if profile.get("role") == "admin" and len(store.find(ROLE_PROFILES, role="admin")) == 1:
        return fail("O perfil de administrador nao pode ser removido", STATE)
    store.soft_delete(ROLE_PROFILES, profile_id)
    log_audit(store, actor, "DELETE", ROLE_PROFILES, profile_id)
    logger.info("role profile removed id=%s", profile_id)
    return ok({"id": profile_id})
