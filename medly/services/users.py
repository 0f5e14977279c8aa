import logging
from typing import Optional

from pydantic import ValidationError

from medly.core.permissions import apply_scope, can_perform
from medly.core.results import CONFLICT, STATE, Result, denied, fail, from_validation_error, not_found, ok
from medly.core.security import get_password_hash
from medly.core.validators import only_digits
from medly.schemas import UserCreate, UserUpdate
from medly.services.audit import log_audit
from medly.services.records import actor_permissions, ensure_permission, soft_delete_record
from medly.store import RATINGS, SCALES, USERS, EntityStore

logger = logging.getLogger("medly.users")

SELF_EDITABLE = {"name", "phone", "address", "crm", "crm_state", "specialties"}


def public_user(user: Optional[dict]) -> Optional[dict]:
    if user is None:
        return None
    return {key: value for key, value in user.items() if key != "password_hash"}


def find_by_email(store: EntityStore, email: str) -> Optional[dict]:
    wanted = (email or "").strip().lower()
    for user in store.get_all(USERS):
        if (user.get("email") or "").strip().lower() == wanted:
            return user
    return None


def find_by_cpf(store: EntityStore, cpf: str) -> Optional[dict]:
    wanted = only_digits(cpf)
    for user in store.get_all(USERS):
        if only_digits(user.get("cpf")) == wanted:
            return user
    return None


def duplicate_problem(
    store: EntityStore, email: Optional[str], cpf: Optional[str], exclude_id: Optional[str] = None
) -> Optional[str]:
    if email:
        existing = find_by_email(store, email)
        if existing and existing["id"] != exclude_id:
            return "Este email já está cadastrado"
    if cpf:
        existing = find_by_cpf(store, cpf)
        if existing and existing["id"] != exclude_id:
            return "Este CPF já está cadastrado"
    return None


def list_users(
    store: EntityStore,
    actor: dict,
    role: Optional[str] = None,
    status: Optional[str] = None,
    search: Optional[str] = None,
) -> list[dict]:
    profile = actor_permissions(store, actor)
    if not can_perform(profile, "users", "view"):
        return [public_user(actor)]
    users = apply_scope(profile, "users", store.get_all(USERS), actor.get("id"), ("id", "manager_id"))
    if role:
        users = [user for user in users if user.get("role") == role]
    if status:
        users = [user for user in users if user.get("status") == status]
    if search:
        term = search.strip().lower()
        users = [
            user
            for user in users
            if term in (user.get("name") or "").lower() or term in (user.get("email") or "").lower()
        ]
    return [public_user(user) for user in users]


def get_user(store: EntityStore, user_id: str) -> Optional[dict]:
    return public_user(store.get_by_id(USERS, user_id))


def subordinates(store: EntityStore, manager_id: str) -> list[dict]:
    return [public_user(user) for user in store.find(USERS, manager_id=manager_id)]


def create_user(store: EntityStore, actor: dict, data: dict) -> Result:
    refusal = ensure_permission(store, actor, "users", "create")
    if refusal:
        return refusal
    try:
        payload = UserCreate.model_validate(data)
    except ValidationError as exc:
        return from_validation_error(exc)
    problem = duplicate_problem(store, payload.email, payload.cpf)
    if problem:
        return fail(problem, CONFLICT)
    if payload.manager_id and not store.get_by_id(USERS, payload.manager_id):
        return not_found("Gestor")

    attrs = payload.model_dump(exclude={"password"})
    attrs["email"] = payload.email.lower()
    attrs["password_hash"] = get_password_hash(payload.password) if payload.password else None
    if payload.role == "medico":
        attrs.update({"average_rating": None, "completed_scales": 0, "cancellation_rate": 0.0})
    user = store.create(USERS, attrs)
    log_audit(store, actor, "CREATE", USERS, user["id"], {"role": user["role"]})
    logger.info("user created id=%s role=%s", user["id"], user["role"])
    return ok(public_user(user))


def update_user(store: EntityStore, actor: dict, user_id: str, data: dict) -> Result:
    user = store.get_by_id(USERS, user_id)
    if not user:
        return not_found("Usuario")
    try:
        payload = UserUpdate.model_validate(data)
    except ValidationError as exc:
        return from_validation_error(exc)
    changes = payload.model_dump(exclude_unset=True)

    editing_self = actor.get("id") == user_id
    if not can_perform(actor_permissions(store, actor), "users", "edit"):
        if not editing_self or set(changes) - SELF_EDITABLE:
            return denied()
    elif editing_self and changes.get("status") == "inativo":
        return fail("Nao e possivel inativar o proprio usuario", STATE)

    problem = duplicate_problem(store, changes.get("email"), None, exclude_id=user_id)
    if problem:
        return fail(problem, CONFLICT)
    if changes.get("manager_id") == user_id:
        return fail("Usuario nao pode ser o proprio gestor")
    if "email" in changes and changes["email"]:
        changes["email"] = changes["email"].lower()

    updated = store.update(USERS, user_id, changes)
    log_audit(store, actor, "UPDATE", USERS, user_id, {"fields": sorted(changes)})
    return ok(public_user(updated))


def set_user_status(store: EntityStore, actor: dict, user_id: str, status: str) -> Result:
    refusal = ensure_permission(store, actor, "users", "edit")
    if refusal:
        return refusal
    if status not in ("ativo", "inativo", "pendente"):
        return fail("Status invalido")
    user = store.get_by_id(USERS, user_id)
    if not user:
        return not_found("Usuario")
    if user_id == actor.get("id") and status == "inativo":
        return fail("Nao e possivel inativar o proprio usuario", STATE)
    updated = store.update(USERS, user_id, {"status": status})
    log_audit(store, actor, "STATUS_CHANGE", USERS, user_id, {"from": user.get("status"), "to": status})
    return ok(public_user(updated))


def toggle_user_status(store: EntityStore, actor: dict, user_id: str) -> Result:
    user = store.get_by_id(USERS, user_id)
    if not user:
        return not_found("Usuario")
    return set_user_status(store, actor, user_id, "inativo" if user.get("status") == "ativo" else "ativo")


def delete_user(store: EntityStore, actor: dict, user_id: str) -> Result:
    if user_id == actor.get("id"):
        return fail("Nao e possivel excluir o proprio usuario", STATE)
    result = soft_delete_record(store, actor, USERS, user_id)
    if result.success:
        for subordinate in store.find(USERS, manager_id=user_id):
            store.update(USERS, subordinate["id"], {"manager_id": None})
    return result


def refresh_doctor_metrics(store: EntityStore, doctor_id: Optional[str]) -> Optional[dict]:
    """Recomputes completed scales, cancellation rate and average rating."""
    doctor = store.get_by_id(USERS, doctor_id) if doctor_id else None
    if not doctor or doctor.get("role") != "medico":
        return None
    assigned = store.find(SCALES, assigned_doctor_id=doctor_id)
    completed = sum(1 for scale in assigned if scale.get("status") == "concluida")
    cancelled = sum(1 for scale in assigned if scale.get("status") == "cancelada")
    finished = completed + cancelled
    scores = [
        rating["overall_score"]
        for rating in store.find(RATINGS, to_user_id=doctor_id, type="location_to_doctor")
    ]
    return store.update(
        USERS,
        doctor_id,
        {
            "completed_scales": completed,
            "cancellation_rate": round(cancelled * 100 / finished, 1) if finished else 0.0,
            "average_rating": round(sum(scores) / len(scores), 1) if scores else None,
        },
    )
