import asyncio
import logging
import random
from typing import Optional
from urllib.parse import quote

from pydantic import ValidationError

from medly.core.config import settings
from medly.core.results import CONFLICT, STATE, Result, denied, fail, from_validation_error, ok
from medly.core.security import create_access_token, get_password_hash, verify_password
from medly.core.validators import password_problems
from medly.schemas import RegisterPayload
from medly.services.audit import log_audit
from medly.services.notifications import notify
from medly.services.users import duplicate_problem, find_by_email, public_user
from medly.store import CURRENT_USER_KEY, USERS, EntityStore

logger = logging.getLogger("medly.auth")

INVALID_CREDENTIALS = "Email ou senha inválidos"
INACTIVE_USER = "Usuário inativo. Contate o administrador."
AVATAR_URL = "https://api.dicebear.com/9.x/personas/svg?seed={seed}&backgroundColor=b6e3f4"


async def simulate_latency(min_ms: Optional[int] = None, max_ms: Optional[int] = None) -> None:
    low = settings.SIMULATED_LATENCY_MIN_MS if min_ms is None else min_ms
    high = settings.SIMULATED_LATENCY_MAX_MS if max_ms is None else max_ms
    if high <= 0:
        return
    await asyncio.sleep(random.uniform(max(low, 0), max(high, low)) / 1000)


def register(store: EntityStore, data: dict) -> Result:
    try:
        payload = RegisterPayload.model_validate(data)
    except ValidationError as exc:
        return from_validation_error(exc)
    problem = duplicate_problem(store, payload.email, payload.cpf)
    if problem:
        logger.info("registration rejected: %s", problem)
        return fail(problem, CONFLICT)

    user = store.create(
        USERS,
        {
            "name": payload.name,
            "email": payload.email.lower(),
            "phone": payload.phone,
            "cpf": payload.cpf,
            "role": "medico",
            "status": "pendente",
            "address": payload.address.model_dump(),
            "avatar_url": AVATAR_URL.format(seed=quote(payload.name)),
            "specialties": [],
            "average_rating": None,
            "completed_scales": 0,
            "cancellation_rate": 0.0,
            "password_hash": get_password_hash(payload.password),
        },
    )
    log_audit(store, user, "REGISTER", USERS, user["id"])
    for admin in store.find(USERS, role="admin", status="ativo"):
        notify(store, admin["id"], "Novo cadastro", f"{user['name']} aguarda aprovacao.", "info", f"/users/{user['id']}")
    logger.info("doctor registered id=%s", user["id"])
    return ok(public_user(user))


def login(store: EntityStore, email: str, password: str) -> Result:
    user = find_by_email(store, email)
    if not user or not verify_password(password or "", user.get("password_hash")):
        logger.info("login failed email=%s", email)
        return fail(INVALID_CREDENTIALS)
    if user.get("status") == "inativo":
        return denied(INACTIVE_USER)

    store.set_value(CURRENT_USER_KEY, user["id"])
    log_audit(store, user, "LOGIN", USERS, user["id"])
    token = create_access_token({"sub": user["id"], "role": user["role"]})
    return ok({"access_token": token, "token_type": "bearer", "user": public_user(user)})


def logout(store: EntityStore, actor: Optional[dict]) -> Result:
    if actor:
        log_audit(store, actor, "LOGOUT", USERS, actor["id"])
    store.delete_value(CURRENT_USER_KEY)
    return ok()


def forgot_password(store: EntityStore, email: str) -> Result:
    # Same answer for known and unknown emails.
    user = find_by_email(store, email)
    if user:
        log_audit(store, user, "FORGOT_PASSWORD", USERS, user["id"])
    return ok()


def session_user(store: EntityStore) -> Optional[dict]:
    user_id = store.get_value(CURRENT_USER_KEY)
    if not user_id:
        return None
    user = store.get_by_id(USERS, user_id)
    if not user:
        store.delete_value(CURRENT_USER_KEY)
        return None
    return public_user(user)


def change_password(store: EntityStore, actor: dict, current_password: str, new_password: str) -> Result:
    user = store.get_by_id(USERS, actor["id"])
    if not user or not verify_password(current_password or "", user.get("password_hash")):
        return fail("Senha atual incorreta")
    problems = password_problems(new_password or "")
    if problems:
        return fail(problems[0])
    if verify_password(new_password, user.get("password_hash")):
        return fail("A nova senha deve ser diferente da atual", STATE)
    store.update(USERS, user["id"], {"password_hash": get_password_hash(new_password)})
    log_audit(store, user, "CHANGE_PASSWORD", USERS, user["id"])
    return ok()
