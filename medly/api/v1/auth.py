import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.concurrency import run_in_threadpool
from fastapi.security import OAuth2PasswordRequestForm
from pydantic import BaseModel

from medly.api.deps import get_store, unwrap
from medly.core.security import get_current_user
from medly.services import auth as auth_service
from medly.store import EntityStore

router = APIRouter(tags=["Auth"])
logger = logging.getLogger("medly.auth")


class LoginRequest(BaseModel):
    email: str
    password: str


class ForgotPasswordRequest(BaseModel):
    email: str


def _login_or_401(store: EntityStore, email: str, password: str) -> dict:
    result = auth_service.login(store, email, password)
    if not result.success:
        code = status.HTTP_403_FORBIDDEN if result.kind == "permission" else status.HTTP_401_UNAUTHORIZED
        raise HTTPException(status_code=code, detail=result.error)
    return result.data


@router.post("/auth/register", status_code=status.HTTP_201_CREATED)
async def register(payload: dict, store: EntityStore = Depends(get_store)):
    await auth_service.simulate_latency()
    return unwrap(await run_in_threadpool(auth_service.register, store, payload))


@router.post("/auth/login", summary="Login JSON (frontend)")
async def login(payload: LoginRequest, store: EntityStore = Depends(get_store)):
    await auth_service.simulate_latency()
    return await run_in_threadpool(_login_or_401, store, payload.email, payload.password)


@router.post("/auth/token", summary="Login OAuth2 (Swagger)")
def token(form_data: OAuth2PasswordRequestForm = Depends(), store: EntityStore = Depends(get_store)):
    data = _login_or_401(store, form_data.username, form_data.password)
    return {"access_token": data["access_token"], "token_type": data["token_type"]}


@router.post("/auth/logout")
def logout(current_user: dict = Depends(get_current_user), store: EntityStore = Depends(get_store)):
    return unwrap(auth_service.logout(store, current_user)) or {"status": "ok"}


@router.post("/auth/forgot-password")
async def forgot_password(payload: ForgotPasswordRequest, store: EntityStore = Depends(get_store)):
    await auth_service.simulate_latency()
    await run_in_threadpool(auth_service.forgot_password, store, payload.email)
    return {"status": "ok"}


@router.get("/auth/session")
def session(store: EntityStore = Depends(get_store)):
    return {"user": auth_service.session_user(store)}
