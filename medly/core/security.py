from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext

from medly.api.deps import get_store
from medly.core.config import settings
from medly.core.permissions import ProfilePermissions, can_perform
from medly.services.records import actor_permissions
from medly.store import USERS, EntityStore

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/token")


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    if not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        return False


def get_password_hash(password: str) -> str:
    if not isinstance(password, str):
        raise ValueError("Senha invalida para hash: envie somente a senha em texto do usuario.")
    return pwd_context.hash(password)


def create_access_token(data: dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(hours=settings.ACCESS_TOKEN_EXPIRE_HOURS)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def user_from_token(token: str, store: EntityStore) -> dict:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Credenciais invalidas",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        user_id: str | None = payload.get("sub")
        if user_id is None:
            raise credentials_exception
    except JWTError:
        raise credentials_exception

    user = store.get_by_id(USERS, user_id)
    if not user:
        raise credentials_exception
    if user.get("status") == "inativo":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Usuario inativo")
    return user


def get_current_user(
    token: str = Depends(oauth2_scheme), store: EntityStore = Depends(get_store)
) -> dict:
    return user_from_token(token, store)


def get_current_permissions(
    user: dict = Depends(get_current_user), store: EntityStore = Depends(get_store)
) -> ProfilePermissions:
    return actor_permissions(store, user)


def require_permission(module: str, action: str):
    def _dependency(
        user: dict = Depends(get_current_user),
        store: EntityStore = Depends(get_store),
    ) -> dict:
        if not can_perform(actor_permissions(store, user), module, action):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Permissao negada")
        return user

    return _dependency
