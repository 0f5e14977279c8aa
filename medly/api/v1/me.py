from fastapi import APIRouter, Depends
from pydantic import BaseModel

from medly.api.deps import get_store, unwrap
from medly.core.permissions import ProfilePermissions, count_enabled
from medly.core.security import get_current_permissions, get_current_user
from medly.services import auth as auth_service
from medly.services import notifications as notification_service
from medly.services import users as user_service
from medly.store import EntityStore

router = APIRouter(tags=["Usuario"])


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str


@router.get("/me")
def get_me(
    current_user: dict = Depends(get_current_user),
    permissions: ProfilePermissions = Depends(get_current_permissions),
    store: EntityStore = Depends(get_store),
):
    return {
        "user": user_service.public_user(current_user),
        "permissions": permissions.model_dump(),
        "enabled_permissions": count_enabled(permissions),
        "unread_notifications": notification_service.unread_count(store, current_user["id"]),
    }


@router.put("/me")
def update_me(
    payload: dict,
    current_user: dict = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
):
    return unwrap(user_service.update_user(store, current_user, current_user["id"], payload))


@router.post("/me/password")
def change_password(
    payload: ChangePasswordRequest,
    current_user: dict = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
):
    unwrap(
        auth_service.change_password(store, current_user, payload.current_password, payload.new_password)
    )
    return {"status": "ok"}


@router.get("/me/notifications")
def my_notifications(
    unread_only: bool = False,
    current_user: dict = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
):
    return {"items": notification_service.list_notifications(store, current_user["id"], unread_only)}


@router.post("/me/notifications/{notification_id}/read")
def read_notification(
    notification_id: str,
    current_user: dict = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
):
    return unwrap(notification_service.mark_read(store, current_user, notification_id))


@router.post("/me/notifications/read-all")
def read_all_notifications(
    current_user: dict = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
):
    return unwrap(notification_service.mark_all_read(store, current_user))
