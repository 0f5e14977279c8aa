from fastapi import APIRouter, Depends, status

from medly.api.deps import get_store
from medly.core.security import require_permission
from medly.schemas import NotificationPayload
from medly.services import notifications as notification_service
from medly.store import EntityStore

router = APIRouter(tags=["Notificacoes"])


@router.post("/notifications", status_code=status.HTTP_201_CREATED)
def send_notification(
    payload: NotificationPayload,
    current_user: dict = Depends(require_permission("users", "edit")),
    store: EntityStore = Depends(get_store),
):
    notification = notification_service.notify(
        store, payload.user_id, payload.title, payload.message, payload.type, payload.action_url
    )
    return {"sent": notification is not None, "notification": notification}
