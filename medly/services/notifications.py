import logging
from typing import Optional

from medly.core.results import Result, denied, not_found, ok
from medly.store import NOTIFICATIONS, USERS, EntityStore

logger = logging.getLogger("medly.notifications")


def notify(
    store: EntityStore,
    user_id: str,
    title: str,
    message: str,
    type: str = "info",
    action_url: Optional[str] = None,
) -> Optional[dict]:
    if not user_id or not store.get_by_id(USERS, user_id):
        logger.warning("notification skipped, unknown user=%s", user_id)
        return None
    return store.create(
        NOTIFICATIONS,
        {
            "user_id": user_id,
            "title": title,
            "message": message,
            "type": type,
            "read": False,
            "action_url": action_url,
        },
    )


def list_notifications(store: EntityStore, user_id: str, unread_only: bool = False) -> list[dict]:
    items = store.find(NOTIFICATIONS, user_id=user_id)
    if unread_only:
        items = [item for item in items if not item.get("read")]
    items.sort(key=lambda item: item.get("created_at") or "", reverse=True)
    return items


def unread_count(store: EntityStore, user_id: str) -> int:
    return len(list_notifications(store, user_id, unread_only=True))


def mark_read(store: EntityStore, actor: dict, notification_id: str) -> Result:
    notification = store.get_by_id(NOTIFICATIONS, notification_id)
    if not notification:
        return not_found("Notificacao")
    if notification.get("user_id") != actor.get("id"):
        return denied()
    return ok(store.update(NOTIFICATIONS, notification_id, {"read": True}))


def mark_all_read(store: EntityStore, actor: dict) -> Result:
    changed = 0
    for item in list_notifications(store, actor["id"], unread_only=True):
        store.update(NOTIFICATIONS, item["id"], {"read": True})
        changed += 1
    return ok({"updated": changed})
