import logging
from typing import Any, Optional

from medly.core.config import settings
from medly.core.timeutils import iso, utcnow
from medly.store import AUDIT_LOGS, EntityStore

logger = logging.getLogger("medly.audit")

SYSTEM_ACTOR = {"id": "system", "name": "Sistema"}


def log_audit(
    store: EntityStore,
    actor: Optional[dict],
    action: str,
    entity: str,
    entity_id: str,
    details: Optional[dict[str, Any]] = None,
) -> dict:
    actor = actor or SYSTEM_ACTOR
    entry = store.create(
        AUDIT_LOGS,
        {
            "timestamp": iso(utcnow()),
            "user_id": actor.get("id"),
            "user_name": actor.get("name"),
            "action": action,
            "entity": entity,
            "entity_id": entity_id,
            "details": details,
        },
    )
    _evict_overflow(store)
    logger.info("audit action=%s entity=%s id=%s user=%s", action, entity, entity_id, actor.get("id"))
    return entry


def _evict_overflow(store: EntityStore) -> None:
    limit = settings.AUDIT_LOG_LIMIT
    overflow = store.count(AUDIT_LOGS, include_deleted=True) - limit
    if overflow <= 0:
        return
    # Oldest first.
    for entry in store.get_all(AUDIT_LOGS, include_deleted=True)[:overflow]:
        store.hard_delete(AUDIT_LOGS, entry["id"])


def list_audit_logs(
    store: EntityStore,
    entity: Optional[str] = None,
    user_id: Optional[str] = None,
    action: Optional[str] = None,
    limit: Optional[int] = None,
) -> list[dict]:
    entries = store.get_all(AUDIT_LOGS)
    if entity:
        entries = [entry for entry in entries if entry.get("entity") == entity]
    if user_id:
        entries = [entry for entry in entries if entry.get("user_id") == user_id]
    if action:
        entries = [entry for entry in entries if entry.get("action") == action]
    entries.reverse()
    return entries[:limit] if limit else entries
