from typing import Optional

from fastapi import APIRouter, Depends, Query

from medly.api.deps import get_store
from medly.core.security import require_permission
from medly.services.audit import list_audit_logs
from medly.store import EntityStore

router = APIRouter(tags=["Auditoria"])


@router.get("/audit-logs")
def audit_logs(
    entity: Optional[str] = Query(default=None),
    user_id: Optional[str] = Query(default=None),
    action: Optional[str] = Query(default=None),
    limit: int = Query(default=100, ge=1, le=1000),
    current_user: dict = Depends(require_permission("settings", "view_all")),
    store: EntityStore = Depends(get_store),
):
    return {"items": list_audit_logs(store, entity, user_id, action, limit)}
