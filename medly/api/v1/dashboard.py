from fastapi import APIRouter, Depends

from medly.api.deps import get_store, unwrap
from medly.core.security import get_current_user
from medly.services.dashboard import dashboard_data
from medly.store import EntityStore

router = APIRouter(tags=["Dashboard"])


@router.get("/dashboard")
def get_dashboard(current_user: dict = Depends(get_current_user), store: EntityStore = Depends(get_store)):
    return unwrap(dashboard_data(store, current_user))
