from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from medly.api.deps import get_store, unwrap
from medly.core.security import get_current_user, require_permission
from medly.services import payments as payment_service
from medly.store import EntityStore

router = APIRouter(tags=["Pagamentos"])


@router.get("/payments")
def list_payments(
    status_filter: Optional[str] = Query(default=None, alias="status"),
    doctor_id: Optional[str] = Query(default=None),
    current_user: dict = Depends(require_permission("payments", "view")),
    store: EntityStore = Depends(get_store),
):
    return {"items": payment_service.list_payments(store, current_user, status_filter, doctor_id)}


@router.get("/payments/summary")
def payment_summary(
    current_user: dict = Depends(require_permission("payments", "view")),
    store: EntityStore = Depends(get_store),
):
    return payment_service.payment_summary(store, current_user)


@router.post("/payments", status_code=status.HTTP_201_CREATED)
def create_payment(
    payload: dict,
    current_user: dict = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
):
    return unwrap(payment_service.create_payment(store, current_user, payload))


@router.post("/payments/{payment_id}/pay")
def mark_paid(
    payment_id: str,
    payload: Optional[dict] = None,
    current_user: dict = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
):
    return unwrap(payment_service.mark_paid(store, current_user, payment_id, payload))


@router.post("/payments/{payment_id}/confirm")
def confirm_receipt(
    payment_id: str,
    current_user: dict = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
):
    return unwrap(payment_service.confirm_receipt(store, current_user, payment_id))
