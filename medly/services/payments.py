import logging
from datetime import timedelta
from typing import Optional

from pydantic import ValidationError

from medly.core.config import settings
from medly.core.permissions import apply_scope
from medly.core.results import CONFLICT, STATE, Result, denied, fail, from_validation_error, not_found, ok
from medly.core.timeutils import iso, parse_date, today, utcnow
from medly.schemas import MarkPaidPayload, PaymentPayload
from medly.services.audit import log_audit
from medly.services.notifications import notify
from medly.services.records import actor_permissions, ensure_permission
from medly.store import PAYMENTS, SCALES, USERS, EntityStore

logger = logging.getLogger("medly.payments")


def classify_payment_status(payment: dict, now=None) -> str:
    status = payment.get("status") or "pendente"
    if status != "pendente":
        return status
    due = parse_date(payment.get("due_date"))
    if due and due < today(now):
        return "atrasado"
    return status


def refresh_overdue_payments(store: EntityStore, now=None) -> int:
    changed = 0
    for payment in store.get_all(PAYMENTS):
        status = classify_payment_status(payment, now)
        if status != payment.get("status"):
            store.update(PAYMENTS, payment["id"], {"status": status})
            if store.get_by_id(SCALES, payment["scale_id"]):
                store.update(SCALES, payment["scale_id"], {"payment_status": status})
            changed += 1
    if changed:
        logger.info("payments marked overdue count=%s", changed)
    return changed


def list_payments(
    store: EntityStore,
    actor: dict,
    status: Optional[str] = None,
    doctor_id: Optional[str] = None,
    now=None,
) -> list[dict]:
    refresh_overdue_payments(store, now)
    items = apply_scope(
        actor_permissions(store, actor), "payments", store.get_all(PAYMENTS), actor.get("id"), ("doctor_id",)
    )
    if status:
        items = [item for item in items if item.get("status") == status]
    if doctor_id:
        items = [item for item in items if item.get("doctor_id") == doctor_id]
    return sorted(items, key=lambda item: item.get("due_date") or "")


def payment_for_scale(store: EntityStore, scale_id: str) -> Optional[dict]:
    return store.find_one(PAYMENTS, scale_id=scale_id)


def create_payment(store: EntityStore, actor: dict, data: dict, now=None) -> Result:
    refusal = ensure_permission(store, actor, "payments", "create")
    if refusal:
        return refusal
    try:
        payload = PaymentPayload.model_validate(data)
    except ValidationError as exc:
        return from_validation_error(exc)
    if not store.get_by_id(SCALES, payload.scale_id):
        return not_found("Escala")
    doctor = store.get_by_id(USERS, payload.doctor_id)
    if not doctor or doctor.get("role") != "medico":
        return not_found("Medico")
    if payment_for_scale(store, payload.scale_id):
        return fail("Escala ja possui pagamento", CONFLICT)

    attrs = payload.model_dump()
    attrs.update({"status": "pendente", "paid_date": None, "proof_url": None, "confirmed_by_doctor": False})
    attrs["status"] = classify_payment_status(attrs, now)
    payment = store.create(PAYMENTS, attrs)
    store.update(SCALES, payload.scale_id, {"payment_status": payment["status"]})
    log_audit(store, actor, "CREATE", PAYMENTS, payment["id"], {"amount": payment["amount"]})
    return ok(payment)


def ensure_scale_payment(store: EntityStore, scale_id: str, doctor_id: str, actor: Optional[dict]) -> Optional[dict]:
    """Pending payment for an invoiced scale, created on first call."""
    existing = payment_for_scale(store, scale_id)
    if existing:
        return existing
    scale = store.get_by_id(SCALES, scale_id)
    if not scale:
        return None
    due = parse_date(scale.get("payment_date")) or (
        parse_date(scale["date"]) + timedelta(days=settings.PAYMENT_DUE_DAYS)
    )
    payment = store.create(
        PAYMENTS,
        {
            "scale_id": scale_id,
            "doctor_id": doctor_id,
            "amount": scale.get("payment_value") or 0,
            "due_date": iso(due),
            "status": "pendente",
            "confirmed_by_doctor": False,
            "notes": "Gerado no envio da nota fiscal",
        },
    )
    log_audit(store, actor, "CREATE", PAYMENTS, payment["id"], {"scale_id": scale_id, "auto": True})
    logger.info("payment generated id=%s scale=%s", payment["id"], scale_id)
    return payment


def mark_paid(store: EntityStore, actor: dict, payment_id: str, data: Optional[dict] = None, now=None) -> Result:
    refusal = ensure_permission(store, actor, "payments", "edit")
    if refusal:
        return refusal
    try:
        payload = MarkPaidPayload.model_validate(data or {})
    except ValidationError as exc:
        return from_validation_error(exc)
    payment = store.get_by_id(PAYMENTS, payment_id)
    if not payment:
        return not_found("Pagamento")
    if payment.get("status") == "pago":
        return fail("Pagamento ja registrado como pago", STATE)

    updated = store.update(
        PAYMENTS,
        payment_id,
        {
            "status": "pago",
            "paid_date": iso(payload.paid_date or today(now)),
            "proof_url": payload.proof_url or payment.get("proof_url"),
        },
    )
    if store.get_by_id(SCALES, payment["scale_id"]):
        store.update(SCALES, payment["scale_id"], {"payment_status": "pago"})
    notify(
        store,
        payment["doctor_id"],
        "Pagamento realizado",
        f"O pagamento de R$ {payment['amount']:.2f} foi registrado.",
        "success",
    )
    log_audit(store, actor, "MARK_PAID", PAYMENTS, payment_id)
    return ok(updated)


def confirm_receipt(store: EntityStore, actor: dict, payment_id: str, now=None) -> Result:
    payment = store.get_by_id(PAYMENTS, payment_id)
    if not payment:
        return not_found("Pagamento")
    if payment.get("doctor_id") != actor.get("id"):
        return denied("Apenas o medico do pagamento pode confirmar o recebimento")
    if payment.get("status") != "pago":
        return fail("Pagamento ainda nao foi realizado", STATE)
    if payment.get("confirmed_by_doctor"):
        return fail("Recebimento ja confirmado", STATE)
    updated = store.update(
        PAYMENTS, payment_id, {"confirmed_by_doctor": True, "confirmed_at": iso(now or utcnow())}
    )
    log_audit(store, actor, "CONFIRM_RECEIPT", PAYMENTS, payment_id)
    return ok(updated)


def payment_summary(store: EntityStore, actor: dict, now=None) -> dict:
    summary = {
        status: {"count": 0, "total": 0.0} for status in ("pendente", "atrasado", "pago")
    }
    for payment in list_payments(store, actor, now=now):
        bucket = summary.get(payment.get("status"))
        if bucket is None:
            continue
        bucket["count"] += 1
        bucket["total"] = round(bucket["total"] + float(payment.get("amount") or 0), 2)
    return summary
