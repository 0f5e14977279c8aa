from datetime import timedelta

from medly.core.timeutils import iso, today, utcnow
from medly.services import payments as service
from medly.services.notifications import list_notifications
from medly.store import SCALES


def _payment_data(**overrides):
    data = {
        "scale_id": "scale-done",
        "doctor_id": "user-medico-1",
        "amount": 1500,
        "due_date": iso(today() + timedelta(days=10)),
    }
    data.update(overrides)
    return data


def test_classify_payment_status():
    now = utcnow()
    assert service.classify_payment_status({"status": "pendente", "due_date": iso(today(now) - timedelta(days=1))}, now) == "atrasado"
    assert service.classify_payment_status({"status": "pendente", "due_date": iso(today(now))}, now) == "pendente"
    assert service.classify_payment_status({"status": "pago", "due_date": "2000-01-01"}, now) == "pago"


def test_create_payment(seeded, gestor):
    result = service.create_payment(seeded, gestor, _payment_data())
    assert result.success, result.error
    assert result.data["status"] == "pendente"
    assert result.data["confirmed_by_doctor"] is False
    assert seeded.get_by_id(SCALES, "scale-done")["payment_status"] == "pendente"


def test_one_payment_per_scale(seeded, gestor):
    service.create_payment(seeded, gestor, _payment_data())
    assert service.create_payment(seeded, gestor, _payment_data()).kind == "conflict"


def test_create_payment_requires_permission_and_doctor(seeded, gestor, doctor):
    assert service.create_payment(seeded, doctor, _payment_data()).kind == "permission"
    assert service.create_payment(seeded, gestor, _payment_data(doctor_id="user-gestor")).kind == "not_found"
    assert service.create_payment(seeded, gestor, _payment_data(amount=-1)).kind == "validation"


def test_overdue_payments_are_refreshed(seeded, gestor):
    payment = service.create_payment(
        seeded, gestor, _payment_data(due_date=iso(today() + timedelta(days=1)))
    ).data
    later = utcnow() + timedelta(days=3)
    assert service.refresh_overdue_payments(seeded, later) == 1
    items = service.list_payments(seeded, gestor, now=later)
    assert items[0]["id"] == payment["id"]
    assert items[0]["status"] == "atrasado"
    assert seeded.get_by_id(SCALES, "scale-done")["payment_status"] == "atrasado"


def test_mark_paid_and_confirm(seeded, gestor, doctor, other_doctor):
    payment = service.create_payment(seeded, gestor, _payment_data()).data

    assert service.confirm_receipt(seeded, doctor, payment["id"]).kind == "state"

    paid = service.mark_paid(seeded, gestor, payment["id"], {"proof_url": "https://files/comprovante.pdf"})
    assert paid.success
    assert paid.data["status"] == "pago"
    assert paid.data["paid_date"] == iso(today())
    assert seeded.get_by_id(SCALES, "scale-done")["payment_status"] == "pago"
    assert any(item["title"] == "Pagamento realizado" for item in list_notifications(seeded, doctor["id"]))
    assert service.mark_paid(seeded, gestor, payment["id"]).kind == "state"

    assert service.confirm_receipt(seeded, other_doctor, payment["id"]).kind == "permission"
    confirmed = service.confirm_receipt(seeded, doctor, payment["id"])
    assert confirmed.data["confirmed_by_doctor"] is True
    assert service.confirm_receipt(seeded, doctor, payment["id"]).kind == "state"


def test_doctor_only_lists_own_payments(seeded, gestor, doctor, other_doctor):
    service.create_payment(seeded, gestor, _payment_data())
    assert len(service.list_payments(seeded, doctor)) == 1
    assert service.list_payments(seeded, other_doctor) == []
    assert len(service.list_payments(seeded, gestor)) == 1


def test_payment_summary(seeded, gestor):
    first = service.create_payment(seeded, gestor, _payment_data()).data
    service.create_payment(seeded, gestor, _payment_data(scale_id="scale-assigned", amount=900.5))
    service.mark_paid(seeded, gestor, first["id"])

    summary = service.payment_summary(seeded, gestor)
    assert summary["pago"] == {"count": 1, "total": 1500.0}
    assert summary["pendente"] == {"count": 1, "total": 900.5}
    assert summary["atrasado"] == {"count": 0, "total": 0.0}


def test_ensure_scale_payment_is_idempotent(seeded, admin):
    first = service.ensure_scale_payment(seeded, "scale-done", "user-medico-1", admin)
    second = service.ensure_scale_payment(seeded, "scale-done", "user-medico-1", admin)
    assert first["id"] == second["id"]
    assert service.ensure_scale_payment(seeded, "missing", "user-medico-1", admin) is None
