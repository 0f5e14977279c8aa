import pytest

from medly.services import candidatures as service
from medly.services.notifications import list_notifications
from medly.services.payments import payment_for_scale
from medly.store import CANDIDATURES, SCALES, USERS


@pytest.fixture()
def pending_doctor(seeded):
    return seeded.get_by_id(USERS, "user-medico-3")


def test_apply_to_open_scale(seeded, doctor):
    result = service.apply_to_scale(seeded, doctor, "scale-open")
    assert result.success, result.error
    assert result.data["status"] == "interessado"
    assert result.data["workflow_step"] is None
    assert doctor["id"] in seeded.get_by_id(SCALES, "scale-open")["candidate_ids"]


def test_apply_twice_is_conflict(seeded, doctor):
    service.apply_to_scale(seeded, doctor, "scale-open")
    assert service.apply_to_scale(seeded, doctor, "scale-open").kind == "conflict"


def test_apply_requires_active_doctor(seeded, escalista, pending_doctor):
    assert service.apply_to_scale(seeded, escalista, "scale-open").kind == "permission"
    assert service.apply_to_scale(seeded, pending_doctor, "scale-open").kind == "permission"


def test_apply_to_unavailable_scales(seeded, doctor):
    assert service.apply_to_scale(seeded, doctor, "scale-draft").kind == "state"
    assert service.apply_to_scale(seeded, doctor, "scale-assigned").kind == "state"
    assert service.apply_to_scale(seeded, doctor, "missing").kind == "not_found"


def test_accept_denies_competing_candidatures(seeded, escalista, doctor, other_doctor):
    first = service.apply_to_scale(seeded, doctor, "scale-open").data
    second = service.apply_to_scale(seeded, other_doctor, "scale-open").data

    result = service.accept_candidature(seeded, escalista, first["id"])
    assert result.success, result.error
    assert result.data["status"] == "aceito"
    assert result.data["workflow_step"] == 1
    assert [event["step"] for event in result.data["workflow_history"]] == [1]

    loser = seeded.get_by_id(CANDIDATURES, second["id"])
    assert loser["status"] == "negado"
    assert seeded.get_by_id(SCALES, "scale-open")["assigned_doctor_id"] == doctor["id"]
    assert any(item["title"] == "Candidatura aceita" for item in list_notifications(seeded, doctor["id"]))

    accepted = seeded.find(CANDIDATURES, scale_id="scale-open", status="aceito")
    assert len(accepted) == 1


def test_accept_answered_candidature_is_rejected(seeded, escalista, doctor):
    candidature = service.apply_to_scale(seeded, doctor, "scale-open").data
    service.deny_candidature(seeded, escalista, candidature["id"], reason="Perfil incompativel")
    result = service.accept_candidature(seeded, escalista, candidature["id"])
    assert result.kind == "state"


def test_accept_requires_edit_permission(seeded, doctor):
    candidature = service.apply_to_scale(seeded, doctor, "scale-open").data
    assert service.accept_candidature(seeded, doctor, candidature["id"]).kind == "permission"


def test_mark_awaiting_then_deny(seeded, escalista, doctor):
    candidature = service.apply_to_scale(seeded, doctor, "scale-open").data
    awaiting = service.mark_awaiting(seeded, escalista, candidature["id"])
    assert awaiting.data["status"] == "aguardando"
    assert service.mark_awaiting(seeded, escalista, candidature["id"]).kind == "state"

    denied = service.deny_candidature(seeded, escalista, candidature["id"], reason="Vaga preenchida")
    assert denied.data["status"] == "negado"
    assert denied.data["denial_reason"] == "Vaga preenchida"


def test_withdraw(seeded, doctor, other_doctor):
    candidature = service.apply_to_scale(seeded, doctor, "scale-open").data
    assert service.withdraw_candidature(seeded, other_doctor, candidature["id"]).kind == "permission"
    assert service.withdraw_candidature(seeded, doctor, candidature["id"]).success
    assert seeded.get_by_id(CANDIDATURES, candidature["id"]) is None
    assert doctor["id"] not in seeded.get_by_id(SCALES, "scale-open")["candidate_ids"]
    # a withdrawn candidature does not block a new one
    assert service.apply_to_scale(seeded, doctor, "scale-open").success


def test_list_candidatures_scoped_to_doctor(seeded, escalista, doctor, other_doctor):
    service.apply_to_scale(seeded, doctor, "scale-open")
    service.apply_to_scale(seeded, other_doctor, "scale-pediatria")
    assert [item["doctor_id"] for item in service.list_candidatures(seeded, doctor)] == [doctor["id"]]
    assert len(service.list_candidatures(seeded, escalista)) == 2
    assert len(service.list_candidatures(seeded, escalista, scale_id="scale-open")) == 1


def _accepted(seeded, escalista, doctor):
    candidature = service.apply_to_scale(seeded, doctor, "scale-open").data
    return service.accept_candidature(seeded, escalista, candidature["id"]).data


def test_workflow_advances_forward_only(seeded, escalista, doctor):
    candidature = _accepted(seeded, escalista, doctor)

    # signed documents are reported by the doctor, skipping the company step
    result = service.advance_workflow(seeded, doctor, candidature["id"], 3)
    assert result.success
    assert result.data["workflow_step"] == 3
    assert [event["step"] for event in result.data["workflow_history"]] == [1, 3]

    same = service.advance_workflow(seeded, doctor, candidature["id"], 3)
    assert same.success
    assert len(same.data["workflow_history"]) == 2

    assert service.advance_workflow(seeded, escalista, candidature["id"], 2).kind == "state"
    assert service.advance_workflow(seeded, doctor, candidature["id"], 7).kind == "validation"


def test_workflow_cannot_return_after_approval(seeded, escalista, doctor):
    candidature = _accepted(seeded, escalista, doctor)
    assert service.advance_workflow(seeded, escalista, candidature["id"], 5).success
    assert service.advance_workflow(seeded, doctor, candidature["id"], 3).kind == "state"
    assert seeded.get_by_id(CANDIDATURES, candidature["id"])["workflow_step"] == 5


def test_doctor_cannot_set_organisation_milestones(seeded, escalista, doctor):
    candidature = _accepted(seeded, escalista, doctor)
    for step in (2, 4, 5):
        assert service.advance_workflow(seeded, doctor, candidature["id"], step).kind == "permission"
    assert seeded.get_by_id(CANDIDATURES, candidature["id"])["workflow_step"] == 1


def test_invoice_requires_approval(seeded, escalista, doctor):
    candidature = _accepted(seeded, escalista, doctor)
    assert service.advance_workflow(seeded, doctor, candidature["id"], 6).kind == "state"
    assert payment_for_scale(seeded, "scale-open") is None


def test_workflow_progress_labels(seeded, escalista, doctor):
    candidature = _accepted(seeded, escalista, doctor)
    progress = service.workflow_progress(candidature)
    assert len(progress) == 6
    assert progress[0] == {"step": 1, "label": "Envio de informações", "done": True, "current": True}
    assert progress[5]["done"] is False


def test_invoice_step_generates_payment(seeded, escalista, doctor):
    candidature = _accepted(seeded, escalista, doctor)
    assert service.advance_workflow(seeded, escalista, candidature["id"], 5).success
    result = service.advance_workflow(seeded, doctor, candidature["id"], 6)
    assert result.success
    payment = payment_for_scale(seeded, "scale-open")
    assert payment["doctor_id"] == doctor["id"]
    assert payment["amount"] == 1500.0
    assert payment["status"] == "pendente"


def test_workflow_requires_owner_or_editor(seeded, escalista, doctor, other_doctor):
    candidature = _accepted(seeded, escalista, doctor)
    assert service.advance_workflow(seeded, other_doctor, candidature["id"], 2).kind == "permission"


def test_workflow_only_for_accepted(seeded, doctor):
    candidature = service.apply_to_scale(seeded, doctor, "scale-open").data
    assert service.advance_workflow(seeded, doctor, candidature["id"], 3).kind == "state"
