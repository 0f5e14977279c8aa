import io
from datetime import timedelta
from pathlib import Path

from medly.core.config import settings
from medly.core.timeutils import iso, today
from medly.services import documents as service
from medly.services.notifications import list_notifications


def _upload(store, actor, user_id, content=b"%PDF-1.4 crm", **overrides):
    data = {"name": "CRM digital", "category": "crm", "user_id": user_id}
    data.update(overrides)
    return service.upload_document(store, actor, data, io.BytesIO(content), "crm.PDF", "application/pdf")


def test_doctor_uploads_own_document(seeded, doctor):
    result = _upload(seeded, doctor, doctor["id"])
    assert result.success, result.error
    document = result.data
    assert document["status"] == "pendente"
    assert document["file_size"] == len(b"%PDF-1.4 crm")
    assert document["file_url"].startswith("file://")
    assert document["file_url"].endswith(".pdf")
    assert f"documents/{doctor['id']}/" in document["file_url"]
    assert len(document["file_hash"]) == 64


def test_upload_for_someone_else_requires_permission(seeded, escalista, gestor, doctor):
    assert _upload(seeded, escalista, doctor["id"]).kind == "permission"
    assert _upload(seeded, gestor, doctor["id"]).kind == "permission"


def test_upload_for_unknown_user(seeded, admin):
    assert _upload(seeded, admin, "ghost").kind == "not_found"


def test_upload_too_large_is_rejected(seeded, doctor, monkeypatch):
    monkeypatch.setattr(settings, "DOCUMENT_MAX_BYTES", 4)
    result = _upload(seeded, doctor, doctor["id"])
    assert result.kind == "validation"
    assert service.list_documents(seeded, doctor) == []


def test_review_approves_and_notifies(seeded, gestor, doctor):
    document = _upload(seeded, doctor, doctor["id"], expiration_date=iso(today() + timedelta(days=10))).data
    result = service.review_document(seeded, gestor, document["id"], {"status": "aprovado"})
    assert result.success
    assert result.data["status"] == "aprovado"
    assert result.data["reviewed_by"] == gestor["id"]
    assert result.data["expiry"] == "vencendo"
    assert any(item["title"] == "Documento aprovado" for item in list_notifications(seeded, doctor["id"]))

    again = service.review_document(seeded, gestor, document["id"], {"status": "rejeitado", "notes": "x"})
    assert again.kind == "state"


def test_rejection_requires_notes(seeded, gestor, doctor):
    document = _upload(seeded, doctor, doctor["id"]).data
    assert service.review_document(seeded, gestor, document["id"], {"status": "rejeitado"}).kind == "validation"
    result = service.review_document(
        seeded, gestor, document["id"], {"status": "rejeitado", "notes": "Documento ilegivel"}
    )
    assert result.data["review_notes"] == "Documento ilegivel"


def test_review_requires_edit_permission(seeded, escalista, doctor):
    document = _upload(seeded, doctor, doctor["id"]).data
    assert service.review_document(seeded, escalista, document["id"], {"status": "aprovado"}).kind == "permission"


def test_expiry_state():
    now = None
    assert service.expiry_state({"expiration_date": None}) is None
    assert service.expiry_state({"expiration_date": iso(today() - timedelta(days=1))}, now) == "expirado"
    assert service.expiry_state({"expiration_date": iso(today() + timedelta(days=30))}, now) == "vencendo"
    assert service.expiry_state({"expiration_date": iso(today() + timedelta(days=31))}, now) is None


def test_expiring_documents_only_lists_approved(seeded, gestor, doctor):
    soon = iso(today() + timedelta(days=5))
    approved = _upload(seeded, doctor, doctor["id"], expiration_date=soon).data
    _upload(seeded, doctor, doctor["id"], expiration_date=soon)
    service.review_document(seeded, gestor, approved["id"], {"status": "aprovado"})
    assert [item["id"] for item in service.expiring_documents(seeded)] == [approved["id"]]


def test_documents_scoped_to_owner(seeded, gestor, doctor, other_doctor):
    _upload(seeded, doctor, doctor["id"])
    assert len(service.list_documents(seeded, doctor)) == 1
    assert service.list_documents(seeded, other_doctor) == []
    assert len(service.list_documents(seeded, gestor)) == 1


def test_owner_deletes_pending_document(seeded, doctor):
    document = _upload(seeded, doctor, doctor["id"]).data
    path = Path(document["file_url"].replace("file://", "", 1))
    assert path.exists()
    assert service.delete_document(seeded, doctor, document["id"]).success
    assert not path.exists()
    assert service.list_documents(seeded, doctor) == []


def test_owner_cannot_delete_reviewed_document(seeded, gestor, admin, doctor):
    document = _upload(seeded, doctor, doctor["id"]).data
    service.review_document(seeded, gestor, document["id"], {"status": "aprovado"})
    assert service.delete_document(seeded, doctor, document["id"]).kind == "permission"
    assert service.delete_document(seeded, admin, document["id"]).success


def test_download_url_for_owner_and_reviewer(seeded, gestor, doctor, other_doctor):
    document = _upload(seeded, doctor, doctor["id"]).data
    own = service.document_download_url(seeded, doctor, document["id"])
    assert own.success
    assert own.data["url"] == document["file_url"]
    assert service.document_download_url(seeded, gestor, document["id"]).success
    assert service.document_download_url(seeded, other_doctor, document["id"]).kind == "permission"
    assert service.document_download_url(seeded, doctor, "missing").kind == "not_found"
