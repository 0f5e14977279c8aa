import logging
import os
import uuid
from typing import BinaryIO, Optional

from pydantic import ValidationError

from medly.core.config import settings
from medly.core.permissions import apply_scope, can_perform
from medly.core.results import STATE, Result, denied, fail, from_validation_error, not_found, ok
from medly.core.timeutils import iso, parse_date, today, utcnow
from medly.schemas import DocumentPayload, DocumentReview
from medly.services.audit import log_audit
from medly.services.notifications import notify
from medly.services.records import actor_permissions, ensure_permission
from medly.services.storage import StorageClient, StorageError
from medly.store import DOCUMENTS, USERS, EntityStore

logger = logging.getLogger("medly.documents")

EXPIRING_WINDOW_DAYS = 30


def expiry_state(document: dict, now=None) -> Optional[str]:
    expiration = parse_date(document.get("expiration_date"))
    if not expiration:
        return None
    remaining = (expiration - today(now)).days
    if remaining < 0:
        return "expirado"
    if remaining <= EXPIRING_WINDOW_DAYS:
        return "vencendo"
    return None


def _annotate(document: dict, now=None) -> dict:
    return {**document, "expiry": expiry_state(document, now)}


def list_documents(
    store: EntityStore,
    actor: dict,
    status: Optional[str] = None,
    user_id: Optional[str] = None,
    now=None,
) -> list[dict]:
    items = apply_scope(
        actor_permissions(store, actor), "documents", store.get_all(DOCUMENTS), actor.get("id"), ("user_id",)
    )
    if status:
        items = [item for item in items if item.get("status") == status]
    if user_id:
        items = [item for item in items if item.get("user_id") == user_id]
    return [_annotate(item, now) for item in items]


def expiring_documents(store: EntityStore, now=None) -> list[dict]:
    return [
        _annotate(document, now)
        for document in store.get_all(DOCUMENTS)
        if document.get("status") == "aprovado" and expiry_state(document, now)
    ]


def upload_document(
    store: EntityStore,
    actor: dict,
    data: dict,
    file_obj: BinaryIO,
    filename: str,
    content_type: str = "application/octet-stream",
    storage: Optional[StorageClient] = None,
) -> Result:
    try:
        payload = DocumentPayload.model_validate(data)
    except ValidationError as exc:
        return from_validation_error(exc)
    if payload.user_id != actor.get("id"):
        refusal = ensure_permission(store, actor, "documents", "create")
        if refusal:
            return refusal
    if not store.get_by_id(USERS, payload.user_id):
        return not_found("Usuario")

    storage = storage or StorageClient()
    extension = os.path.splitext(filename or "")[1].lower()
    dest_path = f"documents/{payload.user_id}/{uuid.uuid4().hex}{extension}"
    try:
        file_url, size, digest = storage.upload_file(
            file_obj, dest_path, content_type, max_bytes=settings.DOCUMENT_MAX_BYTES
        )
    except StorageError as exc:
        logger.warning("document upload failed user=%s: %s", payload.user_id, exc)
        return fail(str(exc))

    document = store.create(
        DOCUMENTS,
        {
            **payload.model_dump(),
            "file_url": file_url,
            "file_size": size,
            "file_hash": digest,
            "status": "pendente",
        },
    )
    log_audit(store, actor, "UPLOAD", DOCUMENTS, document["id"], {"category": document["category"]})
    return ok(_annotate(document))


def review_document(store: EntityStore, actor: dict, document_id: str, data: dict, now=None) -> Result:
    refusal = ensure_permission(store, actor, "documents", "edit")
    if refusal:
        return refusal
    try:
        payload = DocumentReview.model_validate(data)
    except ValidationError as exc:
        return from_validation_error(exc)
    document = store.get_by_id(DOCUMENTS, document_id)
    if not document:
        return not_found("Documento")
    if document.get("status") != "pendente":
        return fail("Documento ja revisado", STATE)
    if payload.status == "rejeitado" and not payload.notes:
        return fail("Informe o motivo da rejeicao")

    updated = store.update(
        DOCUMENTS,
        document_id,
        {
            "status": payload.status,
            "reviewed_by": actor["id"],
            "reviewed_at": iso(now or utcnow()),
            "review_notes": payload.notes,
        },
    )
    approved = payload.status == "aprovado"
    notify(
        store,
        document["user_id"],
        "Documento aprovado" if approved else "Documento rejeitado",
        f"{document['name']}: {payload.notes}" if payload.notes else document["name"],
        "success" if approved else "error",
    )
    log_audit(store, actor, "REVIEW", DOCUMENTS, document_id, {"status": payload.status})
    return ok(_annotate(updated, now))


def document_download_url(
    store: EntityStore,
    actor: dict,
    document_id: str,
    storage: Optional[StorageClient] = None,
    expires_minutes: int = 30,
) -> Result:
    document = store.get_by_id(DOCUMENTS, document_id)
    if not document:
        return not_found("Documento")
    permissions = actor_permissions(store, actor)
    is_owner = document.get("user_id") == actor.get("id")
    if not (is_owner and can_perform(permissions, "documents", "view")):
        if not can_perform(permissions, "documents", "view_all"):
            return denied()
    storage = storage or StorageClient()
    try:
        url = storage.generate_signed_url(document["file_url"], expires_minutes=expires_minutes)
    except StorageError as exc:
        logger.error("signed url failed id=%s: %s", document_id, exc)
        return fail(str(exc), STATE)
    return ok({"id": document_id, "url": url, "expires_minutes": expires_minutes})


def delete_document(
    store: EntityStore, actor: dict, document_id: str, storage: Optional[StorageClient] = None
) -> Result:
    document = store.get_by_id(DOCUMENTS, document_id)
    if not document:
        return not_found("Documento")
    is_owner = document.get("user_id") == actor.get("id")
    if not can_perform(actor_permissions(store, actor), "documents", "delete"):
        if not is_owner or document.get("status") != "pendente":
            return denied()
    storage = storage or StorageClient()
    try:
        storage.delete(document["file_url"])
    except StorageError as exc:
        logger.warning("document file not removed id=%s: %s", document_id, exc)
    store.soft_delete(DOCUMENTS, document_id)
    log_audit(store, actor, "DELETE", DOCUMENTS, document_id)
    return ok({"id": document_id})
