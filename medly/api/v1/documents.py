from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Form, Query, UploadFile, status

from medly.api.deps import get_store, unwrap
from medly.core.security import get_current_user, require_permission
from medly.services import documents as document_service
from medly.store import EntityStore

router = APIRouter(tags=["Documentos"])


@router.get("/documents")
def list_documents(
    status_filter: Optional[str] = Query(default=None, alias="status"),
    user_id: Optional[str] = Query(default=None),
    current_user: dict = Depends(require_permission("documents", "view")),
    store: EntityStore = Depends(get_store),
):
    return {"items": document_service.list_documents(store, current_user, status_filter, user_id)}


@router.get("/documents/expiring")
def expiring_documents(
    current_user: dict = Depends(require_permission("documents", "view_all")),
    store: EntityStore = Depends(get_store),
):
    return {"items": document_service.expiring_documents(store)}


@router.post("/documents", status_code=status.HTTP_201_CREATED)
def upload_document(
    file: UploadFile,
    name: str = Form(...),
    category: str = Form(...),
    user_id: Optional[str] = Form(default=None),
    expiration_date: Optional[date] = Form(default=None),
    current_user: dict = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
):
    data = {
        "name": name,
        "category": category,
        "user_id": user_id or current_user["id"],
        "expiration_date": expiration_date,
    }
    return unwrap(
        document_service.upload_document(
            store,
            current_user,
            data,
            file.file,
            file.filename or "documento",
            file.content_type or "application/octet-stream",
        )
    )


@router.post("/documents/{document_id}/review")
def review_document(
    document_id: str,
    payload: dict,
    current_user: dict = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
):
    return unwrap(document_service.review_document(store, current_user, document_id, payload))


@router.get("/documents/{document_id}/download")
def download_document(
    document_id: str,
    current_user: dict = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
):
    return unwrap(document_service.document_download_url(store, current_user, document_id))


@router.delete("/documents/{document_id}")
def delete_document(
    document_id: str,
    current_user: dict = Depends(get_current_user),
    store: EntityStore = Depends(get_store),
):
    return unwrap(document_service.delete_document(store, current_user, document_id))
