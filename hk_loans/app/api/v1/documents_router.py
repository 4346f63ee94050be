# hk_loans/app/api/v1/documents_router.py

"""
Documentos adjuntos a la ficha de cliente (RG, comprobantes, contratos...).

- POST   /api/v1/clients/{id}/documents -> subida multipart (campo "file")
- DELETE /api/v1/documents/{id}         -> borra fila y fichero

Límites: tipo MIME en ALLOWED_UPLOAD_TYPES y tamaño <= MAX_UPLOAD_MB.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from sqlalchemy.orm import Session

from hk_loans.app.api.v1.auth_router import require_user
from hk_loans.app.db import models
from hk_loans.app.db.session import get_db
from hk_loans.app.schemas.clients import ClientDocumentOut
from hk_loans.app.utils.common import rollback_and_raise
from hk_loans.app.utils.storage_utils import remove_stored_file, save_upload
from hk_loans.app.utils.tenant_utils import get_owned_client, get_owned_document
from hk_loans.app.utils.text_utils import blank_to_none

logger = logging.getLogger(__name__)

router = APIRouter(tags=["documents"])


@router.post(
    "/clients/{client_id}/documents",
    response_model=ClientDocumentOut,
    status_code=status.HTTP_201_CREATED,
)
def upload_document(
    client_id: str,
    file: UploadFile = File(...),
    name: Optional[str] = Form(None),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_user),
):
    client = get_owned_client(db, current_user.id, client_id)
    _, url, size = save_upload(file)

    doc = models.ClientDocument(
        client_id=client.id,
        name=blank_to_none(name) or file.filename or "documento",
        url=url,
        mime_type=(file.content_type or "").lower(),
        size=size,
    )
    try:
        db.add(doc)
        db.commit()
    except Exception as e:
        remove_stored_file(url)
        rollback_and_raise(db, e, "salvar documento", client_id=client_id)

    db.refresh(doc)
    logger.info("[documents] upload document_id=%s client_id=%s", doc.id, client.id)
    return doc


@router.delete("/documents/{document_id}")
def delete_document(
    document_id: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_user),
):
    doc = get_owned_document(db, current_user.id, document_id)
    url = doc.url

    db.delete(doc)
    db.commit()
    remove_stored_file(url)

    logger.info("[documents] delete document_id=%s", document_id)
    return {"ok": True}
