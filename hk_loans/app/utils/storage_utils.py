# hk_loans/app/utils/storage_utils.py

"""
Almacenamiento local de documentos de clientes.

- save_upload: valida tipo MIME y tamaño y escribe el fichero en UPLOAD_DIR.
- remove_stored_file: borra el fichero a partir de la URL pública guardada.

Los errores de validación se devuelven como HTTP 400 (mensaje visible).
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Tuple

from fastapi import HTTPException, UploadFile, status

from hk_loans.app.core.config import settings
from hk_loans.app.utils.id_utils import generate_stored_filename

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024


def upload_dir() -> Path:
    path = Path(settings.UPLOAD_DIR)
    path.mkdir(parents=True, exist_ok=True)
    return path


def save_upload(file: UploadFile) -> Tuple[str, str, int]:
    """
    Guarda el fichero subido y devuelve (nombre en disco, url pública, bytes).

    El tamaño se controla mientras se copia: si supera MAX_UPLOAD_MB se
    borra lo escrito y se responde 400.
    """
    content_type = (file.content_type or "").lower()
    if content_type not in settings.allowed_upload_types_list:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Tipo de arquivo não permitido ({content_type or 'desconhecido'}).",
        )

    stored_name = generate_stored_filename(file.filename or "file")
    target = upload_dir() / stored_name
    limit = settings.max_upload_bytes
    size = 0

    with target.open("wb") as out:
        while True:
            chunk = file.file.read(CHUNK_SIZE)
            if not chunk:
                break
            size += len(chunk)
            if size > limit:
                break
            out.write(chunk)

    if size > limit:
        target.unlink(missing_ok=True)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Arquivo maior que {settings.MAX_UPLOAD_MB} MB.",
        )

    url = f"{settings.UPLOAD_URL_PREFIX.rstrip('/')}/{stored_name}"
    logger.info("[documents] stored file=%s size=%s type=%s", stored_name, size, content_type)
    return stored_name, url, size


def remove_stored_file(url: str) -> None:
    """Borra el fichero asociado a una URL pública. Si ya no existe, no hace nada."""
    name = (url or "").rsplit("/", 1)[-1]
    if not name:
        return
    path = Path(settings.UPLOAD_DIR) / name
    try:
        path.unlink(missing_ok=True)
    except OSError:
        logger.warning("[documents] could not remove file=%s", path)
