"""
Upload de imagens para o object storage (Supabase Storage).

As imagens nunca são apagadas pela limpeza de retenção: só as linhas do
banco desaparecem.
"""
import asyncio
import base64
import binascii
import logging
import re
import uuid
from datetime import datetime, timezone
from typing import Optional
from supabase import create_client, Client
from app.config import settings
from app.services.analysis_errors import InvalidAnalysisInput, StorageUploadError

logger = logging.getLogger(__name__)

VALID_MIME_TYPES = [
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/gif",
    "image/webp",
]

_EXTENSIONS = {
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
}

MIN_BASE64_LENGTH = 100

_storage_client: Optional[Client] = None


def normalize_mime_type(mime_type: Optional[str]) -> str:
    """MIME desconhecido ou ausente vira image/jpeg."""
    value = (mime_type or "").strip().lower() or "image/jpeg"
    if value not in VALID_MIME_TYPES:
        logger.warning(f"Invalid MIME type \"{mime_type}\", defaulting to image/jpeg")
        return "image/jpeg"
    return value


def clean_base64(raw: Optional[str]) -> str:
    """
    Remove prefixo data URL e espaços; rejeita payloads vazios ou inválidos.

    Raises:
        InvalidAnalysisInput: base64 ausente, curto demais ou não decodificável
    """
    if not raw:
        raise InvalidAnalysisInput("Image data is required")

    cleaned = re.sub(r"^data:image/[a-zA-Z+.-]+;base64,", "", raw.strip())
    cleaned = re.sub(r"\s+", "", cleaned)

    if len(cleaned) < MIN_BASE64_LENGTH:
        raise InvalidAnalysisInput("Invalid or empty base64 image data")

    try:
        base64.b64decode(cleaned, validate=True)
    except (binascii.Error, ValueError):
        raise InvalidAnalysisInput("Invalid or empty base64 image data")

    return cleaned


def to_data_url(clean_b64: str, mime_type: str) -> str:
    return f"data:{mime_type};base64,{clean_b64}"


def get_storage_client() -> Client:
    global _storage_client
    if _storage_client is None:
        if not settings.SUPABASE_URL or not settings.SUPABASE_KEY:
            raise StorageUploadError("Image upload failed: storage not configured")
        _storage_client = create_client(settings.SUPABASE_URL, settings.SUPABASE_KEY)
        logger.info("Supabase storage client initialized")
    return _storage_client


def _build_path(mime_type: str) -> str:
    ext = _EXTENSIONS.get(mime_type, "jpg")
    day = datetime.now(timezone.utc).strftime("%Y/%m/%d")
    return f"{day}/{uuid.uuid4().hex}.{ext}"


def _upload_once(data: bytes, mime_type: str) -> str:
    client = get_storage_client()
    bucket = client.storage.from_(settings.STORAGE_BUCKET)
    path = _build_path(mime_type)
    bucket.upload(path=path, file=data, file_options={"content-type": mime_type})
    return bucket.get_public_url(path)


async def upload_image(clean_b64: str, mime_type: str) -> str:
    """
    Envia a imagem e retorna a URL pública.

    Tenta 1 + UPLOAD_MAX_RETRIES vezes com intervalo fixo.

    Raises:
        StorageUploadError: "Image upload failed: ..."
    """
    data = base64.b64decode(clean_b64)
    attempts = 1 + max(0, settings.UPLOAD_MAX_RETRIES)
    last_error: Optional[Exception] = None

    for attempt in range(1, attempts + 1):
        try:
            url = await asyncio.to_thread(_upload_once, data, mime_type)
            logger.info(f"Image uploaded ({len(data)} bytes) on attempt {attempt}")
            return url
        except StorageUploadError:
            raise
        except Exception as e:
            last_error = e
            logger.warning(f"Image upload attempt {attempt}/{attempts} failed: {e}")
            if attempt < attempts:
                await asyncio.sleep(settings.UPLOAD_RETRY_DELAY_SECONDS)

    raise StorageUploadError(f"Image upload failed: {last_error}")
