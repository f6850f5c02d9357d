from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
import structlog

from ..config import Settings
from ..deps import get_app_settings, get_storage
from ..errors import InvalidRequest, PresignUnsupported, StorageFailure
from ..schemas.files import PresignRequest, PresignResponse, UploadResponse
from ..services.transfers import NAMESPACE_ROOT, is_metadata_key, normalize_transfer_id, sanitize_relative_path
from ..storage.provider import StorageProvider

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api", tags=["files"])

DEFAULT_FOLDER = "uploads"


def object_key(folder: Optional[str], filename: str) -> str:
    """Build a sanitized storage key; the folder usually is a transfer namespace such as transfers/AB3XQ9."""
    key = sanitize_relative_path(f"{folder or DEFAULT_FOLDER}/{filename}")
    if is_metadata_key(key):
        raise InvalidRequest("invalid_path")
    parts = key.split("/")
    if len(parts) > 2 and f"{parts[0]}/" == NAMESPACE_ROOT:
        # transfer ids are case-normalized
        parts[1] = normalize_transfer_id(parts[1])
        key = "/".join(parts)
    return key


@router.post("/upload-direct", response_model=UploadResponse)
async def upload_direct(
    file: Optional[UploadFile] = File(None),
    folder: Optional[str] = Form(None),
    filename: Optional[str] = Form(None),
    content_type: Optional[str] = Form(None, alias="contentType"),
    storage: StorageProvider = Depends(get_storage),
):
    """Proxy a multipart upload into the object store."""
    if file is None:
        raise InvalidRequest("no_file")
    key = object_key(folder, filename or file.filename or "file.bin")
    data = await file.read()
    try:
        await storage.put(key, data, content_type or file.content_type or "application/octet-stream")
    except Exception as e:
        logger.error("upload_failed", key=key, error=str(e))
        raise StorageFailure("upload_failed") from e
    logger.info("upload_stored", key=key, size=len(data))
    return UploadResponse(key=key)


@router.post("/presign", response_model=PresignResponse)
def presign(
    req: PresignRequest,
    settings: Settings = Depends(get_app_settings),
    storage: StorageProvider = Depends(get_storage),
):
    key = object_key(req.folder, req.filename)
    try:
        url = storage.generate_upload_url(key, req.content_type, settings.presign_ttl_seconds)
    except NotImplementedError:
        raise PresignUnsupported()
    return PresignResponse(key=key, url=url, expires_in=settings.presign_ttl_seconds)
