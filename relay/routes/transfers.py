from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
import structlog

from ..auth.gate import DownloadCredentials, authorize_download, download_credentials, pin_matches
from ..config import Settings
from ..deps import get_app_settings, get_archive_streamer, get_metadata_store, get_storage
from ..errors import AccessDenied, RelayError, StorageFailure, TransferExpired
from ..schemas.transfers import (
    CreateTransferRequest,
    CreateTransferResponse,
    DeleteTransferResponse,
    TransferItem,
    TransferListing,
)
from ..services.archive import ArchiveStreamer
from ..services.lister import collect_transfer_objects
from ..services.metadata import TransferMeta, TransferMetadataStore
from ..services.transfers import normalize_transfer_id, relative_key, transfer_namespace
from ..storage.provider import StorageProvider

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/transfers", tags=["transfers"])


async def _load_meta(metadata: TransferMetadataStore, transfer_id: str, failure_code: str) -> TransferMeta:
    try:
        meta = await metadata.load(transfer_id)
    except RelayError:
        raise
    except Exception as e:
        logger.error(failure_code, transfer_id=transfer_id, error=str(e))
        raise StorageFailure(failure_code) from e
    return meta or TransferMeta.open(transfer_id)


@router.post("", response_model=CreateTransferResponse)
async def create_transfer(
    req: CreateTransferRequest,
    metadata: TransferMetadataStore = Depends(get_metadata_store),
):
    meta = await metadata.create(pin=req.pin, require_paid=req.require_paid)
    logger.info("transfer_created", transfer_id=meta.id, has_pin=bool(meta.pin), require_paid=meta.require_paid)
    return CreateTransferResponse(id=meta.id, expires_at=meta.expires_at)


@router.get("/{transfer_id}", response_model=TransferListing)
async def list_transfer(
    transfer_id: str,
    settings: Settings = Depends(get_app_settings),
    storage: StorageProvider = Depends(get_storage),
):
    tid = normalize_transfer_id(transfer_id)
    namespace = transfer_namespace(tid)
    try:
        entries = await collect_transfer_objects(storage, namespace, settings.list_page_size)
    except Exception as e:
        logger.error("transfer_list_failed", transfer_id=tid, error=str(e))
        raise StorageFailure("transfer_list_failed") from e
    items = [TransferItem(key=relative_key(namespace, e.key), size=e.size) for e in entries]
    return TransferListing(id=tid, items=items)


@router.delete("/{transfer_id}", response_model=DeleteTransferResponse)
async def delete_transfer(
    transfer_id: str,
    credentials: DownloadCredentials = Depends(download_credentials),
    metadata: TransferMetadataStore = Depends(get_metadata_store),
):
    tid = normalize_transfer_id(transfer_id)
    meta = await _load_meta(metadata, tid, "transfer_delete_failed")
    if meta.pin and not pin_matches(meta.pin, credentials.pin):
        raise AccessDenied.for_code("pin_required")
    try:
        deleted = await metadata.delete_namespace(tid)
    except Exception as e:
        logger.error("transfer_delete_failed", transfer_id=tid, error=str(e))
        raise StorageFailure("transfer_delete_failed") from e
    logger.info("transfer_deleted", transfer_id=tid, deleted=deleted)
    return DeleteTransferResponse(id=tid, deleted=deleted)


@router.get("/{transfer_id}/zip")
async def download_zip(
    transfer_id: str,
    request: Request,
    credentials: DownloadCredentials = Depends(download_credentials),
    settings: Settings = Depends(get_app_settings),
    metadata: TransferMetadataStore = Depends(get_metadata_store),
    archiver: ArchiveStreamer = Depends(get_archive_streamer),
):
    """
    Stream every object of the transfer as one ZIP.

    All checks (expiry, PIN, payment, empty package) run before the response
    starts; once bytes flow, a failure can only end the connection.
    """
    tid = normalize_transfer_id(transfer_id)
    meta = await _load_meta(metadata, tid, "transfer_zip_failed")
    if meta.is_expired():
        raise TransferExpired()

    decision = authorize_download(
        tid,
        meta,
        credentials,
        secret=settings.payment_secret_bytes,
        bypass_plans=settings.bypass_plans,
    )
    if not decision.allowed:
        logger.info("download_denied", transfer_id=tid, error=decision.error)
        raise AccessDenied.for_code(decision.error)

    try:
        stream = await archiver.open(transfer_namespace(tid), should_stop=request.is_disconnected)
    except RelayError:
        raise
    except Exception as e:
        logger.error("transfer_zip_failed", transfer_id=tid, error=str(e))
        raise StorageFailure("transfer_zip_failed") from e

    logger.info("download_authorized", transfer_id=tid, via=decision.via, entries=len(stream.entries))
    headers = {"Content-Disposition": f'attachment; filename="{tid}.zip"'}
    return StreamingResponse(stream, media_type="application/zip", headers=headers)
