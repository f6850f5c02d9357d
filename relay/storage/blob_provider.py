from datetime import datetime, timedelta, timezone
from typing import Optional

from azure.core.exceptions import ResourceNotFoundError
from azure.storage.blob import BlobSasPermissions, ContentSettings, generate_blob_sas
from azure.storage.blob.aio import BlobServiceClient

from ..config import Settings
from .provider import ListPage, ObjectEntry, ObjectNotFound, StorageProvider


class BlobStorageProvider(StorageProvider):
    name = "blob"

    def __init__(self, settings: Settings) -> None:
        if not settings.azure_blob_connection or not settings.azure_blob_container:
            raise RuntimeError("AZURE_BLOB_CONNECTION and AZURE_BLOB_CONTAINER must be set")
        self._service = BlobServiceClient.from_connection_string(settings.azure_blob_connection)
        self._container_name = settings.azure_blob_container
        self._container = self._service.get_container_client(self._container_name)

    async def put(self, key: str, data: bytes, content_type: str) -> None:
        await self._container.upload_blob(
            name=key.lstrip("/"),
            data=data,
            overwrite=True,
            content_settings=ContentSettings(content_type=content_type),
        )

    async def get(self, key: str) -> bytes:
        try:
            downloader = await self._container.download_blob(key.lstrip("/"))
        except ResourceNotFoundError:
            raise ObjectNotFound(key)
        return await downloader.readall()

    async def list_page(self, prefix: str, cursor: Optional[str] = None, page_size: int = 1000) -> ListPage:
        pages = self._container.list_blobs(name_starts_with=prefix, results_per_page=page_size).by_page(
            continuation_token=cursor
        )
        entries = []
        async for page in pages:
            async for blob in page:
                entries.append(ObjectEntry(key=blob.name, size=int(blob.size or 0)))
            break
        return ListPage(entries=entries, next_cursor=pages.continuation_token or None)

    async def delete(self, key: str) -> None:
        try:
            await self._container.delete_blob(key.lstrip("/"))
        except ResourceNotFoundError:
            pass

    def generate_upload_url(self, key: str, content_type: str, expires_s: int) -> str:
        expiry = datetime.now(tz=timezone.utc) + timedelta(seconds=expires_s)
        sas = generate_blob_sas(
            account_name=self._service.account_name,
            container_name=self._container_name,
            blob_name=key.lstrip("/"),
            account_key=self._service.credential.account_key,
            permission=BlobSasPermissions(write=True, create=True),
            expiry=expiry,
            content_type=content_type,
        )
        blob_url = self._container.get_blob_client(key.lstrip("/")).url
        return f"{blob_url}?{sas}"

    async def close(self) -> None:
        await self._service.close()
