from ..config import Settings
from .provider import ListPage, ObjectEntry, ObjectNotFound, StorageProvider


def create_storage(settings: Settings) -> StorageProvider:
    """
    Build the storage provider named by STORAGE_PROVIDER.
    Falls back to local filesystem storage in development when nothing else is configured.
    """
    provider = settings.storage_provider.lower()
    if provider == "blob":
        from .blob_provider import BlobStorageProvider
        return BlobStorageProvider(settings)
    if provider == "s3":
        from .s3_provider import S3StorageProvider
        return S3StorageProvider(settings)
    if provider == "local":
        from .local_provider import LocalStorageProvider
        return LocalStorageProvider(settings.local_storage_dir)
    raise RuntimeError(f"Unknown STORAGE_PROVIDER {settings.storage_provider!r}")


__all__ = ["create_storage", "ListPage", "ObjectEntry", "ObjectNotFound", "StorageProvider"]
