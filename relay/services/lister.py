from typing import AsyncIterator, List

from ..storage.provider import ObjectEntry, StorageProvider
from .transfers import is_metadata_key


async def iter_prefix(storage: StorageProvider, prefix: str, page_size: int = 1000) -> AsyncIterator[ObjectEntry]:
    """Yield every object under prefix, following continuation cursors until exhausted."""
    cursor = None
    while True:
        page = await storage.list_page(prefix, cursor, page_size)
        for entry in page.entries:
            yield entry
        if not page.next_cursor or page.next_cursor == cursor:
            break
        cursor = page.next_cursor


async def list_transfer_objects(
    storage: StorageProvider, namespace: str, page_size: int = 1000
) -> AsyncIterator[ObjectEntry]:
    """
    Lazily list the archivable objects of a transfer.

    Skips the metadata object, the namespace marker itself and empty folder
    markers. Each call is an independent pass; keys are unique within a pass.
    """
    seen = set()
    async for entry in iter_prefix(storage, namespace, page_size):
        key = entry.key
        if key == namespace or key.endswith("/") or is_metadata_key(key):
            continue
        if key in seen:
            continue
        seen.add(key)
        yield entry


async def collect_transfer_objects(
    storage: StorageProvider, namespace: str, page_size: int = 1000
) -> List[ObjectEntry]:
    return [entry async for entry in list_transfer_objects(storage, namespace, page_size)]
