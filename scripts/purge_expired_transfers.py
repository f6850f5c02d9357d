"""
Delete transfers whose metadata says they have expired.

Usage:
    python scripts/purge_expired_transfers.py [--dry-run]
"""
import sys
import os
import argparse
import asyncio
import time

# Add parent directory to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from relay.config import get_settings
from relay.errors import RelayError
from relay.logging import setup_logging
from relay.services.lister import iter_prefix
from relay.services.metadata import TransferMetadataStore
from relay.services.transfers import NAMESPACE_ROOT
from relay.storage import create_storage
from relay.storage.provider import StorageProvider


async def find_transfer_ids(storage: StorageProvider, page_size: int) -> list:
    ids = []
    async for entry in iter_prefix(storage, NAMESPACE_ROOT, page_size):
        parts = entry.key[len(NAMESPACE_ROOT):].split("/", 1)
        if len(parts) == 2 and parts[0] and parts[0] not in ids:
            ids.append(parts[0])
    return ids


async def purge_expired(storage: StorageProvider, store: TransferMetadataStore, page_size: int, dry_run: bool = False, now: int = None) -> list:
    """Return the ids of expired transfers, deleting them unless dry_run is set."""
    now = int(time.time()) if now is None else now
    purged = []
    for transfer_id in await find_transfer_ids(storage, page_size):
        try:
            meta = await store.load(transfer_id)
        except RelayError as e:
            print(f"Skipping {transfer_id}: {e.code}")
            continue
        if meta is None or not meta.is_expired(now):
            continue
        if dry_run:
            print(f"[dry-run] would delete {transfer_id} (expired {meta.expires_at})")
        else:
            deleted = await store.delete_namespace(transfer_id)
            print(f"Deleted {transfer_id}: {deleted} objects")
        purged.append(transfer_id)
    return purged


async def main(dry_run: bool = False) -> None:
    settings = get_settings()
    storage = create_storage(settings)
    store = TransferMetadataStore(storage, ttl_seconds=settings.transfer_ttl_seconds, cache_size=0)
    try:
        purged = await purge_expired(storage, store, settings.list_page_size, dry_run=dry_run)
    finally:
        await storage.close()
    print(f"{len(purged)} expired transfer(s) {'found' if dry_run else 'purged'}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Purge expired transfers")
    parser.add_argument("--dry-run", action="store_true", help="List expired transfers without deleting them")
    args = parser.parse_args()
    setup_logging()
    asyncio.run(main(dry_run=args.dry_run))
