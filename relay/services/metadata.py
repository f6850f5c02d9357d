"""
Transfer metadata persisted as a small JSON object next to the transfer's files.

The object store is the only source of truth. The in-process cache is
read-through, holds successful loads only and is evicted on delete; setting
METADATA_CACHE_SIZE=0 turns it off.
"""
import json
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Optional

import structlog

from ..errors import RelayError, StorageFailure
from ..storage.provider import ObjectNotFound, StorageProvider
from .lister import iter_prefix
from .transfers import metadata_key, new_transfer_id, transfer_namespace

logger = structlog.get_logger(__name__)

CREATE_ATTEMPTS = 5


@dataclass(frozen=True)
class TransferMeta:
    id: str
    pin: Optional[str] = None
    require_paid: bool = False
    created_at: Optional[int] = None
    expires_at: Optional[int] = None

    @classmethod
    def open(cls, transfer_id: str) -> "TransferMeta":
        """Settings assumed for a namespace that has no metadata object."""
        return cls(id=transfer_id)

    def is_expired(self, now: Optional[int] = None) -> bool:
        if self.expires_at is None:
            return False
        current = int(time.time()) if now is None else now
        return current > self.expires_at

    def to_json(self) -> bytes:
        return json.dumps(
            {
                "id": self.id,
                "pin": self.pin,
                "requirePaid": self.require_paid,
                "createdAt": self.created_at,
                "expiresAt": self.expires_at,
            },
            separators=(",", ":"),
        ).encode("utf-8")

    @classmethod
    def from_json(cls, raw: bytes) -> "TransferMeta":
        data = json.loads(raw.decode("utf-8"))
        return cls(
            id=str(data["id"]),
            pin=data.get("pin") or None,
            require_paid=data.get("requirePaid") is True,
            created_at=data.get("createdAt"),
            expires_at=data.get("expiresAt"),
        )


class TransferMetadataStore:
    def __init__(
        self,
        storage: StorageProvider,
        *,
        ttl_seconds: int,
        cache_size: int = 1024,
        page_size: int = 1000,
        id_factory: Callable[[], str] = new_transfer_id,
    ) -> None:
        self._storage = storage
        self._ttl = ttl_seconds
        self._cache_size = cache_size
        self._page_size = page_size
        self._id_factory = id_factory
        self._cache: "OrderedDict[str, TransferMeta]" = OrderedDict()

    def _remember(self, meta: TransferMeta) -> None:
        if self._cache_size <= 0:
            return
        self._cache[meta.id] = meta
        self._cache.move_to_end(meta.id)
        while len(self._cache) > self._cache_size:
            self._cache.popitem(last=False)

    async def _exists(self, transfer_id: str) -> bool:
        try:
            await self._storage.get(metadata_key(transfer_id))
        except ObjectNotFound:
            return False
        return True

    async def create(self, pin: Optional[str] = None, require_paid: bool = False, now: Optional[int] = None) -> TransferMeta:
        created_at = int(time.time()) if now is None else now
        try:
            for _ in range(CREATE_ATTEMPTS):
                transfer_id = self._id_factory()
                if await self._exists(transfer_id):
                    continue
                meta = TransferMeta(
                    id=transfer_id,
                    pin=pin or None,
                    require_paid=bool(require_paid),
                    created_at=created_at,
                    expires_at=created_at + self._ttl if self._ttl > 0 else None,
                )
                await self._storage.put(metadata_key(transfer_id), meta.to_json(), "application/json")
                self._remember(meta)
                return meta
        except Exception as e:
            logger.error("transfer_create_failed", error=str(e))
            raise StorageFailure("transfer_create_failed") from e
        logger.error("transfer_id_exhausted", attempts=CREATE_ATTEMPTS)
        raise StorageFailure("transfer_create_failed")

    async def load(self, transfer_id: str) -> Optional[TransferMeta]:
        cached = self._cache.get(transfer_id)
        if cached is not None:
            self._cache.move_to_end(transfer_id)
            return cached
        try:
            raw = await self._storage.get(metadata_key(transfer_id))
        except ObjectNotFound:
            return None
        try:
            meta = TransferMeta.from_json(raw)
        except (ValueError, KeyError, TypeError) as e:
            logger.error("transfer_metadata_invalid", transfer_id=transfer_id, error=str(e))
            raise RelayError("transfer_metadata_invalid") from e
        self._remember(meta)
        return meta

    async def delete_namespace(self, transfer_id: str) -> int:
        """Delete every object of a transfer, metadata included. Returns the number of objects removed."""
        self._cache.pop(transfer_id, None)
        namespace = transfer_namespace(transfer_id)
        keys = [entry.key async for entry in iter_prefix(self._storage, namespace, self._page_size)]
        for key in keys:
            await self._storage.delete(key)
        return len(keys)
