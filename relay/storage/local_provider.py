"""
Local filesystem storage provider for development and tests.
Saves objects under a local directory instead of a remote bucket.
"""
import os
from pathlib import Path
from typing import List, Optional

from starlette.concurrency import run_in_threadpool

from .provider import ListPage, ObjectEntry, ObjectNotFound, StorageProvider


class LocalStorageProvider(StorageProvider):
    """Local filesystem storage provider for development."""

    name = "local"

    def __init__(self, base_dir: str = "var/storage"):
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def _get_path(self, key: str) -> Path:
        """Get the local filesystem path for a given key."""
        parts = [p for p in key.replace("\\", "/").split("/") if p not in ("", ".", "..")]
        return self.base_dir.joinpath(*parts)

    def _all_keys(self, prefix: str) -> List[str]:
        keys = []
        for root, _dirs, files in os.walk(self.base_dir):
            for fname in files:
                rel = Path(root, fname).relative_to(self.base_dir).as_posix()
                if rel.startswith(prefix):
                    keys.append(rel)
        keys.sort()
        return keys

    def _write(self, key: str, data: bytes) -> None:
        path = self._get_path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "wb") as f:
            f.write(data)

    def _read(self, key: str) -> bytes:
        path = self._get_path(key)
        if not path.is_file():
            raise ObjectNotFound(key)
        with open(path, "rb") as f:
            return f.read()

    def _list(self, prefix: str, cursor: Optional[str], page_size: int) -> ListPage:
        keys = self._all_keys(prefix)
        if cursor:
            keys = [k for k in keys if k > cursor]
        page = keys[:page_size]
        entries = [ObjectEntry(key=k, size=self._get_path(k).stat().st_size) for k in page]
        next_cursor = page[-1] if len(keys) > page_size else None
        return ListPage(entries=entries, next_cursor=next_cursor)

    def _remove(self, key: str) -> None:
        path = self._get_path(key)
        if path.is_file():
            path.unlink()

    async def put(self, key: str, data: bytes, content_type: str) -> None:
        await run_in_threadpool(self._write, key, data)

    async def get(self, key: str) -> bytes:
        return await run_in_threadpool(self._read, key)

    async def list_page(self, prefix: str, cursor: Optional[str] = None, page_size: int = 1000) -> ListPage:
        return await run_in_threadpool(self._list, prefix, cursor, page_size)

    async def delete(self, key: str) -> None:
        await run_in_threadpool(self._remove, key)
