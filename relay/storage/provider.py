from dataclasses import dataclass, field
from typing import List, Optional


class ObjectNotFound(Exception):
    def __init__(self, key: str) -> None:
        super().__init__(key)
        self.key = key


@dataclass(frozen=True)
class ObjectEntry:
    key: str
    size: int


@dataclass(frozen=True)
class ListPage:
    entries: List[ObjectEntry] = field(default_factory=list)
    next_cursor: Optional[str] = None


class StorageProvider:
    """Async object store capability used by the relay.

    Keys are plain strings without a leading slash. list_page returns at most
    page_size entries under prefix and a cursor for the next page, or None
    when the listing is exhausted.
    """

    name = "abstract"

    async def put(self, key: str, data: bytes, content_type: str) -> None:
        raise NotImplementedError

    async def get(self, key: str) -> bytes:
        raise NotImplementedError

    async def list_page(self, prefix: str, cursor: Optional[str] = None, page_size: int = 1000) -> ListPage:
        raise NotImplementedError

    async def delete(self, key: str) -> None:
        raise NotImplementedError

    def generate_upload_url(self, key: str, content_type: str, expires_s: int) -> str:
        raise NotImplementedError

    async def close(self) -> None:
        return None
