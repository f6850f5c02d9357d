"""
Live ZIP archives of a transfer namespace.

Objects are fetched one at a time in listing order, each buffered in memory
on its own, and queued on a zipstream-ng ZipStream. The queued entry is
encoded and handed to the consumer before the next object is fetched, so the
archive as a whole is never held in memory.

The central directory is only generated once every entry went out. A failed
fetch stops the stream before that, which leaves the client with a truncated
archive it can detect.
"""
import asyncio
import time
from typing import AsyncIterator, Awaitable, Callable, Iterable, List, Optional
from zipfile import ZIP_DEFLATED

import structlog
from zipstream import ZipStream

from ..errors import EmptyPackageError, RelayError
from ..storage.provider import ObjectEntry, StorageProvider
from .lister import list_transfer_objects
from .transfers import relative_key

logger = structlog.get_logger(__name__)

WRITE_SLICE = 64 * 1024

StopCheck = Callable[[], Awaitable[bool]]
Sink = Callable[[bytes], Awaitable[None]]


class StreamCancelled(RelayError):
    code = "stream_cancelled"
    status_code = 499


def _slices(data: bytes) -> Iterable[bytes]:
    view = memoryview(data)
    for offset in range(0, len(view), WRITE_SLICE):
        yield bytes(view[offset:offset + WRITE_SLICE])


class ArchiveStream:
    def __init__(
        self,
        storage: StorageProvider,
        namespace: str,
        entries: List[ObjectEntry],
        *,
        compress_level: int = 9,
        should_stop: Optional[StopCheck] = None,
    ) -> None:
        self.storage = storage
        self.namespace = namespace
        self.entries = entries
        self.compress_level = compress_level
        self.should_stop = should_stop
        self.fetched = 0
        self.bytes_sent = 0

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self._generate()

    async def _generate(self) -> AsyncIterator[bytes]:
        zs = ZipStream(compress_type=ZIP_DEFLATED, compress_level=self.compress_level)
        started = time.monotonic()
        logger.info("archive_started", namespace=self.namespace, entries=len(self.entries))
        try:
            for entry in self.entries:
                if self.should_stop is not None and await self.should_stop():
                    raise StreamCancelled()
                data = await self.storage.get(entry.key)
                self.fetched += 1
                zs.add(_slices(data), arcname=relative_key(self.namespace, entry.key))
                for chunk in zs.all_files():
                    self.bytes_sent += len(chunk)
                    yield chunk
            for chunk in zs.finalize():
                self.bytes_sent += len(chunk)
                yield chunk
            logger.info(
                "archive_finished",
                namespace=self.namespace,
                entries=self.fetched,
                bytes=self.bytes_sent,
                elapsed_s=round(time.monotonic() - started, 3),
            )
        except (StreamCancelled, GeneratorExit, asyncio.CancelledError):
            logger.info("archive_aborted", namespace=self.namespace, fetched=self.fetched, bytes=self.bytes_sent)
            raise
        except Exception as e:
            logger.warning(
                "archive_failed",
                namespace=self.namespace,
                fetched=self.fetched,
                bytes=self.bytes_sent,
                error=repr(e),
            )
            raise

    async def write_to(self, sink: Sink) -> int:
        """Push the archive into an async sink, returning the number of bytes written."""
        async for chunk in self:
            await sink(chunk)
        return self.bytes_sent


class ArchiveStreamer:
    def __init__(self, storage: StorageProvider, *, compress_level: int = 9, page_size: int = 1000) -> None:
        self._storage = storage
        self._compress_level = compress_level
        self._page_size = page_size

    async def open(self, namespace: str, should_stop: Optional[StopCheck] = None) -> ArchiveStream:
        """List the namespace and prepare a stream; raises EmptyPackageError before any byte exists."""
        entries = [entry async for entry in list_transfer_objects(self._storage, namespace, self._page_size)]
        if not entries:
            raise EmptyPackageError()
        return ArchiveStream(
            self._storage,
            namespace,
            entries,
            compress_level=self._compress_level,
            should_stop=should_stop,
        )


async def stream_archive(
    storage: StorageProvider,
    namespace: str,
    entries: List[ObjectEntry],
    sink: Sink,
    *,
    compress_level: int = 9,
    should_stop: Optional[StopCheck] = None,
) -> int:
    if not entries:
        raise EmptyPackageError()
    stream = ArchiveStream(storage, namespace, entries, compress_level=compress_level, should_stop=should_stop)
    return await stream.write_to(sink)
