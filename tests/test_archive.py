import asyncio
import io
import zipfile

import pytest

from relay.errors import EmptyPackageError
from relay.services.archive import ArchiveStreamer, StreamCancelled, stream_archive
from relay.storage.provider import ListPage, ObjectEntry, ObjectNotFound, StorageProvider

NS = "transfers/AB3XQ9/"
EOCD = b"PK\x05\x06"


class MemoryStorage(StorageProvider):
    def __init__(self, objects=None, fail_on=None, slow_on=None):
        self.objects = dict(objects or {})
        self.fail_on = fail_on
        self.slow_on = slow_on
        self.gets = []
        self.cancelled_gets = []

    async def get(self, key):
        self.gets.append(key)
        if key == self.fail_on:
            raise ObjectNotFound(key)
        if key == self.slow_on:
            try:
                await asyncio.sleep(30)
            except asyncio.CancelledError:
                self.cancelled_gets.append(key)
                raise
        return self.objects[key]

    async def list_page(self, prefix, cursor=None, page_size=1000):
        entries = [ObjectEntry(k, len(v)) for k, v in self.objects.items() if k.startswith(prefix)]
        return ListPage(entries=entries, next_cursor=None)


def _entries(storage):
    return [ObjectEntry(k, len(v)) for k, v in storage.objects.items()]


def _collect(stream):
    async def run():
        return [chunk async for chunk in stream]

    return asyncio.run(run())


def test_archive_contains_every_object_in_listing_order():
    objects = {
        NS + "b.txt": b"second",
        NS + "a.txt": b"first" * 1000,
        NS + "docs/c.md": b"# third\n",
        NS + ".transfer.json": b"{}",
    }
    storage = MemoryStorage(objects)
    stream = asyncio.run(ArchiveStreamer(storage).open(NS))
    data = b"".join(_collect(stream))

    with zipfile.ZipFile(io.BytesIO(data)) as zf:
        assert zf.namelist() == ["b.txt", "a.txt", "docs/c.md"]
        assert zf.read("a.txt") == b"first" * 1000
        assert zf.read("docs/c.md") == b"# third\n"
        assert zf.testzip() is None
        assert all(info.compress_type == zipfile.ZIP_DEFLATED for info in zf.infolist())
    assert storage.gets == [NS + "b.txt", NS + "a.txt", NS + "docs/c.md"]


def test_output_is_incremental():
    objects = {NS + f"part{i}.bin": bytes([i]) * 200_000 for i in range(3)}
    storage = MemoryStorage(objects)
    stream = asyncio.run(ArchiveStreamer(storage, compress_level=0).open(NS))

    async def run():
        chunks, gets_at_chunk = [], []
        async for chunk in stream:
            chunks.append(chunk)
            gets_at_chunk.append(len(storage.gets))
        return chunks, gets_at_chunk

    chunks, gets_at_chunk = asyncio.run(run())
    assert gets_at_chunk[0] == 1
    before_last_fetch = b"".join(c for c, n in zip(chunks, gets_at_chunk) if n < 3)
    assert before_last_fetch.startswith(b"PK\x03\x04")
    assert EOCD not in before_last_fetch
    assert zipfile.ZipFile(io.BytesIO(b"".join(chunks))).namelist() == ["part0.bin", "part1.bin", "part2.bin"]


def test_empty_object_is_archived():
    stream = asyncio.run(ArchiveStreamer(MemoryStorage({NS + "empty.txt": b""})).open(NS))
    with zipfile.ZipFile(io.BytesIO(b"".join(_collect(stream)))) as zf:
        assert zf.read("empty.txt") == b""


def test_empty_namespace_raises_before_any_output():
    storage = MemoryStorage({NS + ".transfer.json": b"{}"})
    with pytest.raises(EmptyPackageError) as exc:
        asyncio.run(ArchiveStreamer(storage).open(NS))
    assert exc.value.code == "empty_package"
    assert storage.gets == []


def test_stream_archive_rejects_empty_entry_list():
    written = []

    async def sink(chunk):
        written.append(chunk)

    with pytest.raises(EmptyPackageError):
        asyncio.run(stream_archive(MemoryStorage(), NS, [], sink))
    assert written == []


def test_stream_archive_writes_to_sink():
    storage = MemoryStorage({NS + "notes.txt": b"hello"})
    out = io.BytesIO()

    async def sink(chunk):
        out.write(chunk)

    total = asyncio.run(stream_archive(storage, NS, _entries(storage), sink))
    assert total == len(out.getvalue())
    assert zipfile.ZipFile(out).read("notes.txt") == b"hello"


def test_fetch_failure_stops_stream_without_central_directory():
    objects = {NS + f"f{i}.txt": b"data %d" % i for i in range(4)}
    storage = MemoryStorage(objects, fail_on=NS + "f2.txt")
    received = []

    async def sink(chunk):
        received.append(chunk)

    with pytest.raises(ObjectNotFound):
        asyncio.run(stream_archive(storage, NS, _entries(storage), sink))

    assert storage.gets == [NS + "f0.txt", NS + "f1.txt", NS + "f2.txt"]
    partial = b"".join(received)
    assert partial.startswith(b"PK\x03\x04")
    assert EOCD not in partial
    with pytest.raises(zipfile.BadZipFile):
        zipfile.ZipFile(io.BytesIO(partial))


def test_disconnect_halts_fetch_loop_within_one_iteration():
    objects = {NS + f"f{i}.txt": b"x" * 100 for i in range(10)}
    storage = MemoryStorage(objects)
    state = {"disconnected": False}

    async def sink(chunk):
        state["disconnected"] = True

    async def should_stop():
        return state["disconnected"]

    with pytest.raises(StreamCancelled):
        asyncio.run(stream_archive(storage, NS, _entries(storage), sink, should_stop=should_stop))
    assert len(storage.gets) <= 2


def test_cancellation_aborts_in_flight_fetch():
    objects = {NS + f"f{i}.txt": b"x" * 100 for i in range(5)}
    storage = MemoryStorage(objects, slow_on=NS + "f1.txt")
    finished = False

    async def run():
        nonlocal finished
        got_chunk = asyncio.Event()

        async def sink(chunk):
            got_chunk.set()

        task = asyncio.create_task(stream_archive(storage, NS, _entries(storage), sink))
        await got_chunk.wait()
        # let the loop reach the slow fetch
        while len(storage.gets) < 2:
            await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        finished = True

    asyncio.run(run())
    assert finished is True
    assert storage.gets == [NS + "f0.txt", NS + "f1.txt"]
    assert storage.cancelled_gets == [NS + "f1.txt"]
