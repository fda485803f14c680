"""Filesystem adapter tests against a pytest tmp_path root."""

from __future__ import annotations

from pathlib import Path

import pytest

from tempshare.infra.storage.fs_adapter import FilesystemAdapter
from tempshare.ports.object_storage_port import ObjectStoragePort
from tempshare.shared.errors import ObjectNotFoundError, StorageError


async def _read(adapter: FilesystemAdapter, path: str, start: int = 0, end: int | None = None) -> bytes:
    return b"".join([chunk async for chunk in adapter.read(path, start, end)])


async def _write(adapter: FilesystemAdapter, path: str, *chunks: bytes, buffer_size: int = 4) -> None:
    writer = await adapter.open_writer(path, buffer_size=buffer_size, concurrency=1)
    for chunk in chunks:
        await writer.write(chunk)
    await writer.close()


@pytest.fixture
def adapter(tmp_path: Path) -> FilesystemAdapter:
    fs = FilesystemAdapter(tmp_path / "storage", read_chunk_size=3)
    fs.connect()
    return fs


@pytest.mark.unit
class TestFilesystemAdapterContract:
    def test_is_object_storage_port(self, adapter: FilesystemAdapter) -> None:
        assert isinstance(adapter, ObjectStoragePort)

    def test_connect_creates_root(self, adapter: FilesystemAdapter) -> None:
        assert adapter.root.is_dir()


@pytest.mark.unit
class TestFilesystemWriteRead:
    async def test_round_trip_creates_parent_directories(self, adapter: FilesystemAdapter) -> None:
        await _write(adapter, "1718010000/abc.txt", b"hello ", b"wor", b"ld")

        assert (adapter.root / "1718010000" / "abc.txt").read_bytes() == b"hello world"
        assert await _read(adapter, "1718010000/abc.txt") == b"hello world"

    async def test_ranged_read(self, adapter: FilesystemAdapter) -> None:
        await _write(adapter, "b/f.bin", b"0123456789")
        assert await _read(adapter, "b/f.bin", 2, 7) == b"234567"
        assert await _read(adapter, "b/f.bin", 8) == b"89"

    async def test_range_past_end_is_clamped_by_eof(self, adapter: FilesystemAdapter) -> None:
        await _write(adapter, "b/f.bin", b"0123")
        assert await _read(adapter, "b/f.bin", 2, 100) == b"23"

    async def test_read_missing(self, adapter: FilesystemAdapter) -> None:
        with pytest.raises(ObjectNotFoundError):
            await _read(adapter, "b/missing.bin")

    async def test_read_directory_is_missing(self, adapter: FilesystemAdapter) -> None:
        await adapter.create_dir("b/parts/")
        with pytest.raises(ObjectNotFoundError):
            await _read(adapter, "b/parts")

    async def test_write_after_close(self, adapter: FilesystemAdapter) -> None:
        writer = await adapter.open_writer("b/f.bin", buffer_size=4, concurrency=1)
        await writer.close()
        with pytest.raises(StorageError):
            await writer.write(b"late")

    async def test_close_is_idempotent(self, adapter: FilesystemAdapter) -> None:
        writer = await adapter.open_writer("b/f.bin", buffer_size=4, concurrency=1)
        await writer.write(b"ab")
        await writer.close()
        await writer.close()
        assert await _read(adapter, "b/f.bin") == b"ab"


@pytest.mark.unit
class TestFilesystemMetadata:
    async def test_stat_file(self, adapter: FilesystemAdapter) -> None:
        await _write(adapter, "b/f.bin", b"12345")
        meta = await adapter.stat("b/f.bin")
        assert meta.content_length == 5
        assert not meta.is_dir

    async def test_stat_directory(self, adapter: FilesystemAdapter) -> None:
        await adapter.create_dir("b/ref.mp4/")
        meta = await adapter.stat("b/ref.mp4")
        assert meta.is_dir
        assert meta.path == "b/ref.mp4/"

    async def test_stat_missing(self, adapter: FilesystemAdapter) -> None:
        with pytest.raises(ObjectNotFoundError):
            await adapter.stat("b/nothing")

    async def test_exists(self, adapter: FilesystemAdapter) -> None:
        await adapter.create_dir("b/ref.mp4/")
        assert await adapter.exists("b/ref.mp4/")
        assert not await adapter.exists("b/other.mp4/")

    async def test_list_root(self, adapter: FilesystemAdapter) -> None:
        await adapter.create_dir("200/")
        await _write(adapter, "100/a.txt", b"a")
        await _write(adapter, "stray.txt", b"abc")

        entries = await adapter.list_dir("")

        assert [(e.path, e.is_dir) for e in entries] == [
            ("100/", True),
            ("200/", True),
            ("stray.txt", False),
        ]
        assert [e.name for e in entries] == ["100", "200", "stray.txt"]
        assert entries[2].content_length == 3

    async def test_list_nested(self, adapter: FilesystemAdapter) -> None:
        await _write(adapter, "b/ref.mp4/1", b"bb")
        await _write(adapter, "b/ref.mp4/0", b"a")

        entries = await adapter.list_dir("b/ref.mp4/")

        assert [(e.path, e.content_length) for e in entries] == [("b/ref.mp4/0", 1), ("b/ref.mp4/1", 2)]

    async def test_list_missing_directory(self, adapter: FilesystemAdapter) -> None:
        assert await adapter.list_dir("nope/") == []


@pytest.mark.unit
class TestFilesystemRemoveAll:
    async def test_removes_tree(self, adapter: FilesystemAdapter) -> None:
        await _write(adapter, "100/a.txt", b"a")
        await _write(adapter, "100/b.mp4/0", b"b")
        await _write(adapter, "200/c.txt", b"c")

        await adapter.remove_all("100/")

        assert not (adapter.root / "100").exists()
        assert (adapter.root / "200" / "c.txt").exists()

    async def test_missing_is_noop(self, adapter: FilesystemAdapter) -> None:
        await adapter.remove_all("404/")

    async def test_refuses_root(self, adapter: FilesystemAdapter) -> None:
        with pytest.raises(StorageError):
            await adapter.remove_all("/")

    async def test_path_escape_rejected(self, adapter: FilesystemAdapter) -> None:
        with pytest.raises(StorageError, match="escapes"):
            await adapter.remove_all("../outside/")
