import asyncio
import json
from pathlib import Path

import httpx
import pytest

from characterforge.cache import (
    MAX_CACHE_SIZE,
    FileSystemCacheManager,
    NoOpCacheManager,
    create_cache_manager,
)
from characterforge.errors import CacheError
from tests.fakes import FakeClock, make_png

DAY = 24 * 60 * 60


def make_cache(tmp_path, clock=None, **kwargs) -> FileSystemCacheManager:
    return FileSystemCacheManager(tmp_path / "cache", sweep_interval=None, clock=clock or FakeClock(), **kwargs)


def image_client(content: bytes = b"png-bytes", status: int = 200) -> httpx.AsyncClient:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status, content=content)

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_set_bytes_then_get_returns_local_file(tmp_path):
    cache = make_cache(tmp_path)
    png = make_png(2, 2)

    path = await cache.set("key-1", png)

    assert Path(path).read_bytes() == png
    assert await cache.get("key-1") == path
    assert await cache.get("unknown") is None


@pytest.mark.asyncio
async def test_set_remote_url_downloads_image(tmp_path):
    cache = make_cache(tmp_path, http_client=image_client(b"remote-image"))

    path = await cache.set("key-1", "https://cdn.characterforge.test/a.png")

    assert Path(path).read_bytes() == b"remote-image"


@pytest.mark.asyncio
async def test_set_data_uri_is_decoded(tmp_path):
    cache = make_cache(tmp_path)

    path = await cache.set("key-1", "data:image/png;base64,aGVsbG8=")

    assert Path(path).read_bytes() == b"hello"


@pytest.mark.asyncio
async def test_download_failure_falls_back_to_remote_url(tmp_path):
    cache = make_cache(tmp_path, http_client=image_client(status=500))
    url = "https://cdn.characterforge.test/a.png"

    assert await cache.set("key-1", url) == url
    assert await cache.get("key-1") is None


@pytest.mark.asyncio
async def test_unwritable_metadata_rolls_back_and_returns_remote_url(tmp_path):
    cache_dir = tmp_path / "cache"
    (cache_dir / "metadata.json").mkdir(parents=True)
    cache = make_cache(tmp_path, http_client=image_client(b"remote-image"))
    url = "https://cdn.characterforge.test/a.png"

    assert await cache.set("key-1", url) == url
    assert len(cache) == 0
    assert list(cache_dir.glob("*.png")) == []


@pytest.mark.asyncio
async def test_unwritable_metadata_for_raw_bytes_is_a_cache_error(tmp_path):
    (tmp_path / "cache" / "metadata.json").mkdir(parents=True)
    cache = make_cache(tmp_path)

    with pytest.raises(CacheError):
        await cache.set("key-1", b"image")
    assert list((tmp_path / "cache").glob("*.png")) == []


@pytest.mark.asyncio
async def test_replacing_an_entry_removes_the_old_file(tmp_path):
    cache = make_cache(tmp_path)
    first = await cache.set("key-1", b"one")

    second = await cache.set("key-1", b"two")

    assert not Path(first).exists()
    assert Path(second).read_bytes() == b"two"
    assert len(cache) == 1


@pytest.mark.asyncio
async def test_unsupported_locator_is_passed_through(tmp_path):
    cache = make_cache(tmp_path)

    assert await cache.set("key-1", "not-a-url") == "not-a-url"


@pytest.mark.asyncio
async def test_expired_entry_is_removed_lazily(tmp_path):
    clock = FakeClock()
    cache = make_cache(tmp_path, clock=clock)
    path = await cache.set("key-1", b"image")

    clock.advance(7 * DAY + 1)

    assert await cache.get("key-1") is None
    assert not Path(path).exists()
    assert len(cache) == 0


@pytest.mark.asyncio
async def test_missing_backing_file_is_a_miss(tmp_path):
    cache = make_cache(tmp_path)
    path = await cache.set("key-1", b"image")
    Path(path).unlink()

    assert await cache.get("key-1") is None
    assert len(cache) == 0


@pytest.mark.asyncio
async def test_overflow_evicts_least_recently_accessed(tmp_path):
    clock = FakeClock()
    cache = make_cache(tmp_path, clock=clock, max_size=3)
    paths = {}
    for key in ("a", "b", "c"):
        paths[key] = await cache.set(key, key.encode())
        clock.advance(1)

    # Touch "a" so "b" becomes the least recently accessed entry
    await cache.get("a")
    clock.advance(1)
    await cache.set("d", b"d")

    assert len(cache) == 3
    assert await cache.get("b") is None
    assert not Path(paths["b"]).exists()
    for key in ("a", "c", "d"):
        assert await cache.get(key) is not None


@pytest.mark.asyncio
async def test_default_capacity_is_enforced(tmp_path):
    clock = FakeClock()
    cache = make_cache(tmp_path, clock=clock)

    for index in range(MAX_CACHE_SIZE + 1):
        await cache.set(f"key-{index}", b"x")
        clock.advance(1)

    assert MAX_CACHE_SIZE == 100
    assert len(cache) == MAX_CACHE_SIZE
    assert await cache.get("key-0") is None


@pytest.mark.asyncio
async def test_metadata_survives_a_new_instance(tmp_path):
    clock = FakeClock()
    path = await make_cache(tmp_path, clock=clock).set("key-1", b"image")

    assert await make_cache(tmp_path, clock=clock).get("key-1") == path


@pytest.mark.asyncio
async def test_corrupt_metadata_starts_empty(tmp_path):
    cache_dir = tmp_path / "cache"
    cache_dir.mkdir()
    (cache_dir / "metadata.json").write_text("{not json")
    cache = make_cache(tmp_path)

    assert await cache.get("key-1") is None
    await cache.set("key-1", b"image")
    assert json.loads((cache_dir / "metadata.json").read_text())["key-1"]["file_name"].endswith(".png")


@pytest.mark.asyncio
async def test_delete_and_clear(tmp_path):
    cache = make_cache(tmp_path)
    first = await cache.set("a", b"a")
    await cache.set("b", b"b")

    await cache.delete("a")
    assert not Path(first).exists()
    assert await cache.get("a") is None

    await cache.clear()
    assert len(cache) == 0
    assert await cache.get("b") is None


@pytest.mark.asyncio
async def test_sweep_removes_expired_entries(tmp_path):
    clock = FakeClock()
    cache = make_cache(tmp_path, clock=clock)
    await cache.set("old", b"old")
    clock.advance(8 * DAY)
    await cache.set("new", b"new")

    assert cache.sweep_expired() == 1
    assert len(cache) == 1


@pytest.mark.asyncio
async def test_background_sweep_starts_lazily_and_destroy_is_idempotent(tmp_path):
    cache = FileSystemCacheManager(tmp_path / "cache", sweep_interval=3600)

    await cache.get("anything")
    task = cache._sweep_task
    assert task is not None and not task.done()

    cache.destroy()
    cache.destroy()

    with pytest.raises(asyncio.CancelledError):
        await task
    assert cache._sweep_task is None


@pytest.mark.asyncio
async def test_noop_cache():
    cache = NoOpCacheManager()

    assert await cache.get("key") is None
    assert await cache.set("key", "https://cdn/a.png") == "https://cdn/a.png"
    with pytest.raises(CacheError):
        await cache.set("key", b"bytes")


def test_create_cache_manager_uses_env_dir(tmp_path, monkeypatch):
    monkeypatch.setenv("CHARACTERFORGE_CACHE_DIR", str(tmp_path / "sdk-cache"))

    cache = create_cache_manager()

    assert isinstance(cache, FileSystemCacheManager)
    assert cache.cache_dir == tmp_path / "sdk-cache"


def test_create_cache_manager_falls_back_to_noop(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("not a directory")

    assert isinstance(create_cache_manager(blocker / "cache"), NoOpCacheManager)
