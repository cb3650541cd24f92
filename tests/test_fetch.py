"""Tests for background attachment fetching."""

import asyncio

import pytest

from conftest import FakeFetcher
from services.error import AttachmentConsumed, FetchError, NetworkFailure, NotFound
from services.fetch import FetchScheduler, FetchState
from services.message import AttachmentKind, AttachmentRef


def _ref(file_id: str, size=None) -> AttachmentRef:
    return AttachmentRef(AttachmentKind.DOCUMENT, file_id, f"u-{file_id}", f"{file_id}.bin", size)


class CountingFetcher(FakeFetcher):
    """Tracks how many downloads run at the same time."""

    def __init__(self, files):
        super().__init__(files)
        self.active = 0
        self.peak = 0

    async def download(self, path, size_hint):
        self.active += 1
        self.peak = max(self.peak, self.active)
        try:
            await asyncio.sleep(0.01)
            return await super().download(path, size_hint)
        finally:
            self.active -= 1


@pytest.mark.asyncio
async def test_schedule_starts_fetch_immediately():
    fetcher = FakeFetcher({"a": b"data"})
    scheduler = FetchScheduler(fetcher)

    pending = scheduler.schedule(_ref("a", 4))
    assert pending.started

    assert await scheduler.await_bytes(pending) == b"data"
    assert fetcher.resolved == ["a"]
    assert fetcher.downloads == [("files/a", 4)]
    assert pending.state is FetchState.CONSUMED


@pytest.mark.asyncio
async def test_create_does_not_fetch_until_started():
    fetcher = FakeFetcher({"a": b"data"})
    scheduler = FetchScheduler(fetcher)

    pending = scheduler.create(_ref("a"))
    await asyncio.sleep(0)
    assert not pending.started
    assert pending.state is FetchState.SCHEDULED
    assert fetcher.resolved == []

    with pytest.raises(RuntimeError):
        await pending.wait()

    scheduler.start_fetch(pending)
    assert await pending.wait() == b"data"


@pytest.mark.asyncio
async def test_fetch_starts_at_most_once():
    fetcher = FakeFetcher({"a": b"data"})
    scheduler = FetchScheduler(fetcher)

    pending = scheduler.create(_ref("a"))
    scheduler.start_fetch(pending)
    scheduler.start_fetch(pending)
    await pending.wait()
    assert fetcher.resolved == ["a"]


@pytest.mark.asyncio
async def test_wait_is_idempotent_but_take_is_single_use():
    scheduler = FetchScheduler(FakeFetcher({"a": b"data"}))
    pending = scheduler.schedule(_ref("a"))

    assert await pending.wait() == b"data"
    assert await pending.wait() == b"data"
    assert pending.state is FetchState.RESOLVED

    assert await pending.take() == b"data"
    with pytest.raises(AttachmentConsumed):
        await pending.take()
    # The cached outcome stays readable
    assert await pending.wait() == b"data"


@pytest.mark.asyncio
async def test_missing_file_fails_with_not_found():
    scheduler = FetchScheduler(FakeFetcher())
    ref = _ref("missing")
    pending = scheduler.schedule(ref)

    with pytest.raises(NotFound) as exc_info:
        await pending.wait()
    assert exc_info.value.ref == ref
    assert pending.state is FetchState.FAILED


@pytest.mark.asyncio
async def test_unexpected_errors_become_network_failures():
    scheduler = FetchScheduler(FakeFetcher({"a": ConnectionResetError("reset by peer")}))
    pending = scheduler.schedule(_ref("a"))

    with pytest.raises(NetworkFailure) as exc_info:
        await pending.wait()
    assert "reset by peer" in str(exc_info.value)
    assert isinstance(exc_info.value.__cause__, ConnectionResetError)


@pytest.mark.asyncio
async def test_fetches_run_concurrently():
    fetcher = CountingFetcher({"a": b"1", "b": b"2", "c": b"3"})
    scheduler = FetchScheduler(fetcher)

    pending = [scheduler.schedule(_ref(fid)) for fid in "abc"]
    results = await asyncio.gather(*(p.wait() for p in pending))

    assert results == [b"1", b"2", b"3"]
    assert fetcher.peak == 3


@pytest.mark.asyncio
async def test_concurrency_gate_bounds_in_flight_fetches():
    fetcher = CountingFetcher({fid: fid.encode() for fid in "abcde"})
    scheduler = FetchScheduler(fetcher, max_concurrent=2)

    pending = [scheduler.schedule(_ref(fid)) for fid in "abcde"]
    await asyncio.gather(*(p.wait() for p in pending))

    assert fetcher.peak == 2
    assert scheduler.in_flight == 0


@pytest.mark.asyncio
async def test_cancelled_fetch_reports_fetch_error():
    scheduler = FetchScheduler(FakeFetcher({"a": b"data"}, delay=1))
    pending = scheduler.schedule(_ref("a"))
    await asyncio.sleep(0)

    pending.cancel()
    await asyncio.sleep(0.01)

    with pytest.raises(FetchError):
        await pending.wait()


@pytest.mark.asyncio
async def test_cancel_all_stops_running_fetches():
    scheduler = FetchScheduler(FakeFetcher({"a": b"data"}, delay=1))
    pending = scheduler.schedule(_ref("a"))
    await asyncio.sleep(0)

    await scheduler.cancel_all()
    assert pending.done
    assert scheduler.in_flight == 0


@pytest.mark.asyncio
async def test_fetch_cancelled_while_waiting_reports_fetch_error():
    scheduler = FetchScheduler(FakeFetcher({"a": b"data"}, delay=1))
    pending = scheduler.schedule(_ref("a"))

    waiter = asyncio.create_task(pending.wait())
    await asyncio.sleep(0.01)
    pending.cancel()

    with pytest.raises(FetchError):
        await waiter


@pytest.mark.asyncio
async def test_cancelled_waiter_leaves_fetch_running():
    scheduler = FetchScheduler(FakeFetcher({"a": b"data"}, delay=0.05))
    pending = scheduler.schedule(_ref("a"))

    waiter = asyncio.create_task(pending.wait())
    await asyncio.sleep(0.01)
    waiter.cancel()

    with pytest.raises(asyncio.CancelledError):
        await waiter
    assert await pending.wait() == b"data"
