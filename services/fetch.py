# Background retrieval of attachment bytes.
#
# A PendingAttachment is created from an AttachmentRef and its fetch started
# right away, so downloads overlap with the rest of the pipeline.  Creation and
# start are two separate calls; the scheduler's optional semaphore sits between
# them and bounds how many fetches are in flight across all messages.

import asyncio
from enum import Enum
from typing import Protocol

import services.logger as log
from services.error import AttachmentConsumed, FetchError, NetworkFailure
from services.message import AttachmentRef

l = log.get_logger()


class FileFetcher(Protocol):
    """The file-fetch collaborator (e.g. the Telegram bot API)."""

    async def resolve_path(self, file_id: str) -> str:
        """Return a transient download path for *file_id*; raise ``NotFound``."""

    async def download(self, path: str, size_hint: int | None) -> bytes:
        """Download *path* into memory; raise ``NetworkFailure``."""


class FetchState(str, Enum):
    SCHEDULED = "scheduled"
    FETCHING = "fetching"
    RESOLVED = "resolved"
    FAILED = "failed"
    CONSUMED = "consumed"


class PendingAttachment:
    """An AttachmentRef plus the handle of its (possibly running) fetch.

    The outcome is written once by the fetch task.  ``wait()`` may be called
    any number of times and always returns that same outcome; ``take()``
    additionally marks the handle consumed and succeeds only once.
    """

    def __init__(self, ref: AttachmentRef):
        self.ref = ref
        self.state = FetchState.SCHEDULED
        self._task: asyncio.Task | None = None
        self._taken = False

    def __repr__(self) -> str:
        return f"<PendingAttachment {self.ref.file_name!r} {self.state.value}>"

    @property
    def started(self) -> bool:
        return self._task is not None

    @property
    def done(self) -> bool:
        return self._task is not None and self._task.done()

    async def wait(self) -> bytes:
        """Block the calling task until the fetch finishes; return the bytes or
        raise the ``FetchError`` it ended with."""
        if self._task is None:
            raise RuntimeError(f"fetch of {self.ref.file_name!r} was never started")
        if self._task.cancelled():
            raise FetchError(f"fetch of {self.ref.file_name!r} was cancelled", self.ref)
        # Shielded so a cancelled waiter does not cancel the fetch for others.
        try:
            data, error = await asyncio.shield(self._task)
        except asyncio.CancelledError:
            # The fetch was cancelled under us; a cancelled waiter propagates.
            if not self._task.cancelled():
                raise
            raise FetchError(f"fetch of {self.ref.file_name!r} was cancelled", self.ref) from None
        if error is not None:
            raise error
        return data

    async def take(self) -> bytes:
        """Like ``wait()``, but hands ownership of the bytes to the caller."""
        if self._taken:
            raise AttachmentConsumed(f"{self.ref.file_name!r} was already consumed")
        self._taken = True
        try:
            return await self.wait()
        finally:
            self.state = FetchState.CONSUMED

    def cancel(self) -> None:
        """Abandon the fetch if it is still running."""
        if self._task is not None and not self._task.done():
            self._task.cancel()


class FetchScheduler:
    """Starts and tracks attachment fetches against a FileFetcher."""

    def __init__(self, fetcher: FileFetcher, max_concurrent: int | None = None):
        self._fetcher = fetcher
        self._gate = asyncio.Semaphore(max_concurrent) if max_concurrent else None
        # Strong references so running fetches are not garbage collected
        self._tasks: set[asyncio.Task] = set()

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    def create(self, ref: AttachmentRef) -> PendingAttachment:
        return PendingAttachment(ref)

    def start_fetch(self, pending: PendingAttachment) -> None:
        """Start retrieval in the background.  Calling it again is a no-op, a
        ref is only ever fetched once."""
        if pending._task is not None:
            return
        task = asyncio.create_task(self._run(pending), name=f"fetch/{pending.ref.unique_id}")
        pending._task = task
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def schedule(self, ref: AttachmentRef) -> PendingAttachment:
        pending = self.create(ref)
        self.start_fetch(pending)
        return pending

    async def await_bytes(self, pending: PendingAttachment) -> bytes:
        return await pending.take()

    async def cancel_all(self) -> None:
        """Cancel every fetch still running (used on shutdown)."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    # ------------------------------------------------------------------
    # Worker
    # ------------------------------------------------------------------

    async def _run(self, pending: PendingAttachment) -> tuple[bytes | None, FetchError | None]:
        if self._gate is None:
            return await self._fetch(pending)
        async with self._gate:
            return await self._fetch(pending)

    async def _fetch(self, pending: PendingAttachment) -> tuple[bytes | None, FetchError | None]:
        pending.state = FetchState.FETCHING
        ref = pending.ref
        try:
            path = await self._fetcher.resolve_path(ref.file_id)
            data = await self._fetcher.download(path, ref.file_size)
        except FetchError as e:
            if e.ref is None:
                e.ref = ref
            pending.state = FetchState.FAILED
            l.debug(f"Fetch of `{ref.file_name}` failed: {e}")
            return None, e
        except Exception as e:
            error = NetworkFailure(f"{type(e).__name__}: {e}", ref)
            error.__cause__ = e
            pending.state = FetchState.FAILED
            l.debug(f"Fetch of `{ref.file_name}` failed: {error}")
            return None, error

        pending.state = FetchState.RESOLVED
        if ref.file_size is not None:
            l.debug(f"Fetched `{ref.file_name}`, downloaded {len(data)}/{ref.file_size} bytes")
        else:
            l.debug(f"Fetched `{ref.file_name}`, downloaded {len(data)} bytes")
        return bytes(data), None
