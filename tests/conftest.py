"""Pytest configuration and shared fakes for the fetch and send collaborators."""

import asyncio

import pytest

from services.error import NotFound, Unreachable
from services.message import DestinationEndpoint
from services.routes import RouteTable


CHANNEL = -1001765404638
OTHER_CHANNEL = -1001514642130


class FakeFetcher:
    """File-fetch collaborator backed by a dict of file_id → bytes | Exception."""

    def __init__(self, files=None, delay: float = 0.0):
        self.files = dict(files or {})
        self.delay = delay
        self.resolved: list[str] = []
        self.downloads: list[tuple[str, int | None]] = []

    async def resolve_path(self, file_id: str) -> str:
        self.resolved.append(file_id)
        if self.delay:
            await asyncio.sleep(self.delay)
        if file_id not in self.files:
            raise NotFound(f"no file `{file_id}`")
        return f"files/{file_id}"

    async def download(self, path: str, size_hint):
        self.downloads.append((path, size_hint))
        result = self.files[path.removeprefix("files/")]
        if isinstance(result, Exception):
            raise result
        return result


class FakeSender:
    """Endpoint-send collaborator that records calls; URLs in *fail_on* raise."""

    def __init__(self, fail_on=()):
        self.fail_on = set(fail_on)
        self.calls = []

    async def send(self, endpoint, message):
        self.calls.append((endpoint, message))
        if endpoint.url in self.fail_on:
            raise Unreachable(endpoint, "connection refused")


@pytest.fixture
def endpoints():
    return [
        DestinationEndpoint(url=f"https://discord.com/api/webhooks/{i}/tok{i}",
                            username=f"Herald {i}", avatar_url="https://cdn.example/a.png")
        for i in (1, 2, 3)
    ]


@pytest.fixture
def routes(endpoints):
    return RouteTable({CHANNEL: endpoints})


@pytest.fixture
def fetcher():
    return FakeFetcher()


@pytest.fixture
def sender():
    return FakeSender()
