from __future__ import annotations

from collections.abc import Iterable, Mapping
from types import MappingProxyType
from typing import TYPE_CHECKING

import services.logger as log
from services.error import raise_and_log
from services.message import DestinationEndpoint

if TYPE_CHECKING:
    from services.config_schema import AppConfig

l = log.get_logger()

Route = tuple[DestinationEndpoint, ...]


def _freeze(channel_id: int, endpoints: Iterable[DestinationEndpoint]) -> Route:
    route = tuple(endpoints)
    if not route:
        raise_and_log(f"Route for channel {channel_id} has no endpoints", ValueError)
    return route


class RouteTable:
    """
    Source channel id → ordered destination endpoints.

    The table is an immutable snapshot; writers build a new one and swap it in
    with a single assignment, so readers on the message path never lock and
    always see either the old or the new table as a whole.
    """

    def __init__(self, routes: Mapping[int, Iterable[DestinationEndpoint]] | None = None):
        self._routes: Mapping[int, Route] = MappingProxyType({})
        if routes:
            self.replace(routes)

    @classmethod
    def from_config(cls, config: AppConfig) -> RouteTable:
        table = cls()
        table.replace(config.build_routes())
        return table

    def lookup(self, channel_id: int) -> Route | None:
        return self._routes.get(channel_id)

    def register(self, channel_id: int, endpoints: Iterable[DestinationEndpoint]) -> None:
        """Add or overwrite the route of one channel."""
        route = _freeze(channel_id, endpoints)
        routes = dict(self._routes)
        routes[channel_id] = route
        self._routes = MappingProxyType(routes)
        l.debug(f"Registered route for channel {channel_id} ({len(route)} endpoint(s))")

    def replace(self, routes: Mapping[int, Iterable[DestinationEndpoint]]) -> None:
        """Swap in a whole new table (startup and reload)."""
        frozen = {int(cid): _freeze(cid, eps) for cid, eps in routes.items()}
        self._routes = MappingProxyType(frozen)
        l.info(f"Loaded {len(frozen)} channel route(s)")

    def channels(self) -> list[int]:
        return list(self._routes)

    def __contains__(self, channel_id: int) -> bool:
        return channel_id in self._routes

    def __len__(self) -> int:
        return len(self._routes)
