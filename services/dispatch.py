import asyncio
from dataclasses import dataclass, field
from typing import Protocol

import services.logger as log
from services.error import FetchError
from services.message import DestinationEndpoint, OutboundFile, OutboundMessage, UnifiedMessage
from services.routes import RouteTable

l = log.get_logger()


class EndpointSender(Protocol):
    """The outbound collaborator (e.g. a Discord webhook client)."""

    async def send(self, endpoint: DestinationEndpoint, message: OutboundMessage) -> None:
        """Deliver *message* to *endpoint*; raise ``DispatchError`` on failure."""


@dataclass
class DispatchReport:
    """What happened to one message."""
    routed: bool = False
    blocked: bool = False
    sent: list[DestinationEndpoint] = field(default_factory=list)
    failed: list[tuple[DestinationEndpoint, Exception]] = field(default_factory=list)
    dropped: list[FetchError] = field(default_factory=list)

    @property
    def attempted(self) -> int:
        return len(self.sent) + len(self.failed)


class DispatchCoordinator:
    """
    Fans a UnifiedMessage out to every endpoint routed for its source channel.

    Attachment fetches are joined concurrently and failed ones are dropped.
    Endpoints are then tried one after another in route order, and a failure
    on one of them never stops the next.
    """

    def __init__(self, routes: RouteTable, sender: EndpointSender):
        self._routes = routes
        self._sender = sender
        self._sensitive: frozenset[str] = frozenset()

    def set_sensitive(self, values) -> None:
        """Values (tokens, webhook URLs) that must never be mirrored out."""
        self._sensitive = frozenset(v for v in values if v)

    def _is_sensitive(self, text: str | None) -> bool:
        return bool(text) and any(s in text for s in self._sensitive)

    async def dispatch(self, channel_id: int, message: UnifiedMessage) -> DispatchReport:
        report = DispatchReport()

        route = self._routes.lookup(channel_id)
        if route is None:
            # Not mirrored; nothing will ever read these bytes.
            for pending in message.attachments:
                pending.cancel()
            return report
        report.routed = True

        files = await self._collect(message, report)

        if not message.text and not files:
            l.warning("No message text or attachments to send, didn't send webhook")
            return report

        if self._is_sensitive(message.text):
            l.warning(
                f"Message from channel {channel_id} blocked: text contains a sensitive "
                f"value from config (token/webhook). Possible credential leak."
            )
            report.blocked = True
            return report

        outbound = OutboundMessage(text=message.text, files=files)
        for endpoint in route:
            try:
                await self._sender.send(endpoint, outbound)
            except Exception as e:
                l.error(f"Failed to send to '{endpoint}': {e}")
                report.failed.append((endpoint, e))
                continue
            report.sent.append(endpoint)
            l.info(f"Sent one webhook to '{endpoint}' ({len(files)} file(s))")

        return report

    async def _collect(self, message: UnifiedMessage, report: DispatchReport) -> list[OutboundFile]:
        """Wait for every fetch; keep the successes in message order."""
        results = await asyncio.gather(
            *(pending.take() for pending in message.attachments),
            return_exceptions=True,
        )

        files: list[OutboundFile] = []
        for pending, result in zip(message.attachments, results):
            if isinstance(result, FetchError):
                l.warning(f"Dropping attachment `{pending.ref.file_name}`: {result}")
                report.dropped.append(result)
            elif isinstance(result, BaseException):
                raise result
            else:
                files.append(OutboundFile(pending.ref.file_name, result))
        return files
