# Discord webhook sender (send-only).
#
# Each destination endpoint is a Discord webhook URL.  Messages are posted via
# discord.py's Webhook over a shared aiohttp session, with the endpoint's
# username / avatar as per-message identity overrides and attachments
# re-uploaded as files.
#
# Endpoint fields:
#   url        – https://discord.com/api/webhooks/<id>/<token>
#   username   – display name shown on the mirrored message
#   avatar_url – avatar shown on the mirrored message

import asyncio
import io

import aiohttp
import discord

import services.logger as log
from services.error import Rejected, Unreachable
from services.message import DestinationEndpoint, OutboundMessage

l = log.get_logger()


class DiscordWebhookSender:

    def __init__(self, session: aiohttp.ClientSession | None = None):
        self._session = session
        # webhook url → discord.Webhook
        self._webhooks: dict[str, discord.Webhook] = {}

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._webhooks.clear()
        return self._session

    def _webhook(self, url: str) -> discord.Webhook:
        session = self._get_session()
        webhook = self._webhooks.get(url)
        if webhook is None:
            webhook = discord.Webhook.from_url(url, session=session)
            self._webhooks[url] = webhook
        return webhook

    async def send(self, endpoint: DestinationEndpoint, message: OutboundMessage) -> None:
        try:
            webhook = self._webhook(endpoint.url)
        except ValueError as e:
            raise Unreachable(endpoint, f"Invalid webhook URL: {e}") from e

        kwargs: dict = {"wait": True}
        if message.text is not None:
            kwargs["content"] = message.text
        if endpoint.username:
            kwargs["username"] = endpoint.username
        if endpoint.avatar_url:
            kwargs["avatar_url"] = endpoint.avatar_url
        if message.files:
            # Fresh buffers per send; the same bytes go to every endpoint
            kwargs["files"] = [
                discord.File(io.BytesIO(f.data), filename=f.file_name)
                for f in message.files
            ]

        try:
            await webhook.send(**kwargs)
        except discord.HTTPException as e:
            raise Rejected(endpoint, f"Discord webhook error HTTP {e.status}: {e.text}", e.status) from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise Unreachable(endpoint, f"{type(e).__name__}: {e}") from e

        l.debug(f"Discord webhook '{endpoint}' accepted message with {len(message.files)} file(s)")
