# Telegram source driver via python-telegram-bot (v20+).
# Uses long-polling to receive channel posts and the bot API to look up files.
#
# The bot must be an administrator of every source channel, otherwise
# Telegram does not deliver channel_post updates to it.
#
# Two pieces live here:
#   TelegramDriver       – receives posts and feeds them to the bridge
#   TelegramFileFetcher  – the file-fetch collaborator used by FetchScheduler:
#                          get_file() → file URL, then a streamed GET of it

import asyncio

import aiohttp
from telegram import Bot, Message, Update
from telegram.error import BadRequest, TelegramError
from telegram.ext import Application, ContextTypes, MessageHandler, filters

import services.logger as log
from services.error import NetworkFailure, NotFound
from services.message import IncomingMessage, MediaFile, PhotoSize, StickerFile
from drivers import SourceDriver

l = log.get_logger()

_CHUNK = 65536


# ----------------------------------------------------------------------
# Update → IncomingMessage
# ----------------------------------------------------------------------

def _media(obj) -> MediaFile | None:
    if obj is None:
        return None
    return MediaFile(
        file_id=obj.file_id,
        unique_id=obj.file_unique_id,
        file_name=getattr(obj, "file_name", None),  # voice notes have no name
        mime_type=getattr(obj, "mime_type", None),
        file_size=obj.file_size,
    )


def to_incoming(msg: Message) -> IncomingMessage:
    """Reduce a telegram ``Message`` to the fields the mirror uses."""
    # Media posts use caption instead of text
    text = msg.text or msg.caption or None

    photos = None
    if msg.photo:
        photos = [
            PhotoSize(file_id=p.file_id, unique_id=p.file_unique_id,
                      width=p.width, height=p.height, file_size=p.file_size)
            for p in msg.photo
        ]

    sticker = None
    if msg.sticker is not None:
        sticker = StickerFile(
            file_id=msg.sticker.file_id,
            unique_id=msg.sticker.file_unique_id,
            is_animated=bool(msg.sticker.is_animated),
            is_video=bool(msg.sticker.is_video),
            file_size=msg.sticker.file_size,
        )

    return IncomingMessage(
        channel_id=msg.chat_id,
        text=text,
        photos=photos,
        audio=_media(msg.audio),
        voice=_media(msg.voice),
        # Telegram also sets .document for animations; keep only the animation
        document=None if msg.animation else _media(msg.document),
        sticker=sticker,
        video=_media(msg.video),
        animation=_media(msg.animation),
        message_id=msg.message_id,
    )


# ----------------------------------------------------------------------
# File-fetch collaborator
# ----------------------------------------------------------------------

class TelegramFileFetcher:

    def __init__(self, bot: Bot, session: aiohttp.ClientSession | None = None, timeout: float = 120):
        self._bot = bot
        self._session = session
        self._timeout = timeout

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    async def resolve_path(self, file_id: str) -> str:
        try:
            tg_file = await self._bot.get_file(file_id)
        except BadRequest as e:
            raise NotFound(f"Telegram has no file `{file_id}`: {e}") from e
        except TelegramError as e:
            raise NetworkFailure(f"get_file failed for `{file_id}`: {e}") from e

        if not tg_file.file_path:
            raise NotFound(f"Telegram returned no download path for `{file_id}`")
        l.debug(f"File data: {tg_file}")
        return tg_file.file_path

    async def download(self, path: str, size_hint: int | None) -> bytes:
        session = self._get_session()
        # Pre-size with the declared size; slice assignment grows it if needed
        buf = bytearray(size_hint or 0)
        received = 0
        try:
            async with session.get(path, timeout=aiohttp.ClientTimeout(total=self._timeout)) as resp:
                if resp.status != 200:
                    raise NetworkFailure(f"HTTP {resp.status} while downloading file")
                async for chunk in resp.content.iter_chunked(_CHUNK):
                    end = received + len(chunk)
                    buf[received:end] = chunk
                    received = end
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise NetworkFailure(f"Download failed: {type(e).__name__}: {e}") from e

        del buf[received:]
        return bytes(buf)


# ----------------------------------------------------------------------
# Driver
# ----------------------------------------------------------------------

class TelegramDriver(SourceDriver):

    def __init__(self, instance_id: str, bot: Bot, bridge):
        super().__init__(instance_id, bridge)
        # Posts are handled concurrently; each one is its own pipeline run
        self._app: Application = (
            Application.builder().bot(bot).concurrent_updates(True).build()
        )
        self._app.add_handler(MessageHandler(filters.UpdateType.CHANNEL_POST, self._on_post))
        self._app.add_error_handler(self._on_error)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self):
        # async-with handles initialize() / shutdown() automatically
        async with self._app:
            await self._app.start()
            await self._app.updater.start_polling(allowed_updates=[Update.CHANNEL_POST])
            l.info(f"Telegram [{self.instance_id}] polling started as @{self._app.bot.username}")
            try:
                await asyncio.Event().wait()  # keep running until cancelled
            finally:
                await self._app.updater.stop()
                await self._app.stop()

    # ------------------------------------------------------------------
    # Receive
    # ------------------------------------------------------------------

    async def _on_post(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        post = update.channel_post
        if post is None:
            return
        await self.bridge.on_message(to_incoming(post))

    async def _on_error(self, update: object, context: ContextTypes.DEFAULT_TYPE):
        l.error(f"Telegram [{self.instance_id}] error while handling update: {context.error}")
