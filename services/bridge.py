import services.logger as log
from services.assembler import assemble
from services.classifier import AttachmentClassifier
from services.dispatch import DispatchCoordinator, DispatchReport
from services.fetch import FetchScheduler
from services.media import MediaArchive
from services.message import IncomingMessage
from services.routes import RouteTable

l = log.get_logger()

# Config keys whose values are treated as credentials and must never appear in
# outgoing messages or logs.  Matched as substrings against lower-cased key names.
_SENSITIVE_KEY_PATTERNS = ("token", "secret", "password", "url")
# ...except these, which are public by nature.
_PUBLIC_KEYS = ("avatar_url",)


def _collect_sensitive(obj, found: set[str]) -> None:
    """Recursively extract sensitive string values from the config dict."""
    if isinstance(obj, dict):
        for k, v in obj.items():
            key = str(k).lower()
            if (
                isinstance(v, str) and v
                and key not in _PUBLIC_KEYS
                and any(p in key for p in _SENSITIVE_KEY_PATTERNS)
            ):
                found.add(v)
            else:
                _collect_sensitive(v, found)
    elif isinstance(obj, list):
        for item in obj:
            _collect_sensitive(item, found)


class Bridge:
    """
    The mirroring pipeline.

    Source drivers call ``on_message`` for every channel post.  Posts from
    channels without a route are ignored before any work is done; the rest are
    classified, their attachment fetches started, assembled, and handed to the
    dispatcher.
    """

    def __init__(
        self,
        routes: RouteTable,
        classifier: AttachmentClassifier,
        scheduler: FetchScheduler,
        dispatcher: DispatchCoordinator,
        archive: MediaArchive | None = None,
    ):
        self.routes = routes
        self._classifier = classifier
        self._scheduler = scheduler
        self._dispatcher = dispatcher
        self._archive = archive

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def load_sensitive_values(self, config: dict):
        found: set[str] = set()
        _collect_sensitive(config, found)
        self._dispatcher.set_sensitive(found)
        log.register_sensitive(frozenset(found))
        l.info(f"Loaded {len(found)} sensitive value(s) for leak detection")

    # ------------------------------------------------------------------
    # Message pipeline
    # ------------------------------------------------------------------

    async def on_message(self, message: IncomingMessage) -> DispatchReport | None:
        if message.channel_id not in self.routes:
            l.debug(f"Ignoring message from unmapped channel {message.channel_id}")
            return None

        refs, _errors = self._classifier.classify(message)
        pending = [self._scheduler.schedule(ref) for ref in refs]
        unified = assemble(message.text, pending)

        report = await self._dispatcher.dispatch(message.channel_id, unified)

        if self._archive is not None and report.routed and not report.blocked:
            await self._archive.save(unified)

        if report.routed:
            l.info(
                f"Mirrored message {message.message_id} from channel {message.channel_id}: "
                f"{len(report.sent)} sent, {len(report.failed)} failed, "
                f"{len(report.dropped)} attachment(s) dropped"
            )
        return report
