from typing import NamedTuple

import services.logger as log
from services.error import ClassificationError, UnknownMimeType, UnsupportedAttachmentKind
from services.message import AttachmentKind, AttachmentRef, IncomingMessage, MediaFile
from services.mime import MimeTable

l = log.get_logger()


class Classification(NamedTuple):
    refs: list[AttachmentRef]
    errors: list[ClassificationError]


class AttachmentClassifier:
    """
    Turns the populated media fields of an IncomingMessage into AttachmentRefs.

    Each kind has its own rule and is evaluated on its own: a kind that cannot
    be named (unknown MIME type, unsupported sticker) is logged, recorded in
    ``Classification.errors`` and left out, while the other kinds go through.
    """

    def __init__(self, mime_table: MimeTable):
        self._mime = mime_table

    def classify(self, message: IncomingMessage) -> Classification:
        refs: list[AttachmentRef] = []
        errors: list[ClassificationError] = []

        rules = (
            (AttachmentKind.PHOTO,     self._photo),
            (AttachmentKind.AUDIO,     self._audio),
            (AttachmentKind.VOICE,     self._voice),
            (AttachmentKind.DOCUMENT,  self._document),
            (AttachmentKind.STICKER,   self._sticker),
            (AttachmentKind.VIDEO,     self._video),
            (AttachmentKind.ANIMATION, self._animation),
        )
        for kind, rule in rules:
            try:
                ref = rule(message)
            except ClassificationError as e:
                l.warning(f"Failed to parse {kind.value} attachment of message {message.message_id}: {e}")
                errors.append(e)
                continue
            if ref is not None:
                l.debug(f"Classified {kind.value} attachment `{ref.file_name}` ({ref.file_size} bytes)")
                refs.append(ref)

        return Classification(refs, errors)

    # ------------------------------------------------------------------
    # Per-kind rules
    # ------------------------------------------------------------------

    def _extension(self, kind: AttachmentKind, mime_type: str | None) -> str:
        if not mime_type:
            raise UnknownMimeType(kind, None)
        return self._mime.resolve(mime_type, kind)

    def _named_by_mime(self, kind: AttachmentKind, media: MediaFile) -> AttachmentRef:
        """Audio and voice: always unique_id + extension, the MIME type is required."""
        ext = self._extension(kind, media.mime_type)
        return AttachmentRef(kind, media.file_id, media.unique_id,
                             f"{media.unique_id}{ext}", media.file_size)

    def _named_by_platform(self, kind: AttachmentKind, media: MediaFile) -> AttachmentRef:
        """Documents, videos and animations: keep the platform's name when it
        sent one, otherwise fall back to unique_id + extension."""
        if media.file_name:
            file_name = media.file_name
        else:
            file_name = f"{media.unique_id}{self._extension(kind, media.mime_type)}"
        return AttachmentRef(kind, media.file_id, media.unique_id, file_name, media.file_size)

    def _photo(self, message: IncomingMessage) -> AttachmentRef | None:
        if not message.photos:
            return None
        # Variants arrive smallest first; only the largest one is mirrored.
        photo = message.photos[-1]
        return AttachmentRef(AttachmentKind.PHOTO, photo.file_id, photo.unique_id,
                             f"{photo.unique_id}.jpg", photo.file_size)

    def _audio(self, message: IncomingMessage) -> AttachmentRef | None:
        if message.audio is None:
            return None
        return self._named_by_mime(AttachmentKind.AUDIO, message.audio)

    def _voice(self, message: IncomingMessage) -> AttachmentRef | None:
        if message.voice is None:
            return None
        return self._named_by_mime(AttachmentKind.VOICE, message.voice)

    def _document(self, message: IncomingMessage) -> AttachmentRef | None:
        if message.document is None:
            return None
        return self._named_by_platform(AttachmentKind.DOCUMENT, message.document)

    def _video(self, message: IncomingMessage) -> AttachmentRef | None:
        if message.video is None:
            return None
        return self._named_by_platform(AttachmentKind.VIDEO, message.video)

    def _animation(self, message: IncomingMessage) -> AttachmentRef | None:
        if message.animation is None:
            return None
        return self._named_by_platform(AttachmentKind.ANIMATION, message.animation)

    def _sticker(self, message: IncomingMessage) -> AttachmentRef | None:
        sticker = message.sticker
        if sticker is None:
            return None
        # Stickers carry no MIME type; the format flags decide the extension.
        if sticker.is_animated:
            raise UnsupportedAttachmentKind(
                AttachmentKind.STICKER, "Animated (.tgs) stickers are not supported"
            )
        ext = ".webm" if sticker.is_video else ".png"
        return AttachmentRef(AttachmentKind.STICKER, sticker.file_id, sticker.unique_id,
                             f"{sticker.unique_id}{ext}", sticker.file_size)
