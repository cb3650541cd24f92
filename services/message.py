from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from services.fetch import PendingAttachment


class AttachmentKind(str, Enum):
    PHOTO = "photo"
    AUDIO = "audio"
    VOICE = "voice"
    DOCUMENT = "document"
    STICKER = "sticker"
    VIDEO = "video"
    ANIMATION = "animation"


# ----------------------------------------------------------------------
# Inbound (source platform) side
# ----------------------------------------------------------------------

@dataclass
class MediaFile:
    """Audio, voice, document, video or animation as delivered by the source."""
    file_id: str
    unique_id: str
    file_name: str | None = None
    mime_type: str | None = None
    file_size: int | None = None


@dataclass
class PhotoSize:
    """One resolution variant of a photo."""
    file_id: str
    unique_id: str
    width: int = 0
    height: int = 0
    file_size: int | None = None


@dataclass
class StickerFile:
    file_id: str
    unique_id: str
    is_animated: bool = False
    is_video: bool = False
    file_size: int | None = None


@dataclass
class IncomingMessage:
    """One channel post, reduced to the fields the mirror cares about."""
    channel_id: int
    text: str | None = None            # text, or caption for media posts
    photos: list[PhotoSize] | None = None  # ascending resolution
    audio: MediaFile | None = None
    voice: MediaFile | None = None
    document: MediaFile | None = None
    sticker: StickerFile | None = None
    video: MediaFile | None = None
    animation: MediaFile | None = None
    message_id: int | None = None


# ----------------------------------------------------------------------
# Pipeline side
# ----------------------------------------------------------------------

@dataclass(frozen=True)
class AttachmentRef:
    """A classified attachment: what to fetch and what to call it."""
    kind: AttachmentKind
    file_id: str
    unique_id: str
    file_name: str
    file_size: int | None = None  # bytes, as declared by the source; None = unknown


@dataclass
class UnifiedMessage:
    """Text plus pending attachments, sorted smallest first."""
    text: str | None
    attachments: list["PendingAttachment"] = field(default_factory=list)


# ----------------------------------------------------------------------
# Outbound (destination) side
# ----------------------------------------------------------------------

@dataclass(frozen=True)
class DestinationEndpoint:
    url: str
    username: str = ""    # display name override
    avatar_url: str = ""  # avatar override

    def __str__(self) -> str:
        return self.username or "endpoint"


@dataclass(frozen=True)
class OutboundFile:
    file_name: str
    data: bytes


@dataclass
class OutboundMessage:
    """The payload sent identically to every endpoint of a route."""
    text: str | None
    files: list[OutboundFile] = field(default_factory=list)
