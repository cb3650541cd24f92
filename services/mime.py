# MIME type → file extension lookup.
#
# Telegram gives audio, documents, videos and animations a MIME type but often
# no file name, so the mirror derives a name from the file's unique id plus an
# extension looked up here.  The table is static; build one MimeTable at start
# up and hand it to whatever needs it.

from collections.abc import Mapping
from types import MappingProxyType

from services.error import UnknownMimeType
from services.message import AttachmentKind

_MIME_EXT = {
    # images
    "image/jpeg":                    ".jpg",
    "image/png":                     ".png",
    "image/gif":                     ".gif",
    "image/webp":                    ".webp",
    "image/bmp":                     ".bmp",
    "image/tiff":                    ".tiff",
    "image/svg+xml":                 ".svg",
    "image/heic":                    ".heic",
    "image/avif":                    ".avif",
    # audio
    "audio/mpeg":                    ".mp3",
    "audio/mp3":                     ".mp3",
    "audio/mp4":                     ".m4a",
    "audio/x-m4a":                   ".m4a",
    "audio/aac":                     ".aac",
    "audio/ogg":                     ".ogg",
    "audio/opus":                    ".opus",
    "audio/flac":                    ".flac",
    "audio/x-flac":                  ".flac",
    "audio/wav":                     ".wav",
    "audio/x-wav":                   ".wav",
    "audio/webm":                    ".weba",
    "audio/amr":                     ".amr",
    # video
    "video/mp4":                     ".mp4",
    "video/webm":                    ".webm",
    "video/quicktime":               ".mov",
    "video/x-matroska":              ".mkv",
    "video/x-msvideo":               ".avi",
    "video/mpeg":                    ".mpeg",
    "video/3gpp":                    ".3gp",
    # documents and archives
    "application/pdf":               ".pdf",
    "application/zip":               ".zip",
    "application/x-7z-compressed":   ".7z",
    "application/x-rar-compressed":  ".rar",
    "application/vnd.rar":           ".rar",
    "application/gzip":              ".gz",
    "application/x-tar":             ".tar",
    "application/json":              ".json",
    "application/xml":               ".xml",
    "application/msword":            ".doc",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document":   ".docx",
    "application/vnd.ms-excel":      ".xls",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet":         ".xlsx",
    "application/vnd.ms-powerpoint": ".ppt",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation": ".pptx",
    "application/vnd.android.package-archive": ".apk",
    "application/epub+zip":          ".epub",
    "application/x-tgsticker":       ".tgs",
    "text/plain":                    ".txt",
    "text/csv":                      ".csv",
    "text/html":                     ".html",
    "text/markdown":                 ".md",
}


class MimeTable:
    """Read-only MIME type → extension table."""

    def __init__(self, table: Mapping[str, str]):
        self._table = MappingProxyType({k.lower(): v for k, v in table.items()})

    def resolve(self, mime_type: str, kind: AttachmentKind = AttachmentKind.DOCUMENT) -> str:
        """Return the extension (with leading dot) for *mime_type*.

        Parameters such as ``; codecs=opus`` and letter case are ignored.
        Raises ``UnknownMimeType`` (tagged with *kind*) when the type is not in
        the table.
        """
        key = mime_type.split(";", 1)[0].strip().lower()
        try:
            return self._table[key]
        except KeyError:
            raise UnknownMimeType(kind, mime_type) from None

    def __contains__(self, mime_type: str) -> bool:
        return mime_type.split(";", 1)[0].strip().lower() in self._table

    def __len__(self) -> int:
        return len(self._table)


DEFAULT_MIME_TABLE = MimeTable(_MIME_EXT)
