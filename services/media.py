# Optional on-disk copy of mirrored attachments.
#
# Enabled with ``save_media_dir`` in the config.  The archive reads the same
# fetched bytes the dispatcher sends (PendingAttachment.wait() returns the
# cached outcome), so nothing is downloaded twice.
#
# Usage:
#   archive = MediaArchive(Path("data/media"))
#   saved = await archive.save(unified_message)

import asyncio
from pathlib import Path

import services.logger as log
from services.error import FetchError
from services.message import UnifiedMessage

l = log.get_logger()


def safe_filename(name: str, fallback: str) -> str:
    """Strip any directory part from a platform-supplied file name."""
    base = Path(name.replace("\\", "/")).name
    if base in ("", ".", ".."):
        return fallback
    return base


class MediaArchive:

    def __init__(self, directory: Path):
        self.directory = directory

    async def save(self, message: UnifiedMessage) -> list[Path]:
        """Write every successfully fetched attachment of *message* to disk.

        Failed fetches and empty files are skipped with a warning; a write
        error on one file does not stop the others.
        """
        await asyncio.to_thread(self.directory.mkdir, parents=True, exist_ok=True)

        saved: list[Path] = []
        for pending in message.attachments:
            ref = pending.ref
            path = self.directory / safe_filename(ref.file_name, ref.unique_id)
            try:
                data = await pending.wait()
            except FetchError as e:
                l.warning(f"Not saving `{path}`: {e}")
                continue

            if not data:
                l.warning(f"File `{path}` had no length, not saving")
                continue

            if ref.file_size is not None:
                l.debug(f"Saving attachment: {path}, downloaded {len(data)}/{ref.file_size} bytes")
            else:
                l.debug(f"Saving attachment: {path}, downloaded {len(data)} bytes")

            try:
                await asyncio.to_thread(path.write_bytes, data)
            except OSError as e:
                l.error(f"Failed to save `{path}`: {e}")
                continue
            saved.append(path)

        return saved
