from collections.abc import Iterable

from services.fetch import PendingAttachment
from services.message import UnifiedMessage


def _size_key(pending: PendingAttachment) -> int:
    # Unknown sizes sort first.
    size = pending.ref.file_size
    return -1 if size is None else size


def assemble(text: str | None, attachments: Iterable[PendingAttachment]) -> UnifiedMessage:
    """Combine the message text and its pending attachments.

    *text* is kept exactly as given (``None`` stays ``None``).  Attachments are
    ordered smallest first by declared size; ``sorted`` is stable, so equal
    sizes keep classification order.
    """
    return UnifiedMessage(text=text, attachments=sorted(attachments, key=_size_key))
