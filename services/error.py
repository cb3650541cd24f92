from __future__ import annotations

from contextlib import contextmanager
import sys
import traceback
from typing import TYPE_CHECKING

import services.logger as log

if TYPE_CHECKING:
    from services.message import AttachmentKind, AttachmentRef, DestinationEndpoint

l = log.get_logger()


def _handle_uncaught_exceptions(exc_type, exc_value, exc_traceback):
    """Global exception handler for uncaught exceptions."""
    if issubclass(exc_type, KeyboardInterrupt):
        sys.__excepthook__(exc_type, exc_value, exc_traceback)
        return

    l.critical(
        "Unhandled exception caught:\n"
        + ''.join(traceback.format_exception(exc_type, exc_value, exc_traceback))
    )


sys.excepthook = _handle_uncaught_exceptions


# ----------------------------------------------------------------------
# Taxonomy
# ----------------------------------------------------------------------

class MirrorError(Exception):
    """Base class for every per-item failure in the mirroring pipeline."""


class ClassificationError(MirrorError):
    """One media kind of a message could not be turned into an attachment."""

    def __init__(self, kind: AttachmentKind, message: str):
        super().__init__(message)
        self.kind = kind


class UnknownMimeType(ClassificationError):

    def __init__(self, kind: AttachmentKind, mime_type: str | None):
        if mime_type:
            message = f"Could not look up extension for {kind.value} mime type `{mime_type}`"
        else:
            message = f"Failed to get mime type for {kind.value}"
        super().__init__(kind, message)
        self.mime_type = mime_type


class UnsupportedAttachmentKind(ClassificationError):
    pass


class FetchError(MirrorError):
    """Retrieving the bytes of one attachment failed.

    File-fetch collaborators only know file ids, so they raise without a
    *ref*; the fetch scheduler fills it in.
    """

    def __init__(self, message: str, ref: AttachmentRef | None = None):
        super().__init__(message)
        self.ref = ref


class NotFound(FetchError):
    pass


class NetworkFailure(FetchError):
    pass


class DispatchError(MirrorError):
    """Sending to one destination endpoint failed."""

    def __init__(self, endpoint: DestinationEndpoint, message: str):
        super().__init__(message)
        self.endpoint = endpoint


class Unreachable(DispatchError):
    pass


class Rejected(DispatchError):

    def __init__(self, endpoint: DestinationEndpoint, message: str, status: int | None = None):
        super().__init__(endpoint, message)
        self.status = status


class AttachmentConsumed(RuntimeError):
    """A pending attachment was taken a second time."""


# ----------------------------------------------------------------------
# Helpers
# ----------------------------------------------------------------------

def raise_and_log(message: str, exception_type: type = Exception):
    """
    Log an error and then raise the specified exception.

    :param message: Error message to log and include in the exception.
    :param exception_type: Type of exception to raise (default: Exception).
    """
    l.error(f"Raising exception: {message}")
    raise exception_type(message)


@contextmanager
def catch_and_log(context_info: str = ""):
    """
    Log any exception raised inside the block with *context_info*, then
    re-raise it.
    """
    try:
        yield
    except Exception as e:
        l.error(f"Exception caught in context '{context_info}': {e}")
        raise
