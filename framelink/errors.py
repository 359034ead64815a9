"""Exception hierarchy for the framing adapter."""


class FramelinkError(Exception):
    """Base class for all adapter errors."""

    kind = "adapter"


class TransportError(FramelinkError):
    """The underlying connection failed or was lost abruptly."""

    kind = "transport"

    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(message)
        self.cause = cause


class FramingError(FramelinkError):
    """A frame could not be trusted: malformed payload or bogus length.

    Fatal for the connection. The byte boundaries after a bad frame are
    unknown, so the only recovery is tearing the channel down.
    """

    kind = "framing"


class FrameOverflowError(FramelinkError):
    """More payload bytes were accounted to a frame than its length allows."""

    kind = "consistency"


class ChannelClosedError(FramelinkError):
    """The channel is closing or closed; nothing more can be written or read."""

    kind = "closed"
