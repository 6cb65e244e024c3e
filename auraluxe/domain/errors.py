class InvalidArgument(Exception):
    """Caller supplied an invalid value. Surfaced to clients as a 400."""


class DuplicateEntry(InvalidArgument):
    """Entry already exists where duplicates are not allowed."""


class NotFound(Exception):
    """Requested resource was not found."""


class UpstreamProviderFailure(Exception):
    """A catalog provider errored, timed out or returned a malformed payload."""

    def __init__(self, message: str, provider: str = "") -> None:
        super().__init__(message)
        self.provider = provider


class RateLimited(UpstreamProviderFailure):
    """Operation was rate limited by provider. Includes suggested wait time in milliseconds."""

    def __init__(self, retry_after_ms: int, message: str = "Rate limited", provider: str = "") -> None:
        super().__init__(message, provider=provider)
        self.retry_after_ms = retry_after_ms


class PlaybackFailure(Exception):
    """The media resource failed to load or play."""


class PlaybackInterrupted(PlaybackFailure):
    """A pending play request was interrupted by a newer load or pause."""


class PersistenceFailure(Exception):
    """Reading or writing the library store failed."""
