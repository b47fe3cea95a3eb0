"""Error types for the music news aggregator."""


class MusicNewsError(Exception):
    """Base class for all aggregator errors."""


class FeedUnavailable(MusicNewsError):
    """A single feed could not be downloaded or parsed."""

    def __init__(self, source: str, url: str, reason: str):
        self.source = source
        self.url = url
        self.reason = reason
        super().__init__(f"Feed {source} ({url}) unavailable: {reason}")


class TranslationUnavailable(MusicNewsError):
    """The translation provider is not configured or returned an error."""


class FeedSourceLoadFailed(MusicNewsError):
    """The remote feed list could not be fetched or parsed."""


class InvalidRequest(MusicNewsError):
    """A request parameter is out of range or not numeric."""


class InternalFailure(MusicNewsError):
    """Unexpected failure in the request orchestration itself."""
