"""Errors raised by the scraping layer."""


class ScraperError(Exception):
    """Base class for known scraper failures."""

    def __init__(self, message: str, *, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class FetchFailure(ScraperError):
    """A listing page could not be retrieved."""

    def __init__(
        self,
        message: str,
        *,
        url: str,
        status: int | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message, cause=cause)
        self.url = url
        self.status = status


class NetworkError(FetchFailure):
    """Timeout, DNS failure, connection reset or another transport error."""


class AntiBotBlock(FetchFailure):
    """The directory refused automated access (e.g. 403 or 429)."""


class MalformedPage(ScraperError):
    """The expected table structure is missing from a page."""
