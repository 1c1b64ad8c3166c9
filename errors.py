"""
ClassiCrawl Errors
Exception types raised while fetching and parsing search result pages.
"""


class ClassiCrawlError(Exception):
    """Base class for all ClassiCrawl errors."""


class FetchError(ClassiCrawlError):
    """A page could not be retrieved (network failure, non-2xx, cancelled)."""

    def __init__(self, message: str, url: str = "", status: int = None):
        super().__init__(message)
        self.url = url
        self.status = status


class ParseError(ClassiCrawlError):
    """A results page is structurally malformed."""


class FormatError(ParseError, ValueError):
    """A row timestamp does not have the expected shape."""


class CountParseError(ParseError):
    """The total result count is missing or not numeric.

    The listings extracted before the count was read are kept on the
    exception so callers can still use them.
    """

    def __init__(self, message: str, listings=None):
        super().__init__(message)
        self.listings = list(listings or [])


class RowSkipped(ClassiCrawlError):
    """A result row carries no listing (promotional filler and the like)."""


class QueryError(ClassiCrawlError, ValueError):
    """A search query references an unknown location, category or filter."""
