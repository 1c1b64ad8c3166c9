"""
ClassiCrawl Search Result
Pagination cursor over the pages of one search.

Because postings can arrive while pages are being fetched, a page may
repeat the last rows of the previous one (or a row may be missed). For
example: page 1 is fetched, a new listing is posted, page 2 is fetched;
page 2 now starts with the last listing of page 1. The cursor does not
deduplicate.
"""

import logging
from datetime import datetime
from typing import Iterator, List, Optional
from zoneinfo import ZoneInfo

from config import DEFAULT_TIMEZONE, PAGE_OFFSET_PARAM, PAGE_SIZE
from database import Listing
from errors import FetchError, ParseError
from fetch import FetchContext
from parser import parse_html

logger = logging.getLogger(__name__)


def page_url(base_url: str, offset: int) -> str:
    """Append the row offset to a search URL."""
    separator = "&" if "?" in base_url else "?"
    return f"{base_url}{separator}{PAGE_OFFSET_PARAM}={offset}"


class SearchResult:
    """
    Resumable walk over the result pages of one search.

    Created from the first page; each advance() fetches and parses the
    next page in place. Once done is set the cursor is inert.
    """

    def __init__(self, fetcher, base_url: str, total_count: int,
                 listings: List[Listing], timezone: Optional[str] = None):
        """
        Args:
            fetcher: Object with fetch(url, ctx) -> bytes
            base_url: Search URL without pagination
            total_count: Result count reported by the first page
            listings: Listings of the first page
            timezone: IANA name the page timestamps are expressed in
        """
        self.fetcher = fetcher
        self.base_url = base_url
        self.timezone = timezone or DEFAULT_TIMEZONE
        self.tz = ZoneInfo(self.timezone)
        self.total_count = total_count
        self.listings = list(listings)
        self.current_page = 0
        self.error: Optional[Exception] = None
        self.done = self._is_last_page(0, len(self.listings))

    def __repr__(self):
        return (
            f"SearchResult(page={self.current_page}, listings={len(self.listings)}, "
            f"total={self.total_count}, done={self.done})"
        )

    def _is_last_page(self, offset: int, count: int) -> bool:
        """
        Decide whether the page at offset holding count rows is the last one.

        The total count decides first. Every page but the last is full, so
        a short page is final too (it also means a cutoff stopped parsing).
        An empty page is not final here: on the first page it is left for
        the first advance to confirm, and advance() stops on it anyway.
        """
        if offset + count >= self.total_count:
            return True
        return 0 < count < PAGE_SIZE

    @property
    def offset(self) -> int:
        return self.current_page * PAGE_SIZE

    def _finish(self, error: Exception) -> List[Listing]:
        self.done = True
        self.error = error
        self.listings = []
        return self.listings

    def advance(self, cutoff: Optional[datetime] = None,
                ctx: Optional[FetchContext] = None) -> List[Listing]:
        """
        Fetch and parse the next page.

        Failures never raise: they end the walk and are kept on self.error.

        Args:
            cutoff: Optional timestamp; older rows end the page early
            ctx: Optional deadline/cancellation context for the fetch

        Returns:
            The new page's listings (also stored on self.listings)
        """
        if self.done:
            logger.debug("advance() called on a finished search")
            return []

        self.current_page += 1
        offset = self.offset
        url = page_url(self.base_url, offset)
        logger.debug(f"Fetching page {self.current_page} (offset {offset}): {url}")

        try:
            data = self.fetcher.fetch(url, ctx)
        except FetchError as e:
            logger.error(f"Error fetching page {self.current_page}: {e}")
            return self._finish(e)

        try:
            page = parse_html(data, cutoff=cutoff, tz=self.tz, with_count=False)
        except ParseError as e:
            logger.error(f"Error parsing page {self.current_page}: {e}")
            return self._finish(e)

        self.listings = page.listings

        if not self.listings:
            # a cutoff can leave a page empty even though the count says more remain
            self.done = True
        elif self._is_last_page(offset, len(self.listings)):
            self.done = True

        return self.listings

    def pages(self, cutoff: Optional[datetime] = None,
              ctx: Optional[FetchContext] = None) -> Iterator[List[Listing]]:
        """
        Yield the current page's listings, then each following page until done.

        ctx is handed to every advance(), so cancelling it ends the walk at
        the next fetch with a FetchError on self.error.
        """
        if self.listings:
            yield self.listings
        while not self.done:
            listings = self.advance(cutoff, ctx)
            if listings:
                yield listings

    def __iter__(self) -> Iterator[Listing]:
        for listings in self.pages():
            yield from listings
