"""
ClassiCrawl Craigslist Scraper
Runs searches and walks their result pages with the pagination cursor.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional, Set
from zoneinfo import ZoneInfo

from .base import BaseScraper
from database import Listing
from config import (
    CRAIGSLIST_BASE_URL,
    CRAIGSLIST_SITE,
    MAX_PRICE,
    MIN_PRICE,
    SEARCH_CATEGORY,
    SEARCH_TERMS,
    USE_BROWSER,
)
from errors import ClassiCrawlError, CountParseError, QueryError
from fetch import FetchContext, create_fetcher
from parser import parse_html
from reference import (
    Category,
    Filters,
    Location,
    build_query,
    build_search_url,
    find_location,
    resolve_timezone,
)
from search_result import SearchResult

logger = logging.getLogger(__name__)


class CraigslistScraper(BaseScraper):
    """Scraper for Craigslist search result pages."""

    def __init__(self, fetcher=None, timezone: Optional[str] = None,
                 base_url: str = CRAIGSLIST_BASE_URL, category: str = SEARCH_CATEGORY,
                 terms: Optional[List[str]] = None, site: str = CRAIGSLIST_SITE,
                 locations: Optional[Dict[str, Location]] = None,
                 categories: Optional[Dict[str, Category]] = None):
        """
        Initialize Craigslist scraper.

        Args:
            fetcher: Optional fetcher (defaults to HTTP, or browser if USE_BROWSER)
            timezone: IANA timezone of the site's timestamps (defaults to the
                      site's own timezone from locations, then DEFAULT_TIMEZONE)
            base_url: Site URL, e.g. https://newyork.craigslist.org
            category: Category abbreviation searched by get_listings
            terms: Search terms used by get_listings (defaults to SEARCH_TERMS)
            site: Location abbreviation or hostname of the site
            locations: Reference locations; when given the site is validated
            categories: Reference categories; when given the category is validated

        Raises:
            QueryError: the site or category is not in the given reference data
        """
        if locations is not None and find_location(site, locations) is None:
            raise QueryError(f"invalid location provided: {site}")
        if categories is not None and category not in categories:
            raise QueryError(f"invalid category provided: {category}")

        super().__init__("craigslist")
        self._owns_fetcher = fetcher is None
        self.fetcher = fetcher or create_fetcher(USE_BROWSER)
        self.site = site
        self.locations = locations
        self.categories = categories
        self.timezone = timezone or resolve_timezone(site, locations)
        self.base_url = base_url
        self.category = category
        self.terms = list(terms if terms is not None else SEARCH_TERMS)

    def _build_search_url(self, term: str) -> str:
        """Build search URL for a term."""
        filters = Filters(
            min_price=int(MIN_PRICE) if MIN_PRICE else None,
            max_price=int(MAX_PRICE) if MAX_PRICE else None,
            sort="date",  # newest first, required by cutoff and early stop
        )
        query = build_query(self.site, self.category, term, filters,
                            locations=self.locations, categories=self.categories)
        return build_search_url(query, base_url=self.base_url)

    def search(self, url: str, cutoff: Optional[datetime] = None,
               ctx: Optional[FetchContext] = None) -> SearchResult:
        """
        Fetch the first page of a search and wrap it in a cursor.

        A page whose total count cannot be read still yields its listings:
        the cursor is returned already done, with the error attached. So is
        a first page the cutoff left empty, since every later page is older.

        Raises:
            FetchError: the first page could not be fetched
            ParseError: the first page is malformed
        """
        data = self.fetcher.fetch(url, ctx)
        try:
            listings, total_count = parse_html(data, cutoff=cutoff, tz=ZoneInfo(self.timezone))
        except CountParseError as e:
            logger.warning(f"Total count unreadable for {url}: {e}")
            result = SearchResult(self.fetcher, url, len(e.listings), e.listings, self.timezone)
            result.error = e
            result.done = True
            return result

        logger.info(f"Search returned {total_count} results ({len(listings)} on first page)")
        result = SearchResult(self.fetcher, url, total_count, listings, self.timezone)
        if cutoff is not None and not listings:
            logger.debug("No listings on the first page are newer than the cutoff")
            result.done = True
        return result

    def collect(self, url: str, cutoff: Optional[datetime] = None,
                max_pages: Optional[int] = None,
                ctx: Optional[FetchContext] = None) -> List[Listing]:
        """
        Walk every page of a search and return all listings.

        Args:
            url: First-page search URL
            cutoff: Optional timestamp; older listings end the walk
            max_pages: Optional page limit
            ctx: Optional deadline/cancellation context shared by every fetch

        Returns:
            Listings in page order (duplicates across pages are kept)
        """
        result = self.search(url, cutoff, ctx)
        collected = []
        for page_number, listings in enumerate(result.pages(cutoff, ctx), start=1):
            collected.extend(listings)
            if max_pages is not None and page_number >= max_pages:
                break

        if result.error:
            logger.warning(f"Search ended early: {result.error}")
        return collected

    def get_listings(self, seen_ids: Optional[Set[str]] = None,
                     cutoff: Optional[datetime] = None,
                     ctx: Optional[FetchContext] = None) -> List[Listing]:
        """
        Fetch current listings for each configured search term.

        Args:
            seen_ids: Optional set of posting IDs already stored.
                      If provided, scraper will stop early when it hits a known ID.
            cutoff: Optional timestamp; older listings are not returned
            ctx: Optional deadline/cancellation context shared by every fetch

        Returns:
            List of Listing objects (only new ones if seen_ids provided)
        """
        page_seen_ids = set()  # Dedupe across search terms and pages within this cycle
        all_listings = []

        for term in self.terms or [""]:
            if ctx is not None and ctx.cancelled:
                logger.info("Search cancelled, skipping remaining terms")
                break

            try:
                url = self._build_search_url(term)
                logger.info(f"Searching Craigslist: {term or '(all)'}")
                result = self.search(url, cutoff, ctx)
            except ClassiCrawlError as e:
                logger.error(f"Error searching for '{term}': {e}")
                continue

            early_stopped = False
            for listings in result.pages(cutoff, ctx):
                for listing in listings:
                    # Early stop: results are newest-first, everything below is older
                    if seen_ids and listing.posting_id in seen_ids:
                        logger.debug(f"Early stop: hit known listing {listing.posting_id}")
                        early_stopped = True
                        break
                    if not listing.posting_id or listing.posting_id not in page_seen_ids:
                        page_seen_ids.add(listing.posting_id)
                        all_listings.append(listing)
                if early_stopped:
                    break

            if result.error:
                logger.error(f"Search for '{term}' ended early: {result.error}")

        logger.info(f"Craigslist: Found {len(all_listings)} new listings")
        return all_listings

    def close(self):
        """Close the fetcher if this scraper created it."""
        if self._owns_fetcher:
            self.fetcher.close()
