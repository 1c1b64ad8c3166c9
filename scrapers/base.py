"""
ClassiCrawl Base Scraper
Abstract base class for classified-ad scrapers.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Set, Optional

from database import Listing


class BaseScraper(ABC):
    """Abstract base class for classified-ad scrapers."""

    def __init__(self, platform: str):
        """
        Initialize the scraper.

        Args:
            platform: Platform identifier (e.g., 'craigslist')
        """
        self.platform = platform

    @abstractmethod
    def get_listings(self, seen_ids: Optional[Set[str]] = None,
                     cutoff: Optional[datetime] = None, ctx=None) -> List[Listing]:
        """
        Fetch current listings from the configured searches.

        Args:
            seen_ids: Optional set of posting IDs already stored.
                      If provided, scraper will stop early when it hits a known ID.
            cutoff: Optional timestamp; older listings are not returned
            ctx: Optional FetchContext; cancelling it stops the searches

        Returns:
            List of Listing objects (only new ones if seen_ids provided)
        """
        pass

    @abstractmethod
    def close(self):
        """Clean up any resources (browser, connections, etc.)."""
        pass
