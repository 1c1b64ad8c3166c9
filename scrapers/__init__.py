"""ClassiCrawl Scrapers Package"""

from .base import BaseScraper
from .craigslist import CraigslistScraper

__all__ = ["BaseScraper", "CraigslistScraper"]
