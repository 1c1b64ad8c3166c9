"""
ClassiCrawl - Classified Listings Crawler
Main entry point: one-shot search walks, reference listings and the watch loop.
"""

import sys
import json
import time
import signal
import logging
import argparse
import threading
from dataclasses import asdict
from datetime import datetime
from urllib.parse import urlparse
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from config import LOG_FILE, CHECK_INTERVAL_SECONDS, DEFAULT_TIMEZONE, USE_BROWSER
from database import ensure_schema, get_seen_ids, store_listings, cleanup_old_listings, get_listing_count
from errors import ClassiCrawlError, FetchError, QueryError
from fetch import FetchContext, create_fetcher
from reference import fetch_categories, fetch_locations, resolve_timezone
from scrapers import CraigslistScraper
from timestamps import parse_cutoff

logger = logging.getLogger("ClassiCrawl")


# Global flag for graceful shutdown
running = True
# Set on shutdown; backs the FetchContext of the running check so page walks stop too
shutdown_event = threading.Event()


def setup_logging(verbose: bool = False):
    """Log to LOG_FILE and stderr (stdout carries the listings)."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.FileHandler(LOG_FILE),
            logging.StreamHandler(sys.stderr),
        ],
    )


def signal_handler(signum, frame):
    """Handle shutdown signals gracefully."""
    global running
    if not running:
        # Second Ctrl+C = force exit immediately
        logger.info("Force exit...")
        sys.exit(1)
    logger.info("Shutdown signal received, stopping... (press Ctrl+C again to force)")
    running = False
    shutdown_event.set()


def site_timezone(url: str) -> str:
    """Timezone of the site a search URL points at (DEFAULT_TIMEZONE if unknown)."""
    site = (urlparse(url).hostname or "").split(".")[0]
    try:
        locations = fetch_locations()
    except FetchError as e:
        logger.warning(f"Could not load locations, using {DEFAULT_TIMEZONE}: {e}")
        return DEFAULT_TIMEZONE
    return resolve_timezone(site, locations)


def run_search(url: str, since: str = None, max_pages: int = None,
               timezone: str = None, use_browser: bool = False) -> int:
    """
    Walk every page of one search and print listings as JSON lines.

    Returns:
        Process exit code (2 for bad arguments, 1 if the walk ended with an error)
    """
    timezone = timezone or site_timezone(url)
    try:
        tz = ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError) as e:
        logger.error(f"Invalid --timezone value {timezone!r}: {e}")
        return 2

    try:
        cutoff = parse_cutoff(since, tz) if since else None
    except ClassiCrawlError as e:
        logger.error(f"Invalid --since value: {e}")
        return 2

    scraper = CraigslistScraper(fetcher=create_fetcher(use_browser), timezone=timezone)
    try:
        result = scraper.search(url, cutoff)
        printed = 0
        for page_number, listings in enumerate(result.pages(cutoff), start=1):
            for listing in listings:
                print(json.dumps(listing.to_dict()))
                printed += 1
            if max_pages is not None and page_number >= max_pages:
                break
    except ClassiCrawlError as e:
        logger.error(f"Search failed: {e}")
        return 1
    finally:
        scraper.fetcher.close()

    logger.info(f"Printed {printed} listings from {result.current_page + 1} page(s)")
    if result.error:
        logger.error(f"Search ended with error: {result.error}")
        return 1
    return 0


def run_reference(kind: str) -> int:
    """Print the categories or locations available for search as JSON lines."""
    loader = fetch_categories if kind == "categories" else fetch_locations
    try:
        entries = loader()
    except FetchError as e:
        logger.error(f"Could not load {kind}: {e}")
        return 1

    for abbreviation in sorted(entries):
        print(json.dumps(asdict(entries[abbreviation])))
    return 0


def run_watch(interval: int = CHECK_INTERVAL_SECONDS, use_browser: bool = False) -> int:
    """
    Main monitoring loop.

    Args:
        interval: Seconds between checks
        use_browser: Fetch pages through headless Chromium

    Returns:
        Process exit code (1 if the configured search could not be set up)
    """
    global running

    logger.info("=" * 50)
    logger.info("ClassiCrawl Starting")
    logger.info("=" * 50)

    # Ensure database schema exists
    logger.info("Initializing database...")
    ensure_schema()

    # Reference data is loaded once; it validates the configured search
    # and gives the site's timezone
    logger.info("Loading reference data...")
    try:
        locations = fetch_locations()
        categories = fetch_categories()
    except FetchError as e:
        logger.error(f"Could not load reference data: {e}")
        return 1

    try:
        scraper = CraigslistScraper(
            fetcher=create_fetcher(use_browser),
            locations=locations,
            categories=categories,
        )
    except QueryError as e:
        logger.error(f"Invalid search configuration: {e}")
        return 1

    # Register signal handlers
    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    logger.info(f"Monitoring started. Site timezone: {scraper.timezone}. Check interval: {interval}s")
    logger.info("Press Ctrl+C to stop")

    check_count = 0
    last_cleanup = datetime.now()

    try:
        while running:
            check_count += 1
            logger.info(f"--- Check #{check_count} at {datetime.now().strftime('%H:%M:%S')} ---")

            try:
                # Get seen IDs upfront so scraper can stop early
                seen_ids = get_seen_ids()
                # One check may take at most one interval
                ctx = FetchContext(timeout=interval, cancel_event=shutdown_event)
                new_listings = scraper.get_listings(seen_ids, ctx=ctx)

                for listing in new_listings:
                    print(json.dumps(listing.to_dict()), flush=True)

                stored = store_listings(new_listings)
                logger.info(f"Stored {stored} new listings | DB total: {get_listing_count()}")

            except Exception as e:
                logger.error(f"Error during check: {e}", exc_info=True)

            # Daily cleanup (every 24 hours)
            hours_since_cleanup = (datetime.now() - last_cleanup).total_seconds() / 3600
            if hours_since_cleanup >= 24:
                removed = cleanup_old_listings(days=7)
                logger.info(f"Cleanup: removed {removed} old listings")
                last_cleanup = datetime.now()

            # Wait for next check (use short sleeps so Ctrl+C responds quickly)
            if running:
                logger.debug(f"Sleeping {interval}s until next check...")
                for _ in range(interval):
                    if not running:
                        break
                    time.sleep(1)

    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")
    finally:
        logger.info("Shutting down scraper...")
        scraper.fetcher.close()
        logger.info("ClassiCrawl stopped")

    return 0


def main(argv=None):
    """Entry point with argument parsing."""
    parser = argparse.ArgumentParser(description="ClassiCrawl - Classified Listings Crawler")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--browser",
        action="store_true",
        default=USE_BROWSER,
        help="Fetch pages through headless Chromium",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    search_parser = subparsers.add_parser("search", help="Walk all pages of one search URL")
    search_parser.add_argument("url", help="Search URL without pagination")
    search_parser.add_argument("--since", help="Only listings posted at or after 'YYYY-MM-DD HH:MM'")
    search_parser.add_argument("--max-pages", type=int, help="Stop after this many pages")
    search_parser.add_argument(
        "--timezone",
        help=f"Timezone of the site (default: the site's own, else {DEFAULT_TIMEZONE})",
    )

    subparsers.add_parser("categories", help="List the categories available for search")
    subparsers.add_parser("locations", help="List the locations available for search")

    watch_parser = subparsers.add_parser("watch", help="Poll the configured searches for new listings")
    watch_parser.add_argument(
        "--interval",
        type=int,
        default=CHECK_INTERVAL_SECONDS,
        help="Seconds between checks",
    )

    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    if args.command == "search":
        return run_search(args.url, args.since, args.max_pages, args.timezone, args.browser)
    if args.command in ("categories", "locations"):
        return run_reference(args.command)

    return run_watch(args.interval, args.browser)


if __name__ == "__main__":
    sys.exit(main())
