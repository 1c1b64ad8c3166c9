"""
ClassiCrawl Database Module
Listing record and SQLite operations for tracking seen listings.
"""

import sqlite3
from datetime import datetime, timedelta
from typing import Set, List, Iterable
from dataclasses import dataclass, asdict

from config import DATABASE_FILE


@dataclass(frozen=True)
class Listing:
    """Represents one row of a search results page."""
    posting_id: str = ""
    repost_of: str = ""
    posted_at: str = ""
    title: str = ""
    link: str = ""
    price: str = ""
    hood: str = ""

    def to_dict(self) -> dict:
        return asdict(self)


def get_connection(path=None):
    """Get a database connection."""
    return sqlite3.connect(path or DATABASE_FILE)


def ensure_schema(path=None):
    """Create the listings table if it doesn't exist."""
    conn = get_connection(path)
    cursor = conn.cursor()

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS listings (
            posting_id TEXT PRIMARY KEY,
            repost_of TEXT,
            posted_at TEXT NOT NULL,
            title TEXT NOT NULL,
            link TEXT NOT NULL,
            price TEXT,
            hood TEXT,
            first_seen TEXT NOT NULL
        )
    """)

    cursor.execute("CREATE INDEX IF NOT EXISTS idx_posted_at ON listings(posted_at)")
    cursor.execute("CREATE INDEX IF NOT EXISTS idx_first_seen ON listings(first_seen)")

    conn.commit()
    conn.close()


def get_seen_ids(path=None) -> Set[str]:
    """
    Get set of already-seen posting IDs.

    Args:
        path: Optional database file (defaults to DATABASE_FILE)

    Returns:
        Set of posting IDs
    """
    ensure_schema(path)
    conn = get_connection(path)
    cursor = conn.cursor()

    cursor.execute("SELECT posting_id FROM listings")

    rows = cursor.fetchall()
    conn.close()

    return set(row[0] for row in rows)


def store_listings(listings: Iterable[Listing], path=None) -> int:
    """
    Store new listings in the database.

    Listings without a posting ID and IDs already stored are skipped, so
    the same posting seen on two consecutive pages is only stored once.

    Args:
        listings: Listing objects to store
        path: Optional database file (defaults to DATABASE_FILE)

    Returns:
        Number of new listings stored
    """
    listings = [listing for listing in listings if listing.posting_id]
    if not listings:
        return 0

    ensure_schema(path)
    conn = get_connection(path)
    cursor = conn.cursor()

    stored = 0
    now = datetime.now().isoformat()

    for listing in listings:
        try:
            cursor.execute(
                """
                INSERT INTO listings (posting_id, repost_of, posted_at, title, link, price, hood, first_seen)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    listing.posting_id,
                    listing.repost_of,
                    listing.posted_at,
                    listing.title,
                    listing.link,
                    listing.price,
                    listing.hood,
                    now
                )
            )
            stored += 1
        except sqlite3.IntegrityError:
            # Duplicate ID, skip
            pass

    conn.commit()
    conn.close()

    return stored


def load_listings(path=None) -> List[Listing]:
    """Return stored listings, newest posting first."""
    ensure_schema(path)
    conn = get_connection(path)
    cursor = conn.cursor()

    cursor.execute("""
        SELECT posting_id, repost_of, posted_at, title, link, price, hood
        FROM listings
        ORDER BY posted_at DESC
    """)

    rows = cursor.fetchall()
    conn.close()

    return [Listing(*row) for row in rows]


def cleanup_old_listings(days: int = 7, path=None) -> int:
    """
    Remove listings first seen more than the given number of days ago.

    Args:
        days: Number of days to keep listings
        path: Optional database file (defaults to DATABASE_FILE)

    Returns:
        Number of listings removed
    """
    ensure_schema(path)
    conn = get_connection(path)
    cursor = conn.cursor()

    cutoff = (datetime.now() - timedelta(days=days)).isoformat()

    cursor.execute("SELECT COUNT(*) FROM listings WHERE first_seen < ?", (cutoff,))
    count = cursor.fetchone()[0]

    cursor.execute("DELETE FROM listings WHERE first_seen < ?", (cutoff,))

    conn.commit()
    conn.close()

    return count


def get_listing_count(path=None) -> int:
    """Get count of stored listings."""
    ensure_schema(path)
    conn = get_connection(path)
    cursor = conn.cursor()

    cursor.execute("SELECT COUNT(*) FROM listings")
    count = cursor.fetchone()[0]
    conn.close()

    return count
