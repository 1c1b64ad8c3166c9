"""
ClassiCrawl Page Parser
Turns a parsed search results page into Listing records.
"""

import logging
from datetime import datetime, tzinfo
from typing import List, NamedTuple, Optional, Union

from database import Listing
from errors import CountParseError, FormatError, ParseError, RowSkipped
from timestamps import parse_timestamp, reconcile_timestamp
from tree import (
    Node,
    element_children,
    find_attr,
    find_by_attribute,
    find_within,
    nearest_text,
    parse_document,
)

logger = logging.getLogger(__name__)

# Attribute anchors on the search results page
RESULTS_SECTION = ("id", "sortable-results")
RESULT_ROWS = ("class", "rows")
RESULT_INFO = ("class", "result-info")
RESULT_DATE = ("class", "result-date")
RESULT_TITLE = ("class", "result-title hdrlnk")
RESULT_PRICE = ("class", "result-price")
RESULT_HOOD = ("class", "result-hood")
TOTAL_COUNT = ("class", "totalcount")


class PageResult(NamedTuple):
    """Listings of one page plus the total count reported by the page."""
    listings: List[Listing]
    total_count: int


def extract_row(row: Node) -> Listing:
    """
    Build a Listing from one result row.

    Args:
        row: A row element (<li class="result-row">)

    Returns:
        The extracted Listing

    Raises:
        RowSkipped: the row has no info block (ads, separators)
        FormatError: the row's date attributes are malformed
    """
    info = find_within(row, *RESULT_INFO)
    if info is None:
        raise RowSkipped("row has no result-info block")

    posting_id = find_attr(row, "data-pid")
    repost_of = find_attr(row, "data-repost-of")

    date_node = find_within(info, *RESULT_DATE)
    if date_node is None:
        raise FormatError(f"row {posting_id or '?'} has no result-date node")
    posted_at = reconcile_timestamp(
        find_attr(date_node, "datetime"),
        find_attr(date_node, "title"),
    )

    title_node = find_within(info, *RESULT_TITLE)

    return Listing(
        posting_id=posting_id,
        repost_of=repost_of,
        posted_at=posted_at,
        title=nearest_text(title_node).strip(),
        link=find_attr(title_node, "href"),
        price=nearest_text(find_within(info, *RESULT_PRICE)).strip(),
        hood=nearest_text(find_within(info, *RESULT_HOOD)).strip(),
    )


def _align_cutoff(cutoff: Optional[datetime], tz: Optional[tzinfo]):
    """Make the cutoff and the row timezone agree on awareness."""
    if cutoff is None:
        return None, tz
    if cutoff.tzinfo is None:
        if tz is not None:
            cutoff = cutoff.replace(tzinfo=tz)
    elif tz is None:
        tz = cutoff.tzinfo
    return cutoff, tz


def extract_listings(row_list: Node, cutoff: Optional[datetime] = None,
                     tz: Optional[tzinfo] = None) -> List[Listing]:
    """
    Extract listings from the row list, in document order.

    Rows are ordered newest-first, so when a cutoff is given extraction
    stops at the first row posted strictly before it.

    Raises:
        ParseError: a row has a malformed timestamp
    """
    cutoff, tz = _align_cutoff(cutoff, tz)
    listings = []

    for row in element_children(row_list):
        try:
            listing = extract_row(row)
        except RowSkipped:
            logger.debug(f"Skipping non-listing row: {find_attr(row, 'class')!r}")
            continue
        except FormatError as e:
            raise ParseError(f"malformed result row: {e}") from e

        if cutoff is not None and parse_timestamp(listing.posted_at, tz) < cutoff:
            logger.debug(f"Cutoff reached at {listing.posted_at} after {len(listings)} listings")
            break

        listings.append(listing)

    return listings


def parse_total_count(tree: Node) -> int:
    """Read the total result count, raising ValueError when it is not numeric."""
    count_node = find_by_attribute(tree, *TOTAL_COUNT)
    return int(nearest_text(count_node).strip())


def parse_page(tree: Node, cutoff: Optional[datetime] = None,
               tz: Optional[tzinfo] = None, with_count: bool = True) -> PageResult:
    """
    Parse one search results page.

    Args:
        tree: Document node of the page
        cutoff: Optional timestamp; rows posted before it end the page early
        tz: Timezone the page's timestamps are expressed in
        with_count: Read the total count node (only needed on the first page)

    Returns:
        PageResult with the page's listings and total count (0 when not read)

    Raises:
        ParseError: results section or row list is missing, or a row is malformed
        CountParseError: the total count is not numeric; carries the listings
    """
    section = find_by_attribute(tree, *RESULTS_SECTION)
    if section is None:
        raise ParseError("results section not found")

    row_list = find_within(section, *RESULT_ROWS)
    if row_list is None:
        raise ParseError("result row list not found")

    listings = extract_listings(row_list, cutoff, tz)

    if not with_count:
        return PageResult(listings, 0)

    try:
        total_count = parse_total_count(tree)
    except ValueError as e:
        raise CountParseError(f"unable to parse count: {e}", listings) from e

    return PageResult(listings, total_count)


def parse_html(data: Union[bytes, str], cutoff: Optional[datetime] = None,
               tz: Optional[tzinfo] = None, with_count: bool = True) -> PageResult:
    """Parse raw page markup; see parse_page."""
    return parse_page(parse_document(data), cutoff, tz, with_count)
