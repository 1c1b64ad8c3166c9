"""
Unit tests for row extraction and page parsing.

Tests run against the static fixture and generated pages; no network access.
"""

import unittest
from datetime import datetime, timedelta, timezone

from database import Listing
from errors import CountParseError, FormatError, ParseError, RowSkipped
from parser import extract_row, parse_html, parse_page
from tree import find_by_attribute, parse_document
from page_builder import (
    BASE_TIME,
    build_page,
    build_rows,
    cutoff_times,
    full_page,
    load_fixture,
    newest_first,
    row_html,
)


class TestExtractRow(unittest.TestCase):
    """Test extracting a single row."""

    def _row(self, html):
        doc = parse_document(f'<ul class="rows">{html}</ul>')
        return find_by_attribute(doc, "class", "result-row")

    def test_full_row(self):
        row = self._row(row_html("7139339512", BASE_TIME, title="Queen bed frame",
                                 price="$150", hood=" (Brooklyn)", repost_of="6970766153"))
        self.assertEqual(extract_row(row), Listing(
            posting_id="7139339512",
            repost_of="6970766153",
            posted_at="2020-06-08 14:45:12",
            title="Queen bed frame",
            link="https://newyork.craigslist.org/mnh/fuo/d/item/7139339512.html",
            price="$150",
            hood="(Brooklyn)",
        ))

    def test_missing_optional_fields(self):
        """Absent price, hood and repost attribute become empty strings."""
        listing = extract_row(self._row(row_html("1", BASE_TIME, price=None, hood=None)))
        self.assertEqual(listing.price, "")
        self.assertEqual(listing.hood, "")
        self.assertEqual(listing.repost_of, "")

    def test_missing_title(self):
        html = (
            '<li class="result-row" data-pid="1"><div class="result-info">'
            '<time class="result-date" datetime="2020-06-08 14:45" title="Mon 08 Jun 02:45:12 PM"></time>'
            '</div></li>'
        )
        listing = extract_row(self._row(html))
        self.assertEqual((listing.title, listing.link), ("", ""))

    def test_no_info_block(self):
        with self.assertRaises(RowSkipped):
            extract_row(self._row(row_html("1", BASE_TIME, with_info=False)))

    def test_does_not_borrow_next_rows_info(self):
        html = row_html("1", BASE_TIME, with_info=False) + row_html("2", BASE_TIME)
        with self.assertRaises(RowSkipped):
            extract_row(self._row(html))

    def test_malformed_date(self):
        html = (
            '<li class="result-row" data-pid="1"><div class="result-info">'
            '<time class="result-date" datetime="2020-06-08" title="Mon 08 Jun 02:45:12 PM"></time>'
            '</div></li>'
        )
        with self.assertRaises(FormatError):
            extract_row(self._row(html))

    def test_missing_date_node(self):
        html = '<li class="result-row" data-pid="1"><div class="result-info"></div></li>'
        with self.assertRaises(FormatError):
            extract_row(self._row(html))


class TestParseFixturePage(unittest.TestCase):
    """Test parsing the static sample page."""

    def setUp(self):
        self.html = load_fixture("sample_results.html")

    def test_listings_and_count(self):
        listings, total_count = parse_html(self.html)

        self.assertEqual(total_count, 4)
        self.assertEqual(
            [listing.posting_id for listing in listings],
            ["7139339512", "7139338001", "7139330000", "7139320000"],
        )

    def test_first_listing(self):
        first = parse_html(self.html).listings[0]

        self.assertEqual(first.repost_of, "6970766153")
        self.assertEqual(first.posted_at, "2020-06-08 14:45:12")
        self.assertEqual(first.title, "Queen bed frame")
        self.assertEqual(
            first.link,
            "https://newyork.craigslist.org/brk/fuo/d/brooklyn-queen-bed-frame/7139339512.html",
        )
        self.assertEqual(first.price, "$150")
        self.assertEqual(first.hood, "(Brooklyn)")

    def test_listing_without_hood(self):
        lamp = parse_html(self.html).listings[1]
        self.assertEqual(lamp.title, "Desk lamp")
        self.assertEqual(lamp.hood, "")

    def test_cutoff_keeps_rows_at_cutoff(self):
        """A row posted exactly at the cutoff is kept; the first older row stops parsing."""
        listings, _ = parse_html(self.html, cutoff=datetime(2020, 6, 8, 14, 3))
        self.assertEqual([listing.title for listing in listings], ["Queen bed frame", "Desk lamp", "Bookshelf"])

    def test_cutoff_with_timezone(self):
        eastern = timezone(timedelta(hours=-4))
        # 18:03 UTC is 14:03 in the page's timezone
        cutoff = datetime(2020, 6, 8, 18, 3, tzinfo=timezone.utc)
        listings, _ = parse_html(self.html, cutoff=cutoff, tz=eastern)
        self.assertEqual(len(listings), 3)

    def test_naive_cutoff_is_localized(self):
        eastern = timezone(timedelta(hours=-4))
        listings, _ = parse_html(self.html, cutoff=datetime(2020, 6, 8, 14, 41), tz=eastern)
        self.assertEqual(len(listings), 1)

    def test_deterministic(self):
        self.assertEqual(parse_html(self.html), parse_html(self.html))
        self.assertEqual(parse_html(self.html.encode("utf-8")), parse_html(self.html))


class TestParseGeneratedPages(unittest.TestCase):
    """Test parsing full-size generated pages."""

    def test_full_page(self):
        listings, total_count = parse_html(full_page(120))
        self.assertEqual(len(listings), 120)
        self.assertEqual(total_count, 3000)

    def test_row_without_info_is_skipped(self):
        times = newest_first(120)
        rows = build_rows(times)
        rows[57] = row_html("promo", times[57], with_info=False)

        listings, _ = parse_html(build_page(rows))

        self.assertEqual(len(listings), 119)
        self.assertNotIn("promo", [listing.posting_id for listing in listings])

    def test_cutoff(self):
        page = build_page(build_rows(cutoff_times()))
        listings, total_count = parse_html(page, cutoff=datetime(2020, 6, 8, 14, 3, 0))
        self.assertEqual(len(listings), 19)
        self.assertEqual(total_count, 3000)

    def test_cutoff_stops_without_filtering(self):
        """Rows after the first older row are not inspected, even if newer."""
        times = [BASE_TIME, BASE_TIME - timedelta(hours=2), BASE_TIME]
        listings, _ = parse_html(build_page(build_rows(times)), cutoff=BASE_TIME - timedelta(hours=1))
        self.assertEqual(len(listings), 1)

    def test_cutoff_excludes_everything(self):
        listings, _ = parse_html(full_page(120), cutoff=BASE_TIME + timedelta(days=1))
        self.assertEqual(listings, [])

    def test_empty_row_list(self):
        """No results is a normal, empty page."""
        listings, total_count = parse_html(build_page([], total_count="0"))
        self.assertEqual(listings, [])
        self.assertEqual(total_count, 0)

    def test_missing_results_section(self):
        with self.assertRaises(ParseError):
            parse_html(build_page(build_rows(newest_first(3)), with_section=False))

    def test_missing_row_list(self):
        with self.assertRaises(ParseError):
            parse_html(build_page(build_rows(newest_first(3)), with_row_list=False))

    def test_malformed_row_fails_page(self):
        rows = build_rows(newest_first(3))
        rows[1] = rows[1].replace('datetime="2020-06-08 14:44"', 'datetime="June 8"')

        with self.assertRaises(ParseError) as ctx:
            parse_html(build_page(rows))
        self.assertIsInstance(ctx.exception.__cause__, FormatError)

    def test_unreadable_count_keeps_listings(self):
        page = build_page(build_rows(newest_first(5)), total_count="lots")

        with self.assertRaises(CountParseError) as ctx:
            parse_html(page)
        self.assertEqual(len(ctx.exception.listings), 5)

    def test_missing_count_keeps_listings(self):
        with self.assertRaises(CountParseError) as ctx:
            parse_html(build_page(build_rows(newest_first(2)), total_count=None))
        self.assertEqual(len(ctx.exception.listings), 2)

    def test_without_count(self):
        page = build_page(build_rows(newest_first(5)), total_count=None)
        listings, total_count = parse_html(page, with_count=False)
        self.assertEqual(len(listings), 5)
        self.assertEqual(total_count, 0)

    def test_parse_page_on_tree(self):
        tree = parse_document(full_page(10))
        first = parse_page(tree)
        second = parse_page(tree)
        self.assertEqual(first, second)
        self.assertEqual(len(first.listings), 10)


if __name__ == '__main__':
    unittest.main()
