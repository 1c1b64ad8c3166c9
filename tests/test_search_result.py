"""
Unit tests for the pagination cursor.

Pages are served by an in-memory fetcher keyed on the row offset.
"""

import unittest
from datetime import timedelta

from database import Listing
from errors import FetchError, ParseError
from fetch import FetchContext
from search_result import SearchResult, page_url
from page_builder import BASE_TIME, FakeFetcher, build_page, build_rows, full_page, newest_first

BASE_URL = "https://newyork.craigslist.org/search/sss?query=desk&sort=date"


def listings(count):
    return [Listing(posting_id=str(i), posted_at="2020-06-08 14:45:12") for i in range(count)]


class TestPageUrl(unittest.TestCase):

    def test_appends_offset(self):
        self.assertEqual(page_url(BASE_URL, 240), BASE_URL + "&s=240")

    def test_url_without_query(self):
        self.assertEqual(
            page_url("https://newyork.craigslist.org/search/sss", 120),
            "https://newyork.craigslist.org/search/sss?s=120",
        )


class TestConstruction(unittest.TestCase):
    """Test the done flag computed from the first page."""

    def _result(self, count, total):
        return SearchResult(FakeFetcher(), BASE_URL, total, listings(count), "UTC")

    def test_empty_first_page_with_results_pending(self):
        result = self._result(0, 3000)
        self.assertFalse(result.done)
        self.assertEqual(result.current_page, 0)

    def test_full_first_page(self):
        self.assertFalse(self._result(120, 3000).done)

    def test_all_results_on_first_page(self):
        self.assertTrue(self._result(120, 120).done)
        self.assertTrue(self._result(40, 40).done)

    def test_short_first_page(self):
        """A short page is final even when the count claims more."""
        self.assertTrue(self._result(19, 3000).done)

    def test_no_results(self):
        self.assertTrue(self._result(0, 0).done)

    def test_initial_state(self):
        result = self._result(120, 3000)
        self.assertEqual(result.base_url, BASE_URL)
        self.assertEqual(result.timezone, "UTC")
        self.assertEqual(result.total_count, 3000)
        self.assertEqual(len(result.listings), 120)
        self.assertIsNone(result.error)


class TestAdvance(unittest.TestCase):
    """Test walking pages."""

    def test_full_walk(self):
        """3000 results at 120 per page end on page index 24."""
        fetcher = FakeFetcher(default=full_page(120))
        result = SearchResult(fetcher, BASE_URL, 3000, [], "UTC")

        advances = 0
        while not result.done:
            self.assertEqual(len(result.advance()), 120)
            advances += 1

        self.assertEqual(result.current_page, 24)
        self.assertEqual(advances, 24)
        self.assertIsNone(result.error)
        self.assertTrue(fetcher.urls[0].endswith("&s=120"))
        self.assertTrue(fetcher.urls[-1].endswith("&s=2880"))

    def test_last_partial_page(self):
        fetcher = FakeFetcher({120: full_page(120), 240: full_page(60)})
        result = SearchResult(fetcher, BASE_URL, 300, listings(120), "UTC")

        self.assertEqual(len(result.advance()), 120)
        self.assertFalse(result.done)
        self.assertEqual(len(result.advance()), 60)
        self.assertTrue(result.done)
        self.assertIsNone(result.error)

    def test_count_reached_on_full_page(self):
        fetcher = FakeFetcher({120: full_page(120)})
        result = SearchResult(fetcher, BASE_URL, 240, listings(120), "UTC")

        result.advance()

        self.assertTrue(result.done)
        self.assertEqual(len(result.listings), 120)

    def test_count_is_not_reread(self):
        """Later pages' count nodes are ignored, even when unreadable."""
        fetcher = FakeFetcher({120: full_page(120, total_count="garbage")})
        result = SearchResult(fetcher, BASE_URL, 3000, listings(120), "UTC")

        result.advance()

        self.assertIsNone(result.error)
        self.assertEqual(result.total_count, 3000)
        self.assertFalse(result.done)

    def test_fetch_error(self):
        fetcher = FakeFetcher({120: FetchError("error fetching from url: 503", status=503)})
        result = SearchResult(fetcher, BASE_URL, 3000, listings(120), "UTC")

        returned = result.advance()

        self.assertEqual(returned, [])
        self.assertEqual(result.listings, [])
        self.assertTrue(result.done)
        self.assertIsInstance(result.error, FetchError)

    def test_parse_error(self):
        broken = build_page(build_rows(newest_first(3)), with_section=False)
        result = SearchResult(FakeFetcher({120: broken}), BASE_URL, 3000, listings(120), "UTC")

        result.advance()

        self.assertTrue(result.done)
        self.assertIsInstance(result.error, ParseError)

    def test_empty_page_after_cutoff(self):
        """A page entirely older than the cutoff ends the walk without error."""
        fetcher = FakeFetcher({120: full_page(120)})
        result = SearchResult(fetcher, BASE_URL, 3000, [], "UTC")

        returned = result.advance(cutoff=BASE_TIME.replace(year=2021))

        self.assertEqual(returned, [])
        self.assertTrue(result.done)
        self.assertIsNone(result.error)

    def test_cutoff_inside_page(self):
        fetcher = FakeFetcher({120: full_page(120)})
        result = SearchResult(fetcher, BASE_URL, 3000, listings(120), "UTC")

        returned = result.advance(cutoff=BASE_TIME - timedelta(minutes=9, seconds=30))

        self.assertEqual(len(returned), 10)
        self.assertTrue(result.done)
        self.assertIsNone(result.error)

    def test_advance_when_done(self):
        fetcher = FakeFetcher(default=full_page(120))
        result = SearchResult(fetcher, BASE_URL, 50, listings(50), "UTC")

        self.assertEqual(result.advance(), [])
        self.assertEqual(fetcher.urls, [])
        self.assertEqual(result.current_page, 0)
        self.assertEqual(len(result.listings), 50)


class TestCancellation(unittest.TestCase):
    """Test that a cancelled or expired context ends the walk."""

    def test_cancelled_advance(self):
        fetcher = FakeFetcher(default=full_page(120))
        result = SearchResult(fetcher, BASE_URL, 3000, listings(120), "UTC")
        ctx = FetchContext(timeout=60)
        ctx.cancel()

        returned = result.advance(ctx=ctx)

        self.assertEqual(returned, [])
        self.assertTrue(result.done)
        self.assertIsInstance(result.error, FetchError)
        self.assertEqual(fetcher.urls, [])

    def test_expired_deadline(self):
        result = SearchResult(FakeFetcher(default=full_page(120)), BASE_URL, 3000, listings(120), "UTC")

        result.advance(ctx=FetchContext(timeout=0))

        self.assertTrue(result.done)
        self.assertIsInstance(result.error, FetchError)

    def test_cancel_while_walking_pages(self):
        fetcher = FakeFetcher(default=full_page(120))
        result = SearchResult(fetcher, BASE_URL, 3000, listings(120), "UTC")
        ctx = FetchContext(timeout=60)

        walked = 0
        for _ in result.pages(ctx=ctx):
            walked += 1
            if walked == 2:
                ctx.cancel()

        self.assertEqual(walked, 2)
        self.assertEqual(len(fetcher.urls), 1)
        self.assertTrue(result.done)
        self.assertIsInstance(result.error, FetchError)


class TestIteration(unittest.TestCase):
    """Test the page and listing generators."""

    def test_pages(self):
        fetcher = FakeFetcher({120: full_page(120), 240: full_page(30)})
        result = SearchResult(fetcher, BASE_URL, 270, listings(120), "UTC")

        sizes = [len(page) for page in result.pages()]

        self.assertEqual(sizes, [120, 120, 30])
        self.assertTrue(result.done)

    def test_iter_listings(self):
        fetcher = FakeFetcher({120: full_page(5)})
        result = SearchResult(fetcher, BASE_URL, 125, listings(120), "UTC")

        self.assertEqual(len(list(result)), 125)

    def test_iteration_stops_on_error(self):
        fetcher = FakeFetcher({120: full_page(120), 240: FetchError("timeout")})
        result = SearchResult(fetcher, BASE_URL, 3000, listings(120), "UTC")

        self.assertEqual(len(list(result)), 240)
        self.assertIsInstance(result.error, FetchError)


if __name__ == '__main__':
    unittest.main()
