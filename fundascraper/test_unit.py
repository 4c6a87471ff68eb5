#!/usr/bin/env python3
"""
Crawl controller, storage and CLI tests.
This uses Python's built-in unittest framework.
"""
import json
import os
import sqlite3
import tempfile
import threading
import unittest

import pandas as pd

from fundascraper.controller import CrawlController
from fundascraper.database import append_listings, db_connect, db_get_listing, db_init
from fundascraper.export import export_new_since_run, save_output_rows
from fundascraper.funda_scraper import parse_args
from fundascraper.models import CrawlStatus
from fundascraper.normalizer import normalize_listing
from fundascraper.utils import page_number

SEARCH_URL = "https://www.funda.nl/en/zoeken/koop/?selected_area=%5B%22amsterdam%22%5D"


def results_page(ids, title="Houses for sale in Amsterdam"):
    """Search-results HTML with one listing per id in its Nuxt payload."""
    raws = [
        {
            "object_detail_page_relative_url": f"/detail/koop/amsterdam/huis-{i}/{i}/",
            "price": {"selling_price": [400000 + i]},
            "floor_area": [80],
        }
        for i in ids
    ]
    store = [{"listings": 1}, list(range(2, 2 + len(raws)))] + raws
    return (
        f"<html><head><title>{title}</title></head><body>"
        f'<script type="application/json" id="__NUXT_DATA__">{json.dumps(store)}</script>'
        "</body></html>"
    )


def page_url(n):
    return SEARCH_URL if n == 1 else f"{SEARCH_URL}&page={n}"


class TestCrawlController(unittest.TestCase):
    """Dedup, quota and pagination decisions."""

    def setUp(self):
        self.batches = []

    def controller(self, quota=20, max_pages=10):
        return CrawlController(quota=quota, max_pages=max_pages, sink=self.batches.append)

    def test_first_page_requests_next(self):
        c = self.controller()
        out = c.process_page(page_url(1), "Houses", results_page([101, 102, 103]))
        self.assertEqual(out.status, CrawlStatus.RUNNING)
        self.assertEqual([x.id for x in out.batch], ["101", "102", "103"])
        self.assertEqual(out.extracted, 3)
        self.assertEqual(page_number(out.next_url), 2)
        self.assertIn("selected_area", out.next_url)
        self.assertEqual(len(self.batches), 1)
        self.assertEqual(c.state.pages_visited, 1)

    def test_duplicates_across_pages_emitted_once(self):
        c = self.controller()
        c.process_page(page_url(1), "Houses", results_page([1, 2, 3]))
        out = c.process_page(page_url(2), "Houses", results_page([3, 4]))
        self.assertEqual([x.id for x in out.batch], ["4"])
        emitted = [x.id for batch in self.batches for x in batch]
        self.assertEqual(emitted, ["1", "2", "3", "4"])
        self.assertEqual(c.collected, 4)

    def test_quota_cuts_page_short(self):
        c = self.controller(quota=5)
        out = c.process_page(page_url(1), "Houses", results_page(range(1, 8)))
        self.assertEqual(len(out.batch), 5)
        self.assertEqual(out.status, CrawlStatus.QUOTA_REACHED)
        self.assertIsNone(out.next_url)
        self.assertEqual(c.collected, 5)
        self.assertEqual(len(self.batches), 1)

    def test_page_after_quota_emits_nothing(self):
        c = self.controller(quota=2)
        c.process_page(page_url(1), "Houses", results_page([1, 2]))
        out = c.process_page(page_url(2), "Houses", results_page([3, 4]))
        self.assertEqual(out.batch, [])
        self.assertEqual(out.status, CrawlStatus.QUOTA_REACHED)
        self.assertEqual(c.collected, 2)
        self.assertEqual(len(self.batches), 1)

    def test_page_limit(self):
        c = self.controller(quota=100, max_pages=2)
        first = c.process_page(page_url(1), "Houses", results_page([1, 2]))
        self.assertEqual(first.status, CrawlStatus.RUNNING)
        second = c.process_page(first.next_url, "Houses", results_page([3, 4]))
        self.assertEqual(second.status, CrawlStatus.PAGE_LIMIT_REACHED)
        self.assertIsNone(second.next_url)
        self.assertEqual(c.state.pages_visited, 2)
        late = c.process_page(page_url(3), "Houses", results_page([5]))
        self.assertEqual(late.batch, [])
        self.assertEqual(c.state.pages_visited, 2)

    def test_blocked_title(self):
        c = self.controller()
        out = c.process_page(page_url(1), "Access Denied — Robot Check", results_page([1, 2]))
        self.assertEqual(out.status, CrawlStatus.BLOCKED)
        self.assertEqual(out.batch, [])
        self.assertIsNone(out.next_url)
        self.assertFalse(out.no_listings)
        self.assertEqual(self.batches, [])
        self.assertEqual(c.state.pages_visited, 0)
        self.assertEqual(c.status, CrawlStatus.BLOCKED)

    def test_empty_page_exhausts(self):
        c = self.controller()
        out = c.process_page(page_url(1), "Houses", "<html><title>Houses</title></html>")
        self.assertEqual(out.status, CrawlStatus.EXHAUSTED)
        self.assertTrue(out.no_listings)
        self.assertIsNone(out.next_url)
        self.assertEqual(self.batches, [])

    def test_all_duplicates_still_advances(self):
        c = self.controller()
        c.process_page(page_url(1), "Houses", results_page([1, 2]))
        out = c.process_page(page_url(2), "Houses", results_page([1, 2]))
        self.assertEqual(out.batch, [])
        self.assertFalse(out.no_listings)
        self.assertEqual(page_number(out.next_url), 3)
        self.assertEqual(len(self.batches), 1)

    def test_listings_without_ids_get_page_positions(self):
        c = self.controller()
        raws = [{"price": {"selling_price": [1]}}, {"price": {"selling_price": [2]}}]
        candidates = [normalize_listing(r, page=4, position=i) for i, r in enumerate(raws, 1)]
        out = c.accept(page_url(4), candidates)
        self.assertEqual([x.id for x in out.batch], ["4-1", "4-2"])

    def test_concurrent_pages_respect_quota(self):
        c = self.controller(quota=10, max_pages=50)
        barrier = threading.Barrier(19)

        def worker(n):
            html = results_page([1000 + n])
            barrier.wait()
            c.process_page(page_url(n), "Houses", html)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(1, 20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        emitted = [x.id for batch in self.batches for x in batch]
        self.assertEqual(c.collected, 10)
        self.assertEqual(len(emitted), 10)
        self.assertEqual(len(set(emitted)), 10)
        self.assertEqual(c.status, CrawlStatus.QUOTA_REACHED)

    def test_invalid_limits(self):
        with self.assertRaises(ValueError):
            CrawlController(quota=0, max_pages=1)
        with self.assertRaises(ValueError):
            CrawlController(quota=1, max_pages=0)


class TestStorage(unittest.TestCase):
    """SQLite sink and exports."""

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.conn = db_connect(os.path.join(self.tmp.name, "funda.db"))
        db_init(self.conn)
        self.listings = [
            normalize_listing({"object_detail_page_relative_url": "/detail/koop/a/huis/111/", "price": 300000,
                               "address": {"city": "Utrecht"}}),
            normalize_listing({"id": "222", "floor_area": [75]}),
        ]

    def tearDown(self):
        self.conn.close()
        self.tmp.cleanup()

    def test_append_is_insert_only(self):
        self.assertEqual(append_listings(self.conn, self.listings), 2)
        self.assertEqual(append_listings(self.conn, self.listings[:1]), 0)
        self.assertEqual(append_listings(self.conn, []), 0)
        row = db_get_listing(self.conn, "111")
        self.assertEqual(row["city"], "Utrecht")
        self.assertEqual(row["price_amount"], 300000)
        self.assertEqual(row["price_currency"], "EUR")
        self.assertIsNotNone(row["first_seen"])
        self.assertIsNone(db_get_listing(self.conn, "333"))

    def test_append_warns_on_already_stored_ids(self):
        first = [normalize_listing({"floor_area": [60]}, page=1, position=1)]
        again = [normalize_listing({"floor_area": [90]}, page=1, position=1),
                 normalize_listing({"floor_area": [70]}, page=1, position=2)]
        self.assertEqual(first[0].id, "1-1")
        append_listings(self.conn, first)
        with self.assertLogs("fundascraper.database", level="WARNING") as logs:
            self.assertEqual(append_listings(self.conn, again), 1)
        self.assertIn("1 of 2 listings already stored", logs.output[0])
        self.assertEqual(db_get_listing(self.conn, "1-1")["floor_area"], 60)

    def test_export_new_since_run(self):
        append_listings(self.conn, self.listings)
        df = export_new_since_run(self.conn, "2000-01-01T00:00:00+00:00")
        self.assertEqual(sorted(df["id"]), ["111", "222"])
        self.assertTrue(export_new_since_run(self.conn, "2999-01-01T00:00:00+00:00").empty)

    def test_save_output_rows(self):
        csv_path = os.path.join(self.tmp.name, "out.csv")
        json_path = os.path.join(self.tmp.name, "out.json")
        save_output_rows(self.listings, csv_path)
        save_output_rows(self.listings, json_path)
        df = pd.read_csv(csv_path, dtype={"id": str})
        self.assertEqual(list(df["id"]), ["111", "222"])
        self.assertIn("price_amount", df.columns)
        with open(json_path, encoding="utf-8") as f:
            records = json.load(f)
        self.assertEqual(records[1]["floor_area"], 75)

    def test_controller_with_db_sink(self):
        c = CrawlController(quota=10, max_pages=3, sink=lambda batch: append_listings(self.conn, batch))
        c.process_page(page_url(1), "Houses", results_page([1, 2]))
        c.process_page(page_url(2), "Houses", results_page([2, 3]))
        count = self.conn.execute("SELECT COUNT(*) FROM listings").fetchone()[0]
        self.assertEqual(count, 3)


class TestCommandLine(unittest.TestCase):

    def test_defaults(self):
        args = parse_args([])
        self.assertEqual(args.results_wanted, 20)
        self.assertEqual(args.max_pages, 10)
        self.assertEqual(args.property_type, "koop")

    def test_rejects_non_positive_limits(self):
        with self.assertRaises(SystemExit):
            parse_args(["--results-wanted", "0"])
        with self.assertRaises(SystemExit):
            parse_args(["--max-pages", "-1"])


if __name__ == "__main__":
    unittest.main(verbosity=2)
