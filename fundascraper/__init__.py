"""
funda.nl Search Scraper Package
"""
from .models import CanonicalListing, Price, CrawlState, CrawlStatus, PageOutcome
from .resolver import resolve
from .locator import find_listings, extract_listings
from .normalizer import normalize_listing
from .controller import CrawlController
from .core import run_scrape
from .database import (
    db_connect,
    db_init,
    append_listings,
    db_get_listing
)
from .export import (
    export_new_since_run,
    save_output_rows
)
from .utils import init_logger, now_iso, build_start_url

__version__ = "1.0.0"

__all__ = [
    "CanonicalListing",
    "Price",
    "CrawlState",
    "CrawlStatus",
    "PageOutcome",
    "resolve",
    "find_listings",
    "extract_listings",
    "normalize_listing",
    "CrawlController",
    "run_scrape",
    "db_connect",
    "db_init",
    "append_listings",
    "db_get_listing",
    "export_new_since_run",
    "save_output_rows",
    "init_logger",
    "now_iso",
    "build_start_url"
]
