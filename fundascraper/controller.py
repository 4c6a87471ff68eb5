"""
Crawl controller: cross-page dedup, quota and pagination decisions.
"""
import logging
import threading
from typing import Callable, List, Optional

from .locator import extract_listings
from .models import CanonicalListing, CrawlState, CrawlStatus, PageOutcome
from .normalizer import normalize_listing
from .utils import is_blocked_title, next_page_url, now_iso, page_number

logger = logging.getLogger(__name__)

Sink = Callable[[List[CanonicalListing]], None]


class CrawlController:
    """
    Owns the CrawlState of one run and decides, page by page, what gets
    emitted and whether another page is requested.

    Extraction and normalization run outside the lock; the quota check, the
    dedup scan and the emit of a page batch happen under it as one unit.
    """

    def __init__(self, quota: int, max_pages: int, sink: Optional[Sink] = None):
        if quota < 1 or max_pages < 1:
            raise ValueError("quota and max_pages must be positive integers")
        self.state = CrawlState(quota=quota, max_pages=max_pages)
        self.sink = sink
        self._lock = threading.Lock()

    @property
    def status(self) -> CrawlStatus:
        return self.state.status

    @property
    def collected(self) -> int:
        return self.state.collected

    def process_page(self, url: str, title: str, html: str) -> PageOutcome:
        """Handle one fetched search-results page."""
        page = page_number(url)

        if is_blocked_title(title):
            logger.error(f"Blocked on page {page}: title={title!r}")
            with self._lock:
                self.state.status = CrawlStatus.BLOCKED
            return PageOutcome(url=url, page_number=page, status=CrawlStatus.BLOCKED)

        scraped_at = now_iso()
        candidates = [
            normalize_listing(raw, page=page, position=pos, scraped_at=scraped_at)
            for pos, raw in enumerate(extract_listings(html), 1)
        ]
        return self.accept(url, candidates)

    def accept(self, url: str, candidates: List[CanonicalListing]) -> PageOutcome:
        """Dedup, apply the quota, emit the batch and pick the next page."""
        page = page_number(url)
        outcome = PageOutcome(url=url, page_number=page, status=CrawlStatus.RUNNING,
                              extracted=len(candidates))

        with self._lock:
            st = self.state
            if st.pages_visited >= st.max_pages:
                st.status = outcome.status = CrawlStatus.PAGE_LIMIT_REACHED
                return outcome
            st.pages_visited += 1

            remaining = st.remaining
            if remaining <= 0:
                logger.info("Reached desired results count, stopping...")
                st.status = outcome.status = CrawlStatus.QUOTA_REACHED
                return outcome

            for listing in candidates:
                if remaining <= 0:
                    break
                if listing.id in st.seen_ids:
                    continue
                st.seen_ids.add(listing.id)
                outcome.batch.append(listing)
                remaining -= 1
            st.collected += len(outcome.batch)

            if outcome.batch and self.sink is not None:
                self.sink(outcome.batch)
            logger.info(
                f"Page {page} ({st.pages_visited}/{st.max_pages}): {len(candidates)} found, "
                f"{len(outcome.batch)} new. Total: {st.collected}/{st.quota}"
            )

            if st.collected >= st.quota:
                st.status = CrawlStatus.QUOTA_REACHED
            elif st.pages_visited >= st.max_pages:
                st.status = CrawlStatus.PAGE_LIMIT_REACHED
            elif not candidates:
                logger.warning(f"No listings extracted from page {page}: {url}")
                st.status = CrawlStatus.EXHAUSTED
            else:
                st.status = CrawlStatus.RUNNING
                outcome.next_url = next_page_url(url)
            outcome.status = st.status

        return outcome
