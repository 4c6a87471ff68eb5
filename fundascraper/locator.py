"""
Locating listing records in a fetched search-results page.
"""
import json
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from bs4 import BeautifulSoup

from .resolver import resolve
from .utils import clean_text

logger = logging.getLogger(__name__)

NUXT_DATA_SELECTOR = "script#__NUXT_DATA__"
JSON_LD_SELECTOR = 'script[type="application/ld+json"]'

# Field combinations that identify a listing object without a named container.
# Evaluated in order; a node matches if it carries every field of one rule.
LISTING_MARKERS: Tuple[Tuple[str, ...], ...] = (
    ("object_detail_page_relative_url", "price"),
    ("floor_area", "price"),
    ("address", "price"),
)


def _listings_by_key(store: Sequence[Any]) -> List[Dict]:
    """Follow the first ``listings`` field that leads to listing objects."""
    for i, node in enumerate(store):
        if not isinstance(node, dict) or "listings" not in node:
            continue
        resolved = resolve(store, node["listings"])
        if not isinstance(resolved, list):
            logger.debug(f"'listings' at index {i} is not an array, skipping")
            continue
        listings = [item for item in resolved if isinstance(item, dict)]
        if listings:
            logger.debug(f"Found {len(listings)} listings via 'listings' key at index {i}")
            return listings
    return []


def matches_listing_shape(node: Any) -> bool:
    if not isinstance(node, dict):
        return False
    return any(all(key in node for key in rule) for rule in LISTING_MARKERS)


def _listings_by_shape(store: Sequence[Any]) -> List[Dict]:
    """Pick out every node that looks like a listing by its fields."""
    listings = []
    for i, node in enumerate(store):
        if matches_listing_shape(node):
            listings.append(resolve(store, i))
    if listings:
        logger.debug(f"Found {len(listings)} listing-shaped objects")
    return listings


def find_listings(store: Any) -> List[Dict]:
    """
    Find and resolve the listings in a flattened Nuxt payload.

    The payload layout is undocumented and changes between site releases, so
    the named ``listings`` container is tried first and a shape-based scan is
    the fallback. Returns an empty list when neither finds anything.
    """
    if not isinstance(store, list):
        return []
    return _listings_by_key(store) or _listings_by_shape(store)


def listings_from_item_list(doc: Any) -> List[Dict]:
    """Raw listings from a schema.org ``ItemList`` JSON-LD document."""
    docs = doc if isinstance(doc, list) else [doc]
    listings = []
    for d in docs:
        if not isinstance(d, dict) or d.get("@type") != "ItemList":
            continue
        for element in d.get("itemListElement") or []:
            if not isinstance(element, dict):
                continue
            # ListItem entries may wrap the actual object in "item"
            item = element.get("item") if isinstance(element.get("item"), dict) else element
            listings.append({
                "url": item.get("url") or element.get("url"),
                "address": item.get("name") or element.get("name"),
            })
    return listings


def page_title(html: str) -> str:
    soup = BeautifulSoup(html or "", "html.parser")
    return clean_text(soup.title.get_text()) if soup.title else ""


def extract_state_blob(html: str) -> Optional[Any]:
    """Parse the ``__NUXT_DATA__`` script; None if missing or malformed."""
    soup = BeautifulSoup(html or "", "html.parser")
    script = soup.select_one(NUXT_DATA_SELECTOR)
    if not script or not script.string:
        return None
    try:
        return json.loads(script.string)
    except json.JSONDecodeError as e:
        logger.warning(f"__NUXT_DATA__ parse failed: {e}")
        return None


def extract_item_lists(html: str) -> List[Dict]:
    """Raw listings from every JSON-LD ItemList on the page."""
    soup = BeautifulSoup(html or "", "html.parser")
    listings = []
    for script in soup.select(JSON_LD_SELECTOR):
        try:
            doc = json.loads(script.string or "")
        except json.JSONDecodeError:
            continue
        listings.extend(listings_from_item_list(doc))
    return listings


def extract_listings(html: str) -> List[Dict]:
    """
    Raw listings from a search-results page.

    Uses the Nuxt payload first and JSON-LD ItemList data as fallback.
    """
    store = extract_state_blob(html)
    if store is not None:
        listings = find_listings(store)
        if listings:
            logger.info(f"Extracted {len(listings)} listings from __NUXT_DATA__ ({len(store)} nodes)")
            return listings

    listings = extract_item_lists(html)
    if listings:
        logger.info(f"Extracted {len(listings)} listings from JSON-LD ItemList")
    return listings
