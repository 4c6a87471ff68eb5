"""
Utility functions for logging, URL building, and value coercion.
"""
import json
import logging
import re
from datetime import datetime, timezone
from typing import Any, Optional
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

FUNDA_BASE = "https://www.funda.nl"
SEARCH_BASE = f"{FUNDA_BASE}/en/zoeken"

BLOCKED_TITLE_MARKERS = ("access denied", "captcha", "robot", "blocked")


def init_logger(
    name: str = "fundascraper",
    console_level: str = "INFO",
    file_level: str = "DEBUG",
    log_file: Optional[str] = "fundascraper.log"
) -> logging.Logger:
    """Initialize logger with console and optional file handlers."""
    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)
    if logger.handlers:
        return logger

    console_level_num = getattr(logging, console_level.upper(), logging.INFO)
    ch = logging.StreamHandler()
    ch.setLevel(console_level_num)

    fmt = logging.Formatter("%(asctime)s [%(levelname)s] %(message)s")
    ch.setFormatter(fmt)
    logger.addHandler(ch)

    if log_file:  # Create file handler only if log_file is provided
        file_level_num = getattr(logging, file_level.upper(), logging.DEBUG)
        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setLevel(file_level_num)
        fh.setFormatter(fmt)
        logger.addHandler(fh)

    return logger


def now_iso() -> str:
    """Return current UTC timestamp in ISO format."""
    return datetime.now(timezone.utc).isoformat()


def clean_text(s: Optional[str]) -> str:
    """Clean and normalize text by removing extra whitespace."""
    if not s:
        return ""
    s = re.sub(r"\s+", " ", s)
    return s.strip()


def is_blocked_title(title: Optional[str]) -> bool:
    """True if the page title looks like a bot wall or access-denied page."""
    t = (title or "").lower()
    return any(marker in t for marker in BLOCKED_TITLE_MARKERS)


def to_float(value: Any) -> Optional[float]:
    """Safely convert a scalar to float."""
    if value is None or isinstance(value, bool) or value == "":
        return None
    if isinstance(value, (int, float)):
        return value
    try:
        return float(str(value).strip())
    except ValueError:
        return None


def to_int(value: Any) -> Optional[int]:
    """Safely convert a scalar to int."""
    f = to_float(value)
    if f is None:
        return None
    try:
        return int(f)
    except (ValueError, OverflowError):
        return None


def build_start_url(
    property_type: str = "koop",
    location: Optional[str] = None,
    min_price: Optional[int] = None,
    max_price: Optional[int] = None
) -> str:
    """Build the first search-results URL from the search parameters."""
    base = f"{SEARCH_BASE}/{property_type}/"
    params = {}
    if location:
        params["selected_area"] = json.dumps([location])
    if min_price:
        params["price"] = f'"{min_price}-{max_price or ""}"'

    return f"{base}?{urlencode(params)}" if params else base


def page_number(url: str) -> int:
    """Read the 1-based page number from the ``page`` query parameter."""
    values = parse_qs(urlparse(url).query).get("page")
    if not values:
        return 1
    try:
        return int(values[0])
    except ValueError:
        return 1


def next_page_url(url: str) -> str:
    """Return ``url`` with its ``page`` query parameter incremented."""
    parts = urlparse(url)
    query = parse_qs(parts.query, keep_blank_values=True)
    query["page"] = [str(page_number(url) + 1)]
    return urlunparse(parts._replace(query=urlencode(query, doseq=True)))
