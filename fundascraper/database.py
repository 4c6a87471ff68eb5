"""
Append-only SQLite storage for scraped funda listings.
"""
import logging
import sqlite3
from typing import Dict, Iterable, Optional

from .models import CanonicalListing
from .utils import now_iso

logger = logging.getLogger(__name__)


# Schema definitions
DDL_LISTINGS = """
CREATE TABLE IF NOT EXISTS listings (
  id TEXT PRIMARY KEY,
  address TEXT,
  postal_code TEXT,
  city TEXT,
  municipality TEXT,
  province TEXT,
  neighbourhood TEXT,
  price_amount REAL,
  price_currency TEXT,
  price_condition TEXT,
  floor_area REAL,
  plot_area REAL,
  rooms INTEGER,
  bedrooms INTEGER,
  energy_label TEXT,
  object_type TEXT,
  construction_type TEXT,
  status TEXT,
  publish_date TEXT,
  image_url TEXT,
  url TEXT,
  scraped_at TEXT,
  first_seen TEXT
);
"""

DDL_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_listings_first_seen ON listings(first_seen);",
    "CREATE INDEX IF NOT EXISTS idx_listings_city ON listings(city);",
]

COLUMNS = [
    "id", "address", "postal_code", "city", "municipality", "province", "neighbourhood",
    "price_amount", "price_currency", "price_condition", "floor_area", "plot_area",
    "rooms", "bedrooms", "energy_label", "object_type", "construction_type", "status",
    "publish_date", "image_url", "url", "scraped_at",
]


def db_connect(path: str) -> sqlite3.Connection:
    """Create database connection with optimized settings."""
    conn = sqlite3.connect(path, check_same_thread=False)
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    return conn


def db_init(conn: sqlite3.Connection):
    """Initialize database schema with tables and indexes."""
    conn.execute(DDL_LISTINGS)
    for ddl in DDL_INDEXES:
        conn.execute(ddl)
    conn.commit()


def row_to_dict(cur, row):
    """Convert a result row to dictionary."""
    return {desc[0]: row[i] for i, desc in enumerate(cur.description)}


def db_get_listing(conn: sqlite3.Connection, listing_id: str) -> Optional[Dict]:
    """Retrieve a stored listing by id."""
    cur = conn.cursor()
    cur.execute("SELECT * FROM listings WHERE id = ?", (listing_id,))
    r = cur.fetchone()
    if not r:
        return None
    return row_to_dict(cur, r)


def append_listings(conn: sqlite3.Connection, listings: Iterable[CanonicalListing]) -> int:
    """
    Append one page batch in a single transaction.

    Existing rows are never updated; a listing already stored by an earlier
    run is ignored. Returns the number of rows inserted.
    """
    first_seen = now_iso()
    placeholders = ",".join("?" * (len(COLUMNS) + 1))
    sql = f"INSERT OR IGNORE INTO listings ({','.join(COLUMNS)},first_seen) VALUES ({placeholders})"
    rows = []
    for lst in listings:
        row = lst.to_row()
        rows.append(tuple(row[c] for c in COLUMNS) + (first_seen,))
    if not rows:
        return 0

    with conn:
        cur = conn.executemany(sql, rows)
    inserted = cur.rowcount
    if inserted < len(rows):
        # Synthesized "<page>-<position>" ids repeat across runs
        logger.warning(
            f"{len(rows) - inserted} of {len(rows)} listings already stored, kept the earlier rows"
        )
    return inserted
