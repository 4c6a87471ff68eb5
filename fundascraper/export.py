"""
Export utilities for the funda scraper.
"""
import sqlite3
from typing import List

import pandas as pd

from .models import CanonicalListing


def export_new_since_run(conn: sqlite3.Connection, run_started_iso: str) -> pd.DataFrame:
    """Export listings that were first stored since the given timestamp."""
    q = """
    SELECT *
    FROM listings
    WHERE first_seen >= ?
    ORDER BY first_seen ASC
    """
    df = pd.read_sql_query(q, conn, params=(run_started_iso,))
    return df


def listings_frame(listings: List[CanonicalListing]) -> pd.DataFrame:
    """One row per listing, price flattened into three columns."""
    return pd.DataFrame([x.to_row() for x in listings])


def write_frame(df: pd.DataFrame, out_path: str):
    """Write a frame as XLSX, JSON (records) or CSV, chosen by extension."""
    lower = out_path.lower()
    if lower.endswith(".xlsx"):
        df.to_excel(out_path, index=False)
    elif lower.endswith(".json"):
        df.to_json(out_path, orient="records", force_ascii=False, indent=2)
    else:
        df.to_csv(out_path, index=False)


def save_output_rows(listings: List[CanonicalListing], out_path: str, logger=None):
    """Save listings to a CSV, XLSX or JSON file."""
    df = listings_frame(listings)
    write_frame(df, out_path)

    if logger:
        logger.info(f">>> Saved {len(df)} rows to {out_path}")
    else:
        print(f">>> Saved {len(df)} rows to {out_path}")
