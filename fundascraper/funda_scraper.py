"""
Command-line entry point for the funda.nl search scraper.
"""
import argparse
import asyncio
import os

from .core import run_scrape
from .database import append_listings, db_connect, db_init
from .export import export_new_since_run, save_output_rows, write_frame
from .utils import build_start_url, init_logger, now_iso


def positive_int(text: str) -> int:
    value = int(text)
    if value < 1:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {text}")
    return value


def parse_args(argv=None):
    ap = argparse.ArgumentParser(description="funda.nl search-results scraper with SQLite output")
    ap.add_argument("--start-url", type=str, default="", help="Search URL to start from (overrides search parameters)")
    ap.add_argument("--property-type", choices=["koop", "huur"], default="koop", help="Buy (koop) or rent (huur)")
    ap.add_argument("--location", type=str, default="", help="Area to search, e.g. 'amsterdam'")
    ap.add_argument("--min-price", type=int, default=None, help="Minimum price")
    ap.add_argument("--max-price", type=int, default=None, help="Maximum price")
    ap.add_argument("--results-wanted", type=positive_int, default=20, help="Number of unique listings to collect")
    ap.add_argument("--max-pages", type=positive_int, default=10, help="Maximum number of result pages to visit")
    ap.add_argument("--headless", action="store_true", help="Run without UI")
    ap.add_argument("--db", type=str, default="funda.db", help="Path to SQLite DB")
    ap.add_argument("--out", type=str, default="funda_export.csv", help="CSV/XLSX/JSON file to export")
    ap.add_argument("--export-new", action="store_true", help="Export rows first stored during this run (from the DB)")
    ap.add_argument("--debug-dir", type=str, default="debug", help="Where to keep HTML of blocked or empty pages")
    # Logging
    lvl_choices = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    ap.add_argument("--log-level", choices=lvl_choices, default=None,
                    help="Global log level for both console and file (overrides --log-console/--log-file).")
    ap.add_argument("--log-console", choices=lvl_choices, default=os.getenv("LOG_CONSOLE", "INFO"),
                    help="Console log level (default from env LOG_CONSOLE or INFO).")
    ap.add_argument("--log-file", choices=lvl_choices, default=os.getenv("LOG_FILE", "DEBUG"),
                    help="File log level (default from env LOG_FILE or DEBUG).")
    ap.add_argument("--log-file-path", default=os.getenv("LOG_FILE_PATH", "fundascraper.log"),
                    help="Path to log file (default from env LOG_FILE_PATH or fundascraper.log).")
    ap.add_argument("--no-file-log", action="store_true",
                    help="Disable file logging (only console output).")

    return ap.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    eff_console = args.log_level or args.log_console
    eff_file = args.log_level or args.log_file
    logger = init_logger(
        console_level=eff_console,
        file_level=eff_file,
        log_file=None if args.no_file_log else args.log_file_path
    )
    logger.info(
        f"Logger initialized: console={eff_console}, "
        f"file={'DISABLED' if args.no_file_log else eff_file}, "
        f"path={'N/A' if args.no_file_log else args.log_file_path}"
    )
    run_started_iso = now_iso()
    logger.info(f">>> Run started at {run_started_iso}")

    start_url = args.start_url.strip() or build_start_url(
        property_type=args.property_type,
        location=args.location.strip() or None,
        min_price=args.min_price,
        max_price=args.max_price,
    )

    os.makedirs(os.path.dirname(args.db) or ".", exist_ok=True)
    conn = db_connect(args.db)
    db_init(conn)

    def sink(batch):
        inserted = append_listings(conn, batch)
        logger.info(f">>> Pushed {len(batch)} listings ({inserted} new in DB)")

    try:
        listings, status = asyncio.run(run_scrape(
            start_url=start_url,
            results_wanted=args.results_wanted,
            max_pages=args.max_pages,
            headless=args.headless,
            sink=sink,
            debug_dir=args.debug_dir or None,
        ))
        logger.info(f">>> Finished with status {status.value}: {len(listings)} listings")

        if args.export_new:
            dfn = export_new_since_run(conn, run_started_iso)
            write_frame(dfn, args.out)
            logger.info(f">>> Export only new items: {len(dfn)} rows -> {args.out}")
        else:
            save_output_rows(listings, args.out, logger=logger)
    finally:
        conn.close()


if __name__ == "__main__":
    main()
