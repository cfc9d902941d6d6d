"""
Command line entry point: process a chat export, search or export stored listings.
"""
import argparse
import asyncio
import json
import logging
import os
import sys
from pathlib import Path
from typing import Optional

from .config import config
from .database import SqliteListingStore
from .export import export_new_since_run, save_output_rows
from .geocoding import GoogleGeocoder
from .images import GoogleVisionOcr
from .llm import LLMFieldExtractor
from .models import DEFAULT_GROUP
from .pipeline import process_export, process_export_folder
from .rules import RuleBasedExtractor
from .utils import init_logger, now_iso

logger = logging.getLogger("chatlistings")


def parse_args(argv=None):
    ap = argparse.ArgumentParser(
        description="Extract property listings from exported group chats into SQLite"
    )
    ap.add_argument("input", nargs="?", default=None,
                    help="Chat export .txt file, or a folder with the transcript and images")
    ap.add_argument("--group", type=str, default=None,
                    help="Conversation label (default: transcript file name)")
    ap.add_argument("--db", type=str, default=config.DB_PATH, help="Path to SQLite DB")
    ap.add_argument("--extractor", choices=["auto", "llm", "rules"], default="auto",
                    help="Field extractor; auto uses the model when OPENAI_API_KEY is set")
    ap.add_argument("--geocode", action="store_true", help="Geocode locations (needs GOOGLE_MAPS_API_KEY)")
    ap.add_argument("--ocr", action="store_true", help="OCR images in the export folder")
    ap.add_argument("--delay", type=float, default=config.EXTRACTION_DELAY_SECONDS,
                    help="Seconds to wait between extraction calls")
    ap.add_argument("--threshold", type=float, default=config.CONFIDENCE_THRESHOLD,
                    help="Confidence above which a listing is marked verified")
    ap.add_argument("--export-new", action="store_true", help="Export only listings stored by this run")
    ap.add_argument("--out", type=str, default="", help="CSV/XLSX to export")
    # Querying stored listings
    ap.add_argument("--search", type=str, default=None, help="Search stored listings instead of processing")
    ap.add_argument("--listing-type", choices=["rent", "sale", "unknown"], default=None)
    ap.add_argument("--city", type=str, default=None)
    ap.add_argument("--bhk", type=float, default=None)
    ap.add_argument("--min-price", type=float, default=None)
    ap.add_argument("--max-price", type=float, default=None)
    ap.add_argument("--limit", type=int, default=50)
    ap.add_argument("--stats", action="store_true", help="Print statistics for stored listings")
    # Logging
    lvl_choices = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    ap.add_argument("--log-level", choices=lvl_choices, default=None,
                    help="Global log level for both console and file (overrides --log-console/--log-file).")
    ap.add_argument("--log-console", choices=lvl_choices, default=os.getenv("LOG_CONSOLE", config.LOG_LEVEL.upper()),
                    help="Console log level (default from env LOG_CONSOLE, LOG_LEVEL or INFO).")
    ap.add_argument("--log-file", choices=lvl_choices, default=os.getenv("LOG_FILE", "DEBUG"),
                    help="File log level (default from env LOG_FILE or DEBUG).")
    ap.add_argument("--log-file-path", default=os.getenv("LOG_FILE_PATH", "chat_listings.log"),
                    help="Path to log file (default from env LOG_FILE_PATH or chat_listings.log).")
    ap.add_argument("--no-file-log", action="store_true",
                    help="Disable file logging (only console output).")
    return ap, ap.parse_args(argv)


def build_extractor(kind: str, geocoder: Optional[GoogleGeocoder]):
    if kind == "rules" or (kind == "auto" and not config.OPENAI_API_KEY):
        return RuleBasedExtractor(geocoder=geocoder)
    return LLMFieldExtractor(
        api_key=config.OPENAI_API_KEY,
        base_url=config.OPENAI_BASE_URL,
        model=config.OPENAI_MODEL,
        geocoder=geocoder,
        timeout=config.HTTP_TIMEOUT_SECONDS,
    )


def _write_frame(df, out_path: str):
    if out_path.lower().endswith(".xlsx"):
        df.to_excel(out_path, index=False)
    else:
        df.to_csv(out_path, index=False)


def run_query(args, store: SqliteListingStore) -> int:
    if args.stats:
        print(json.dumps(store.statistics(), indent=2, ensure_ascii=False))
        return 0

    results = store.search(
        args.search or None,
        listing_type=args.listing_type,
        city=args.city,
        bhk=args.bhk,
        min_price=args.min_price,
        max_price=args.max_price,
        limit=args.limit,
    )
    logger.info(f">>> {len(results)} listings match")
    if args.out:
        save_output_rows(results, args.out)
    else:
        print(json.dumps(results, indent=2, ensure_ascii=False, default=str))
    return 0


def run_process(args, store: SqliteListingStore) -> int:
    geocoder = None
    if args.geocode:
        if config.GOOGLE_MAPS_API_KEY:
            geocoder = GoogleGeocoder(config.GOOGLE_MAPS_API_KEY, timeout=config.HTTP_TIMEOUT_SECONDS)
        else:
            logger.warning("GOOGLE_MAPS_API_KEY not set, geocoding disabled")
    extractor = build_extractor(args.extractor, geocoder)
    logger.info(f">>> Extractor: {extractor.name}")

    ocr = None
    if args.ocr:
        if config.GOOGLE_VISION_API_KEY:
            ocr = GoogleVisionOcr(config.GOOGLE_VISION_API_KEY, timeout=config.HTTP_TIMEOUT_SECONDS)
        else:
            logger.warning("GOOGLE_VISION_API_KEY not set, images will be skipped")

    run_started_iso = now_iso()
    logger.info(f">>> Run started at {run_started_iso}")

    path = Path(args.input)
    if path.is_dir():
        report = asyncio.run(process_export_folder(
            path, extractor=extractor, store=store, ocr=ocr, source_group=args.group,
            delay_seconds=args.delay, confidence_threshold=args.threshold,
        ))
    else:
        text = path.read_text(encoding="utf-8", errors="replace")
        report = asyncio.run(process_export(
            text, source_group=args.group or path.stem or DEFAULT_GROUP, extractor=extractor,
            store=store, delay_seconds=args.delay, confidence_threshold=args.threshold,
        ))

    for key, value in report.summary().items():
        logger.info(f">>> {key}: {value}")

    if args.export_new:
        out = args.out or "chat_listings_export.xlsx"
        dfn = export_new_since_run(store.conn, run_started_iso)
        _write_frame(dfn, out)
        logger.info(f">>> Export only new listings: {len(dfn)} rows -> {out}")
    elif args.out:
        save_output_rows(report.listings, args.out)
    return 0


def main(argv=None) -> int:
    ap, args = parse_args(argv)
    eff_console = args.log_level or args.log_console
    eff_file = args.log_level or args.log_file
    init_logger(
        console_level=eff_console,
        file_level=eff_file,
        log_file=None if args.no_file_log else args.log_file_path
    )
    logger.info(
        f"Logger initialized: console={eff_console}, "
        f"file={'DISABLED' if args.no_file_log else eff_file}, "
        f"path={'N/A' if args.no_file_log else args.log_file_path}"
    )

    querying = args.search is not None or args.stats
    if not querying and not args.input:
        ap.error("an input file or folder is required unless --search or --stats is given")
    if args.input and not os.path.exists(args.input):
        ap.error(f"input not found: {args.input}")

    if querying and not os.path.exists(args.db):
        raise FileNotFoundError(f"Database file not found: {args.db}")
    config.validate()

    os.makedirs(os.path.dirname(args.db) or ".", exist_ok=True)
    with SqliteListingStore(args.db) as store:
        if querying:
            return run_query(args, store)
        return run_process(args, store)


if __name__ == "__main__":
    sys.exit(main())
