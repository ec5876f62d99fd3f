"""PRF Cloud Sync - CLI entry point.

    python main.py --test-access
    python main.py --push PRF-2024-001 [--mode scan --year 2024]
    python main.py --pull PRF-2024-001

Settings come from config.yaml when present, otherwise from environment
variables alone (AZURE_TENANT_ID, AZURE_CLIENT_ID, ONEDRIVE_SHARED_EXCEL_LINK...).
"""

import argparse
import json
import logging
import os
import re
import sys

import requests
from sqlalchemy.exc import SQLAlchemyError

from prf_sync.config import Config
from prf_sync.errors import SyncError
from prf_sync.logging_setup import setup_logging
from prf_sync.service import build_service
from prf_sync.worksheets import MODES, SINGLE

_YEAR = re.compile(r"^\d{4}$")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="PRF Cloud Sync",
        description="Push PRF records to the shared Excel workbook and pull edits back.",
    )
    parser.add_argument("--config", default="config.yaml", help="Path to config.yaml")

    cmds = parser.add_mutually_exclusive_group(required=True)
    cmds.add_argument("--push", metavar="PRF_NO", default=None,
                      help="Update or append this PRF in the workbook")
    cmds.add_argument("--pull", metavar="PRF_NO", default=None,
                      help="Read this PRF back from the workbook into the database")
    cmds.add_argument("--test-access", action="store_true",
                      help="Resolve the workbook and show the worksheet header")

    parser.add_argument("--mode", choices=MODES, default=SINGLE,
                        help="single: configured worksheet only; scan: all matching worksheets")
    parser.add_argument("--year", default=None, help="Preferred budget year in scan mode (YYYY)")
    return parser


def parse_year(raw, logger: logging.Logger):
    """Four-digit year or None; anything else is ignored with a warning."""
    if raw is None:
        return None
    text = str(raw).strip()
    if not _YEAR.match(text):
        logger.warning("Ignoring --year '%s': expected four digits.", raw)
        return None
    return int(text)


def load_config(path: str) -> Config:
    if os.path.exists(path):
        return Config.load(path)
    return Config.from_env()


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        cfg = load_config(args.config)
    except (SyncError, OSError) as e:
        print(f"ERROR loading config: {e}")
        return 1

    cfg.ensure_dirs()
    logger = setup_logging(cfg.log_dir)
    year = parse_year(args.year, logger)

    try:
        service = build_service(cfg)

        if args.test_access:
            info = service.test_access()
            print(json.dumps(info, indent=2, default=str))
            return 0

        prf_no = (args.push or args.pull or "").strip()
        record = service.store.find_by_prf_no(prf_no)
        if record is None:
            print(f"ERROR: PRF '{prf_no}' not found in the database.")
            return 1

        if args.push:
            outcome = service.sync_prf_to_excel(record, mode=args.mode, year=year)
        else:
            outcome = service.pull_prf_from_excel(record, mode=args.mode, year=year)
        print(json.dumps(outcome.to_dict(), indent=2, default=str))
        return 0

    except (SyncError, requests.RequestException, SQLAlchemyError) as e:
        print(f"ERROR: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
