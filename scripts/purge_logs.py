#!/usr/bin/env python3
"""Delete decision log records older than the retention window.

Usage:
    python scripts/purge_logs.py
    python scripts/purge_logs.py --days 7
    python scripts/purge_logs.py --path /var/lib/commentguard/decisions.jsonl
"""

import argparse
import sys
from pathlib import Path

# Allow running from repo root without installing the package
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from commentguard.config import GuardConfig, get_config
from commentguard.log_store import JsonlLogStore, LogStoreError, purge_old_logs
from commentguard.logging_config import configure_logging


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Purge Comment Guard decision log records past retention.",
    )
    parser.add_argument(
        "--days",
        type=int,
        default=None,
        help="Retention in days (default: COMMENTGUARD_LOG_RETENTION_DAYS, 0 keeps forever)",
    )
    parser.add_argument(
        "--path",
        type=Path,
        default=None,
        help="Decision log file (default: COMMENTGUARD_LOG_STORE_PATH)",
    )
    args = parser.parse_args()

    config = get_config()
    configure_logging(config.log_level, config.log_format)
    overrides = {}
    if args.days is not None:
        overrides["log_retention_days"] = args.days
    if args.path is not None:
        overrides["log_store_path"] = args.path
    if overrides:
        config = GuardConfig(**{**config.model_dump(), **overrides})

    store = JsonlLogStore(config.log_store_path)
    try:
        deleted = purge_old_logs(store, config)
    except LogStoreError as e:
        print(f"Purge failed: {e}", file=sys.stderr)
        return 1

    print(f"Deleted {deleted} record(s) from {config.log_store_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
