"""
Backfill defaulted fields on users and questions.

Runs directly against the configured database, so it can be used before any
admin account exists. By default only missing fields are filled in; pass
``--reset-counters`` to also zero every question's view/helpful counters.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from qa_backend.config import get_settings
from qa_backend.db import PostgresDbClient
from qa_backend.migrations import fix_existing_data, migrate_data

logger = logging.getLogger(__name__)


def main() -> int:
    parser = argparse.ArgumentParser(description="Backfill user/question defaults")
    parser.add_argument(
        "--database-url",
        default=None,
        help="SQLAlchemy URL (defaults to DATABASE_URL)",
    )
    parser.add_argument(
        "--reset-counters",
        action="store_true",
        help="Also reset views/helpful to 0 on every question",
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO)
    database_url = args.database_url or get_settings().database_url
    if not database_url:
        logger.error("No database configured; set DATABASE_URL or --database-url")
        return 1

    db = PostgresDbClient(database_url)
    result = fix_existing_data(db) if args.reset_counters else migrate_data(db)
    logger.info("Result: %s", result.as_dict())
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
