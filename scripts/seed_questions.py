"""
Seed an empty database with starter questions.
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
from qa_backend.seed import seed_questions

logger = logging.getLogger(__name__)


def main() -> int:
    parser = argparse.ArgumentParser(description="Seed starter questions")
    parser.add_argument(
        "--database-url",
        default=None,
        help="SQLAlchemy URL (defaults to DATABASE_URL)",
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO)
    database_url = args.database_url or get_settings().database_url
    if not database_url:
        logger.error("No database configured; set DATABASE_URL or --database-url")
        return 1

    inserted = seed_questions(PostgresDbClient(database_url))
    logger.info("Inserted %d questions", inserted)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
