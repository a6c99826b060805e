#!/usr/bin/env python
"""
Expense documentation database setup script.

Creates the tables for the configured DATABASE_URL and checks that the
expected tables are present. With --reset every table is dropped first.
"""

import sys
import logging
import argparse
from pathlib import Path

# Add project root to Python path
script_dir = Path(__file__).resolve().parent
project_root = script_dir.parent if script_dir.name == "scripts" else script_dir
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

EXPECTED_TABLES = ["expense_documents", "expense_items", "expense_item_photos"]


def parse_arguments():
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Set up the expense documentation database.")
    parser.add_argument("--reset", action="store_true", help="Drop all tables before creating them")
    parser.add_argument("--verbose", action="store_true", help="Enable verbose output")
    return parser.parse_args()


def verify_database_schema() -> bool:
    """Check that every expected table exists and can be queried."""
    from sqlalchemy import func, inspect, select

    from app.db.models import ExpenseDocument
    from app.db.session import SessionLocal

    db = SessionLocal()
    try:
        tables = inspect(db.bind).get_table_names()
        logger.info(f"Found {len(tables)} tables in database")

        missing_tables = [table for table in EXPECTED_TABLES if table not in tables]
        if missing_tables:
            logger.warning(f"Missing tables: {', '.join(missing_tables)}")
            return False

        count = db.execute(select(func.count(ExpenseDocument.id))).scalar_one()
        logger.info(f"All tables are present, {count} documents stored")
        return True
    finally:
        db.close()


def reset_database() -> None:
    from app.db.models import Base
    from app.db.session import engine

    logger.info(f"Dropping all tables on {engine.url.render_as_string(hide_password=True)}")
    Base.metadata.drop_all(bind=engine)


def main():
    """Main function to orchestrate database setup."""
    args = parse_arguments()

    if args.verbose:
        logger.setLevel(logging.DEBUG)
        logger.debug("Verbose logging enabled")

    from app.db.session import init_db

    if args.reset:
        reset_database()

    init_db()

    if not verify_database_schema():
        logger.error("Database schema verification failed, exiting.")
        sys.exit(1)

    logger.info("Database setup completed successfully")


if __name__ == "__main__":
    main()
