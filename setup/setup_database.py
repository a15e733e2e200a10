#!/usr/bin/env python3
"""
Create the Supabase table that stores the tracked PR list.

Only needed when SUPABASE_URL / SUPABASE_KEY are configured; without them
the tracker keeps its state in a local JSON file.

Usage:
    python setup/setup_database.py           # Create table
    python setup/setup_database.py --verify  # Check that the table exists
    python setup/setup_database.py --drop    # Drop and recreate (deletes tracked PRs)
"""

import argparse
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import psycopg2

from storage.supabase_client import DEFAULT_TABLE
from utils.config_loader import load_config
from utils.logger import setup_logger

logger = setup_logger(name="setup_database")

CREATE_TABLE_SQL = f"""
CREATE TABLE IF NOT EXISTS {DEFAULT_TABLE} (
    key TEXT PRIMARY KEY,
    value JSONB NOT NULL,
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
"""

DROP_TABLE_SQL = f"DROP TABLE IF EXISTS {DEFAULT_TABLE};"

TABLE_EXISTS_SQL = """
SELECT EXISTS (
    SELECT FROM information_schema.tables
    WHERE table_name = %s
);
"""


def get_database_url(config) -> str:
    """DATABASE_URL from .env; exits with instructions when it is missing."""
    if config.credentials.database_url:
        return config.credentials.database_url

    logger.error("DATABASE_URL not found in .env file")
    logger.error("Copy the 'URI' connection string from Supabase Dashboard → Project Settings → Database")
    logger.error("and add it to .env: DATABASE_URL=postgresql://...")
    sys.exit(1)


def execute_sql(conn, statement: str, description: str) -> bool:
    try:
        with conn.cursor() as cursor:
            cursor.execute(statement)
        conn.commit()
        logger.info(f"✓ {description}")
        return True
    except psycopg2.Error as e:
        logger.error(f"✗ {description} failed: {e}")
        conn.rollback()
        return False


def verify_schema(conn) -> bool:
    """Check that the state table exists and report how many keys it holds."""
    try:
        with conn.cursor() as cursor:
            cursor.execute(TABLE_EXISTS_SQL, (DEFAULT_TABLE,))
            if not cursor.fetchone()[0]:
                logger.error(f"✗ Table '{DEFAULT_TABLE}' does not exist")
                return False
            cursor.execute(f"SELECT COUNT(*) FROM {DEFAULT_TABLE};")
            rows = cursor.fetchone()[0]
    except psycopg2.Error as e:
        logger.error(f"✗ Schema verification failed: {e}")
        return False

    logger.info(f"✓ Table '{DEFAULT_TABLE}' exists ({rows} keys)")
    return True


def drop_schema(conn) -> bool:
    """Drop the state table after interactive confirmation."""
    logger.warning("=" * 80)
    logger.warning(f"⚠️  WARNING: this deletes table '{DEFAULT_TABLE}' and every tracked PR in it")
    logger.warning("=" * 80)

    response = input("\nType 'yes' to confirm: ")
    if response.lower() != 'yes':
        logger.info("Aborted.")
        return False
    return execute_sql(conn, DROP_TABLE_SQL, f"Dropped table '{DEFAULT_TABLE}'")


def main():
    parser = argparse.ArgumentParser(description="Set up the Supabase table for pr-ci-tracker")
    parser.add_argument("--verify", action="store_true", help="Verify existing table without creating")
    parser.add_argument("--drop", action="store_true", help="Drop and recreate the table (deletes tracked PRs)")
    args = parser.parse_args()

    config = load_config()
    database_url = get_database_url(config)

    try:
        conn = psycopg2.connect(database_url)
    except psycopg2.Error as e:
        logger.error(f"✗ Failed to connect to database: {e}")
        sys.exit(1)
    logger.info("✓ Connected to PostgreSQL database")

    try:
        if args.verify:
            sys.exit(0 if verify_schema(conn) else 1)

        if args.drop and not drop_schema(conn):
            sys.exit(1)

        if not execute_sql(conn, CREATE_TABLE_SQL, f"Created table '{DEFAULT_TABLE}'"):
            sys.exit(1)
        logger.info("Verify with: python setup/setup_database.py --verify")
        sys.exit(0)
    finally:
        conn.close()


if __name__ == "__main__":
    main()
