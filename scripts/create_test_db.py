#!/usr/bin/env python3
"""
Check the test database configuration before running the suite.

Tests drop and recreate every table, so they must never point at the
application database.
"""

import os
import sys
from pathlib import Path

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

DEFAULT_TEST_DATABASE_URL = "sqlite+aiosqlite:///./test_medix.db"


def main() -> int:
    """Report on TEST_DATABASE_URL and return a shell exit code."""
    from dotenv import load_dotenv

    load_dotenv()

    app_db = os.getenv("DATABASE_URL")
    test_db = os.getenv("TEST_DATABASE_URL") or DEFAULT_TEST_DATABASE_URL

    print("Test Database Setup Verification")
    print(f"   Application DB: {app_db}")
    print(f"   Test DB:        {test_db}")
    print()

    if app_db and test_db == app_db:
        print("❌ CRITICAL: Test database is the same as the application database!")
        print("   The suite drops all tables. Set TEST_DATABASE_URL to a separate database.")
        return 1

    if test_db.startswith("sqlite"):
        print("ℹ️  Using SQLite. PostgreSQL-only tests (row locks, exclusion constraint)")
        print("   will be skipped. Point TEST_DATABASE_URL at PostgreSQL to run them.")
    else:
        if "test" not in test_db.lower():
            print("⚠️  WARNING: Test database URL doesn't contain 'test'")
        print("ℹ️  PostgreSQL tests need the btree_gist extension to be installable.")

    print()
    print("✅ Test database configuration looks good! Run: pytest")
    return 0


if __name__ == "__main__":
    sys.exit(main())
