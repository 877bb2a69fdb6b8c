#!/usr/bin/env python3
"""
Clear generated tee times and everything booked against them (bookings, waitlist, idempotency keys).
Configuration (courses, templates, seasons, overrides, closures) is kept. PostgreSQL only (TRUNCATE).
Run with backend stopped to avoid locks: cd backend && python scripts/clear_operational_tables.py
"""
import sys
from pathlib import Path

# backend/scripts/ -> backend/
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from sqlalchemy import text

from teesheet.db.session import engine
from teesheet.db.tables import OPERATIONAL_TABLE_NAMES


def main():
    tables = ", ".join(OPERATIONAL_TABLE_NAMES)
    print(f"Connecting to DB and truncating {tables} ...")
    with engine.connect() as conn:
        conn.execute(text(f"TRUNCATE TABLE {tables} RESTART IDENTITY CASCADE"))
        conn.commit()
    print("Done. Operational tables are empty. Run scripts/regenerate_range.py to rebuild tee times.")


if __name__ == "__main__":
    main()
