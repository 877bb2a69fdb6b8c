#!/usr/bin/env python3
"""
Rebuild the tee sheet database from scratch: drop every table (configuration included), then run
Alembic to head. For a dev database in a mixed state; to keep configuration and only clear slots and
bookings use clear_operational_tables.py instead.

Run from backend dir:
  python scripts/drop_schema_and_migrate.py --yes
"""
import argparse
import subprocess
import sys
from pathlib import Path

backend_dir = Path(__file__).resolve().parent.parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

from sqlalchemy import text

import teesheet.models  # noqa: F401
from teesheet.db.base import Base
from teesheet.db.session import engine


def drop_all() -> None:
    if engine.dialect.name == "postgresql":
        with engine.connect() as conn:
            conn.execute(text("DROP SCHEMA IF EXISTS public CASCADE"))
            conn.execute(text("CREATE SCHEMA public"))
            conn.execute(text("GRANT ALL ON SCHEMA public TO public"))
            conn.commit()
        return
    Base.metadata.drop_all(engine)
    with engine.connect() as conn:
        conn.execute(text("DROP TABLE IF EXISTS alembic_version"))
        conn.commit()


def main():
    parser = argparse.ArgumentParser(description="Drop all tee sheet tables and migrate to head")
    parser.add_argument("--yes", action="store_true", help="Confirm dropping every table")
    args = parser.parse_args()
    if not args.yes:
        print(f"This drops every table in {engine.url.render_as_string(hide_password=True)}. Re-run with --yes.")
        sys.exit(1)

    print(f"Dropping all tables ({engine.dialect.name})...")
    drop_all()
    print("Running migrations...")
    result = subprocess.run([sys.executable, "-m", "alembic", "upgrade", "head"], cwd=backend_dir)
    if result.returncode != 0:
        sys.exit(result.returncode)
    print("Done. Tee sheet schema created.")


if __name__ == "__main__":
    main()
