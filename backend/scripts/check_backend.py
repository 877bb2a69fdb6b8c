#!/usr/bin/env python3
"""
Quick checks so the backend can start. Run from backend/:
  python scripts/check_backend.py
"""
import os
import sys
from pathlib import Path

# Run from backend/
backend_dir = Path(__file__).resolve().parent.parent
os.chdir(backend_dir)
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))


def main():
    errors = []

    # 1) .env
    env_file = backend_dir / ".env"
    if not env_file.exists():
        print("WARN backend/.env missing; using environment variables and defaults (DATABASE_URL, SMTP_*)")
    else:
        print("OK  .env exists")

    # 2) DB connection and schema
    try:
        from sqlalchemy import inspect, text

        from teesheet.db.session import engine
        from teesheet.db.tables import ALL_TABLE_NAMES

        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        print("OK  Database connection (DATABASE_URL)")
        missing = sorted(set(ALL_TABLE_NAMES) - set(inspect(engine).get_table_names()))
        if missing:
            errors.append(f"Tables missing (run: alembic upgrade head): {', '.join(missing)}")
            print("FAIL Schema: missing", len(missing), "tables")
        else:
            print("OK  Schema has all", len(ALL_TABLE_NAMES), "tables")
    except Exception as e:
        errors.append(f"Database: {e}")
        print("FAIL Database:", e)

    # 3) Sun times provider
    try:
        from teesheet.config import settings
        from teesheet.services.solar import get_sun_adapter

        print(f"OK  Sun provider: {settings.solar_provider} ({type(get_sun_adapter()).__name__})")
    except Exception as e:
        errors.append(f"Sun provider: {e}")
        print("FAIL Sun provider:", e)

    # 4) App import (catches missing deps, bad imports)
    try:
        from teesheet.main import app  # noqa: F401

        print("OK  App import (teesheet.main)")
    except Exception as e:
        errors.append(f"App import: {e}")
        print("FAIL App import:", e)

    if errors:
        print("\n---")
        for e in errors:
            print("•", e)
        print("\nThen start backend: cd backend && uvicorn teesheet.main:app --reload --port 8000")
        return 1

    print("\nAll checks passed. Start with: cd backend && uvicorn teesheet.main:app --reload --port 8000")
    return 0


if __name__ == "__main__":
    sys.exit(main())
