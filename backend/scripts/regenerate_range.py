#!/usr/bin/env python3
"""
Regenerate tee times for a tee sheet over an inclusive date range (e.g. nightly, rolling 14 days ahead).
Run from backend: python scripts/regenerate_range.py --tee-sheet 1 --start 2026-06-01 --end 2026-06-14
Omit --start/--end to regenerate today (course-local) through --days ahead.
"""
import argparse
import sys
from datetime import timedelta
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from teesheet.core.constants import DEFAULT_APPLY_DAYS
from teesheet.core.errors import TeeSheetError
from teesheet.core.timeutil import now_utc, parse_date_iso
from teesheet.db.session import SessionLocal
from teesheet.services.tee_sheet_generator import regenerate_range
from teesheet.services.template_resolver import load_sheet_and_zone


def main():
    parser = argparse.ArgumentParser(description="Regenerate tee times for a date range")
    parser.add_argument("--tee-sheet", type=int, required=True, help="Tee sheet id")
    parser.add_argument("--start", help="First date (YYYY-MM-DD); default today at the course")
    parser.add_argument("--end", help="Last date, inclusive (YYYY-MM-DD)")
    parser.add_argument("--days", type=int, default=DEFAULT_APPLY_DAYS, help="Days ahead when --end is omitted")
    args = parser.parse_args()

    db = SessionLocal()
    try:
        if args.start:
            first = parse_date_iso(args.start)
        else:
            _, _, zone = load_sheet_and_zone(db, args.tee_sheet)
            first = now_utc().astimezone(zone).date()
        last = parse_date_iso(args.end) if args.end else first + timedelta(days=args.days - 1)
        result = regenerate_range(db, args.tee_sheet, first, last)
        print(f"Tee sheet {args.tee_sheet}: {first} .. {last}: {result['days']} days, {result['regenerated']} tee times")
    except TeeSheetError as e:
        db.rollback()
        print(f"Error: {e.code}: {e.message}", file=sys.stderr)
        sys.exit(1)
    finally:
        db.close()


if __name__ == "__main__":
    main()
