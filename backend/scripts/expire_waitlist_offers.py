#!/usr/bin/env python3
"""
Expire lapsed waitlist offers and pass their seats to the next party in line.
Meant for cron (every minute or so): cd backend && python scripts/expire_waitlist_offers.py
"""
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from teesheet.db.session import SessionLocal
from teesheet.services.waitlist_service import expire_stale_offers


def main():
    db = SessionLocal()
    try:
        result = expire_stale_offers(db)
        print(f"Expired {result['expired']} offers; re-offered {result['reoffered']}.")
    finally:
        db.close()


if __name__ == "__main__":
    main()
