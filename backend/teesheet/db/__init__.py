from teesheet.db.base import Base
from teesheet.db.session import get_db, engine, make_engine, SessionLocal
from teesheet.db.tables import ALL_TABLE_NAMES, OPERATIONAL_TABLE_NAMES

__all__ = ["get_db", "engine", "make_engine", "SessionLocal", "Base", "ALL_TABLE_NAMES", "OPERATIONAL_TABLE_NAMES"]
