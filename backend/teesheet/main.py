"""
FastAPI app entrypoint.

Tee sheet engine: windows, generation, bookings and waitlist. Run with
`cd backend && uvicorn teesheet.main:app --reload`. Periodic work (offer expiry, rolling generation)
is driven from scripts/ by an external scheduler.
"""
import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Load .env from backend/ before any teesheet code reads settings
load_dotenv(Path(__file__).resolve().parent.parent / ".env")

from teesheet.api.routes import bookings, tee_sheets, waitlist
from teesheet.config import settings

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Tee Sheet Engine", version="0.1.0")

# CORS: dev origins + optional CORS_ORIGINS env (comma-separated) for a deployed booking frontend
_cors_origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
_cors_extra = os.getenv("CORS_ORIGINS", "")
if _cors_extra:
    _cors_origins.extend(o.strip() for o in _cors_extra.split(",") if o.strip())
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(tee_sheets.router, prefix="/tee-sheets", tags=["tee-sheets"])
app.include_router(bookings.router, prefix="/bookings", tags=["bookings"])
app.include_router(waitlist.router, prefix="/waitlist", tags=["waitlist"])


@app.get("/", include_in_schema=False)
def root():
    """Root: point to API docs and health."""
    return {"message": "Tee Sheet API", "docs": "/docs", "health": "/health"}


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
