"""
Sunrise/sunset adapters. The active adapter is module state so tests can install a
deterministic one; the default comes from settings.solar_provider.
"""
import logging
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Protocol
from zoneinfo import ZoneInfo

from astral import Observer
from astral.sun import sun

from teesheet.config import settings
from teesheet.core.constants import DEFAULT_SUNRISE, DEFAULT_SUNSET

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SunTimes:
    sunrise: datetime
    sunset: datetime


class SunAdapter(Protocol):
    def sun_times(self, day: date, latitude: float | None, longitude: float | None, zone: ZoneInfo) -> SunTimes:
        ...


class FixedSunAdapter:
    """Same local clocks every day (07:00 / 18:00 unless given)."""

    def __init__(self, sunrise: time = DEFAULT_SUNRISE, sunset: time = DEFAULT_SUNSET):
        self.sunrise = sunrise
        self.sunset = sunset

    def sun_times(self, day, latitude, longitude, zone) -> SunTimes:
        return SunTimes(
            sunrise=datetime.combine(day, self.sunrise, tzinfo=zone),
            sunset=datetime.combine(day, self.sunset, tzinfo=zone),
        )


class AstralSunAdapter:
    """Real sun times from course coordinates; falls back when coordinates are missing or the sun never rises/sets."""

    def __init__(self, fallback: SunAdapter | None = None):
        self.fallback = fallback or FixedSunAdapter()

    def sun_times(self, day, latitude, longitude, zone) -> SunTimes:
        if latitude is None or longitude is None:
            return self.fallback.sun_times(day, latitude, longitude, zone)
        try:
            s = sun(Observer(latitude=latitude, longitude=longitude), date=day, tzinfo=zone)
        except ValueError as e:
            logger.info("No sunrise/sunset at (%s, %s) on %s (%s); using fixed clocks", latitude, longitude, day, e)
            return self.fallback.sun_times(day, latitude, longitude, zone)
        return SunTimes(sunrise=s["sunrise"].astimezone(zone), sunset=s["sunset"].astimezone(zone))


def _default_adapter() -> SunAdapter:
    if settings.solar_provider == "fixed":
        return FixedSunAdapter()
    if settings.solar_provider != "astral":
        logger.warning("Unknown SOLAR_PROVIDER %r; using astral", settings.solar_provider)
    return AstralSunAdapter()


_adapter: SunAdapter = _default_adapter()


def set_sun_adapter(adapter: SunAdapter | None) -> None:
    """Install an adapter (None restores the configured default)."""
    global _adapter
    _adapter = adapter or _default_adapter()


def get_sun_adapter() -> SunAdapter:
    return _adapter


def get_sun_times(day: date, latitude: float | None, longitude: float | None, zone: ZoneInfo) -> SunTimes:
    return _adapter.sun_times(day, latitude, longitude, zone)
