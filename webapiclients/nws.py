"""A client for the National Weather Service forecast API."""

from __future__ import annotations

import json
import re
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import IntEnum
from typing import Any, Callable, Optional
from urllib.request import urlopen

API_HOST = "https://api.weather.gov"
DEFAULT_GRIDPOINT_EXPIRATION = timedelta(days=7)
ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)

GetJSON = Callable[[str], Any]
Clock = Callable[[], datetime]

_TIME_RE = re.compile(
    r"(\d{4})-(\d{2})-(\d{2})[Tt](\d{2}):(\d{2}):(\d{2})(?:\.(\d+))?([Zz]|[+-]\d{2}:\d{2})"
)
_PERIOD_RE = re.compile(
    r"P(?:(?P<weeks>\d+)W)?(?:(?P<days>\d+)D)?"
    r"(?:T(?:(?P<hours>\d+)H)?(?:(?P<minutes>\d+)M)?(?:(?P<seconds>\d+(?:\.\d+)?)S)?)?"
)


class OpaqueCloudCoverage(IntEnum):
    """Cloud coverage as a fraction of the sky."""

    UNKNOWN = 0
    CLEAR_SUNNY = 1  # 0 to 1/8 opaque cloud coverage
    MOSTLY_CLEAR_SUNNY = 2  # 1/8 to 3/8
    PARTLY_CLOUDY_SUNNY = 3  # 3/8 to 5/8
    MOSTLY_CLOUDY = 4  # 5/8 to 7/8
    CLOUDY = 5  # 7/8 to 8/8

    def __str__(self) -> str:
        return _COVERAGE_NAMES.get(self, "unknown")


_COVERAGE_NAMES = {
    OpaqueCloudCoverage.CLEAR_SUNNY: "clear/sunny",
    OpaqueCloudCoverage.MOSTLY_CLEAR_SUNNY: "mostly clear/sunny",
    OpaqueCloudCoverage.PARTLY_CLOUDY_SUNNY: "partly cloudy/sunny",
    OpaqueCloudCoverage.MOSTLY_CLOUDY: "mostly cloudy",
    OpaqueCloudCoverage.CLOUDY: "cloudy",
}


def cloud_opacity_from_short_forecast(forecast: str) -> OpaqueCloudCoverage:
    """Return the cloud coverage implied by a short forecast such as 'Mostly Sunny'."""
    text = forecast.lower()
    if text.startswith(("clear", "sunny")):
        return OpaqueCloudCoverage.CLEAR_SUNNY
    if text.startswith(("mostly clear", "mostly sunny")):
        return OpaqueCloudCoverage.MOSTLY_CLEAR_SUNNY
    if text.startswith(("partly cloudy", "partly sunny")):
        return OpaqueCloudCoverage.PARTLY_CLOUDY_SUNNY
    if text.startswith("mostly cloudy"):
        return OpaqueCloudCoverage.MOSTLY_CLOUDY
    if text.startswith("cloudy"):
        return OpaqueCloudCoverage.CLOUDY
    return OpaqueCloudCoverage.UNKNOWN


def _parse_time(text: Any) -> datetime:
    match = _TIME_RE.fullmatch(text) if isinstance(text, str) else None
    if match is None:
        raise ValueError(f"invalid RFC 3339 time: {text!r}")
    year, month, day, hour, minute, second, fraction, zone = match.groups()
    micro = int((fraction or "0")[:6].ljust(6, "0"))
    if zone in ("Z", "z"):
        tz = timezone.utc
    else:
        sign = 1 if zone[0] == "+" else -1
        tz = timezone(sign * timedelta(hours=int(zone[1:3]), minutes=int(zone[4:6])))
    return datetime(int(year), int(month), int(day), int(hour), int(minute),
                    int(second), micro, tzinfo=tz)


def parse_iso8601_period(value: str) -> timedelta:
    """Parse an ISO 8601 duration made of weeks, days, hours, minutes and seconds."""
    match = _PERIOD_RE.fullmatch(value) if isinstance(value, str) else None
    if match is None or not any(match.groupdict().values()) or value.endswith("T"):
        raise ValueError(f"invalid ISO 8601 period: {value!r}")
    parts = match.groupdict()
    return timedelta(
        weeks=int(parts["weeks"] or 0),
        days=int(parts["days"] or 0),
        hours=int(parts["hours"] or 0),
        minutes=int(parts["minutes"] or 0),
        seconds=float(parts["seconds"] or 0),
    )


def parse_valid_times(value: str) -> tuple[datetime, timedelta]:
    """Split 'start/period' into its start time and duration."""
    parts = value.split("/")
    if len(parts) != 2:
        raise ValueError("expected two parts separated by /")
    try:
        start = _parse_time(parts[0])
    except ValueError as err:
        raise ValueError(f"failed to parse start time: {err}") from err
    try:
        period = parse_iso8601_period(parts[1])
    except ValueError as err:
        raise ValueError(f"failed to parse period: {err}") from err
    return start, period


def _get(data: dict, name: str) -> Any:
    if name in data:
        return data[name]
    lowered = name.lower()
    for key, value in data.items():
        if key.lower() == lowered:
            return value
    return None


def _object(value: Any) -> dict:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"expected a JSON object, got {value!r}")
    return value


def _time_field(data: dict, name: str) -> datetime:
    value = _get(data, name)
    return ZERO_TIME if value is None else _parse_time(value)


def _int_field(data: dict, name: str) -> int:
    value = _get(data, name)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"field {name!r} is not an integer: {value!r}")
    return value


def _str_field(data: dict, name: str) -> str:
    value = _get(data, name)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"field {name!r} is not a string: {value!r}")
    return value


@dataclass(frozen=True)
class GridPoints:
    """The forecast office and grid cell covering a location."""

    id: str
    grid_x: int
    grid_y: int


@dataclass
class Period:
    """The forecast for one period of time."""

    start_time: datetime = ZERO_TIME
    end_time: datetime = ZERO_TIME
    name: str = ""
    short_forecast: str = ""
    opaque_cloud_coverage: OpaqueCloudCoverage = OpaqueCloudCoverage.UNKNOWN

    @classmethod
    def from_dict(cls, data: Any) -> "Period":
        obj = _object(data)
        short = _str_field(obj, "shortForecast")
        return cls(
            start_time=_time_field(obj, "startTime"),
            end_time=_time_field(obj, "endTime"),
            name=_str_field(obj, "name"),
            short_forecast=short,
            opaque_cloud_coverage=cloud_opacity_from_short_forecast(short),
        )


@dataclass
class Forecast:
    """The forecasts for one grid point over a number of periods."""

    generated: datetime = ZERO_TIME
    updated: datetime = ZERO_TIME
    valid_from: datetime = ZERO_TIME
    valid_for: timedelta = timedelta(0)
    periods: list[Period] = field(default_factory=list)

    def period_for(self, when: datetime) -> Optional[Period]:
        """Return the period containing when, or None."""
        for period in self.periods:
            if period.start_time <= when < period.end_time:
                return period
        return None


@dataclass
class _GridPointEntry:
    lat: float
    long: float
    points: GridPoints


class _GridPointsCache:
    def __init__(self, expiration: timedelta) -> None:
        self._lock = threading.Lock()
        self._entries: list[_GridPointEntry] = []
        self._last_update: Optional[datetime] = None
        self._expiration = expiration

    def lookup(self, lat: float, long: float, now: datetime) -> Optional[GridPoints]:
        with self._lock:
            if self._last_update is None or now - self._last_update >= self._expiration:
                self._entries.clear()
            for entry in self._entries:
                if entry.lat == lat and entry.long == long:
                    return entry.points
            return None

    def add(self, lat: float, long: float, points: GridPoints, now: datetime) -> None:
        with self._lock:
            self._entries.append(_GridPointEntry(lat, long, points))
            self._last_update = now


class _ForecastCache:
    def __init__(self, expiration: timedelta) -> None:
        self._lock = threading.Lock()
        self._entries: list[tuple[GridPoints, Forecast]] = []
        self._expiration = expiration

    def lookup(self, gp: GridPoints, now: datetime) -> Optional[Forecast]:
        with self._lock:
            for points, forecast in self._entries:
                if points != gp:
                    continue
                expiry = forecast.valid_for
                if self._expiration > timedelta(0):
                    expiry = min(forecast.valid_for, self._expiration)
                if now > forecast.valid_from + expiry:
                    return None
                return forecast
            return None

    def add(self, gp: GridPoints, forecast: Forecast) -> None:
        with self._lock:
            self._entries.append((gp, forecast))


def _default_get_json(url: str) -> Any:
    with urlopen(url) as resp:
        return json.loads(resp.read())


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class API:
    """Client for the National Weather Service API with caching of lookups.

    gridpoint_expiration bounds how long lat/long to grid point mappings
    are kept. forecast_expiration, when positive, shortens how long a
    forecast is reused below the validity period it carries.
    """

    def __init__(
        self,
        *,
        gridpoint_expiration: timedelta = DEFAULT_GRIDPOINT_EXPIRATION,
        forecast_expiration: timedelta = timedelta(0),
        host: str = API_HOST,
        get_json: Optional[GetJSON] = None,
        now: Clock = _utc_now,
    ) -> None:
        self.host = host
        self._get_json = get_json or _default_get_json
        self._now = now
        self._points = _GridPointsCache(gridpoint_expiration)
        self._forecasts = _ForecastCache(forecast_expiration)

    def _fetch(self, url: str, what: str) -> dict:
        try:
            data = self._get_json(url)
        except OSError as err:
            raise OSError(f"{url}: {what}: {err}") from err
        except ValueError as err:
            raise ValueError(f"{url}: {what}: {err}") from err
        return _object(data)

    def lookup_grid_points(self, lat: float, long: float) -> GridPoints:
        """Return the grid points for a location, using the cache when possible."""
        cached = self._points.lookup(lat, long, self._now())
        if cached is not None:
            return cached
        url = f"{self.host}/points/{lat:f},{long:f}"
        props = _object(_get(self._fetch(url, "grid point lookup failed"), "properties"))
        points = GridPoints(
            id=_str_field(props, "gridId"),
            grid_x=_int_field(props, "gridX"),
            grid_y=_int_field(props, "gridY"),
        )
        self._points.add(lat, long, points, self._now())
        return points

    def get_forecasts(self, gp: GridPoints) -> Forecast:
        """Return the forecasts for a grid point, using the cache while still valid."""
        cached = self._forecasts.lookup(gp, self._now())
        if cached is not None:
            return cached
        url = f"{self.host}/gridpoints/{gp.id}/{gp.grid_x},{gp.grid_y}/forecast"
        props = _object(_get(self._fetch(url, "forecast download failed"), "properties"))
        valid_times = _str_field(props, "validTimes")
        try:
            valid_from, valid_for = parse_valid_times(valid_times)
        except ValueError as err:
            raise ValueError(f"failed to parse valid times: {valid_times!r}: {err}") from err
        periods = _get(props, "periods") or []
        if not isinstance(periods, list):
            raise ValueError("periods is not a JSON array")
        forecast = Forecast(
            generated=_time_field(props, "generatedAt"),
            updated=_time_field(props, "updateTime"),
            valid_from=valid_from,
            valid_for=valid_for,
            periods=[Period.from_dict(p) for p in periods],
        )
        self._forecasts.add(gp, forecast)
        return forecast