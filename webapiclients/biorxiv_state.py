"""Persistent state for incremental biorxiv crawls."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol

ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)

_TIME_RE = re.compile(
    r"(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2}):(\d{2})(?:\.(\d+))?(Z|[+-]\d{2}:\d{2})"
)


class CheckpointOperation(Protocol):
    """Storage for crawl checkpoints."""

    def latest(self) -> Optional[bytes]: ...

    def checkpoint(self, label: str, data: bytes) -> str: ...


def _format_time(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    text = (
        f"{value.year:04d}-{value.month:02d}-{value.day:02d}"
        f"T{value.hour:02d}:{value.minute:02d}:{value.second:02d}"
    )
    if value.microsecond:
        text += "." + f"{value.microsecond:06d}".rstrip("0")
    offset = value.utcoffset() or timedelta(0)
    if not offset:
        return text + "Z"
    sign = "+" if offset > timedelta(0) else "-"
    minutes = abs(int(offset.total_seconds())) // 60
    return f"{text}{sign}{minutes // 60:02d}:{minutes % 60:02d}"


def _parse_time(text: str) -> datetime:
    match = _TIME_RE.fullmatch(text) if isinstance(text, str) else None
    if match is None:
        raise ValueError(f"invalid RFC 3339 time: {text!r}")
    year, month, day, hour, minute, second, fraction, zone = match.groups()
    micro = int((fraction or "0")[:6].ljust(6, "0"))
    if zone == "Z":
        tz = timezone.utc
    else:
        sign = 1 if zone[0] == "+" else -1
        tz = timezone(sign * timedelta(hours=int(zone[1:3]), minutes=int(zone[4:6])))
    return datetime(int(year), int(month), int(day), int(hour), int(minute),
                    int(second), micro, tzinfo=tz)


def _is_zero(value: Optional[datetime]) -> bool:
    return value is None or value == ZERO_TIME


@dataclass
class CrawlState:
    """The date range and position reached by a crawl."""

    start: datetime = field(default=ZERO_TIME)
    end: datetime = field(default=ZERO_TIME)
    cursor: int = 0
    total: int = 0

    def clear(self) -> None:
        self.start = ZERO_TIME
        self.cursor = 0
        self.total = 0

    def sync(self, restart: bool, start: Optional[datetime], end: Optional[datetime]) -> None:
        """Reconcile saved state with the configured date range."""
        if restart:
            self.clear()
            return
        self.end = datetime.now(timezone.utc) if _is_zero(end) else end
        start = ZERO_TIME if start is None else start
        if self.start == start:
            return
        self.start = start
        self.cursor = 0
        self.total = 0

    def update(self, cursor: int, total: int) -> None:
        self.cursor = cursor
        self.total = total

    def save(self, op: CheckpointOperation) -> None:
        data = {
            "from": _format_time(self.start),
            "to": _format_time(self.end),
            "cursor": self.cursor,
            "total": self.total,
        }
        op.checkpoint("", json.dumps(data, indent=2).encode())


def load_state(op: CheckpointOperation) -> CrawlState:
    """Load the latest saved crawl state, or a fresh one."""
    buf = op.latest()
    if not buf:
        return CrawlState()
    data = json.loads(buf)
    if data is None:
        return CrawlState()
    if not isinstance(data, dict):
        raise ValueError("crawl state is not a JSON object")
    state = CrawlState()
    if data.get("from") is not None:
        state.start = _parse_time(data["from"])
    if data.get("to") is not None:
        state.end = _parse_time(data["to"])
    for key in ("cursor", "total"):
        value = data.get(key)
        if value is None:
            continue
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"crawl state field {key!r} is not an integer: {value!r}")
        setattr(state, key, value)
    return state