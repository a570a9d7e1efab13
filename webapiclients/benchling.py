"""Authorization, rate-limit backoff and crawl checkpoints for benchling.com."""

from __future__ import annotations

import base64
import json
import logging
import random
import re
import time
from dataclasses import asdict, dataclass
from typing import Any, Callable, Optional, Protocol

log = logging.getLogger(__name__)

DAY_ZERO = "0001-01-01T00:00:00Z"
RATE_LIMIT_RESET_HEADER = "x-rate-limit-reset"

_INT_RE = re.compile(r"[+-]?[0-9]+")


class CheckpointOperation(Protocol):
    """Storage for crawl checkpoints."""

    def latest(self) -> Optional[bytes]: ...

    def checkpoint(self, label: str, data: bytes) -> str: ...


@dataclass(frozen=True)
class APIToken:
    """Adds benchling API token authorization to requests."""

    token: str

    def with_authorization(self, request: Any) -> Any:
        encoded = base64.urlsafe_b64encode(f"{self.token}:".encode()).rstrip(b"=")
        request.add_header("Authorization", f"Basic {encoded.decode('ascii')}")
        return request


def _header_value(headers: Any, name: str) -> str:
    lowered = name.lower()
    for key, value in headers.items():
        if key.lower() == lowered:
            return value
    return ""


def _parse_int(text: str) -> int:
    if not _INT_RE.fullmatch(text or ""):
        return 0
    value = int(text)
    if not -(2**63) <= value < 2**63:
        return 0
    return value


class Backoff:
    """Waits for the period given in the rate-limit reset header, or backs off exponentially.

    Delays are in seconds.
    """

    def __init__(
        self,
        initial: float,
        steps: int,
        *,
        sleep: Callable[[float], None] = time.sleep,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._next_delay = initial
        self._steps = steps
        self._retries = 0
        self._sleep = sleep
        self._rng = rng if rng is not None else random.Random(int(time.time()))

    @property
    def retries(self) -> int:
        return self._retries

    def wait(self, response: Any) -> bool:
        """Wait before the next retry; returns True when no more retries remain."""
        if response is not None and not hasattr(response, "headers"):
            raise TypeError(f"expected an HTTP response, got {type(response).__name__}")
        if self._retries >= self._steps:
            return True
        delay = self._next_delay
        secs = 0
        if response is None:
            log.info("benchling backoff: response is None")
        elif response.headers is None:
            log.info("benchling backoff: response has no headers")
        else:
            secs = _parse_int(_header_value(response.headers, RATE_LIMIT_RESET_HEADER))
            if secs > 0:
                delay = secs + self._rng.randint(0, self._retries)
                log.info("benchling backoff: waiting %s seconds", delay)
        self._sleep(delay)
        self._retries += 1
        if secs == 0:
            self._next_delay *= 2
        return False


@dataclass
class Checkpoint:
    """Crawl progress as RFC 3339 dates."""

    users_date: str = ""
    entries_date: str = ""


def _string_field(data: dict, key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"checkpoint field {key!r} is not a string: {value!r}")
    return value


def load_checkpoint(op: CheckpointOperation) -> Checkpoint:
    """Load the latest checkpoint, defaulting missing dates to the zero time."""
    buf = op.latest()
    cp = Checkpoint()
    if buf:
        data = json.loads(buf)
        if data is not None:
            if not isinstance(data, dict):
                raise ValueError("checkpoint is not a JSON object")
            cp = Checkpoint(
                users_date=_string_field(data, "users_date"),
                entries_date=_string_field(data, "entries_date"),
            )
    if not cp.users_date:
        cp.users_date = DAY_ZERO
    if not cp.entries_date:
        cp.entries_date = DAY_ZERO
    return cp


def save_checkpoint(op: CheckpointOperation, checkpoint: Checkpoint) -> None:
    """Store a checkpoint as JSON."""
    buf = json.dumps(asdict(checkpoint), separators=(",", ":")).encode()
    op.checkpoint("", buf)