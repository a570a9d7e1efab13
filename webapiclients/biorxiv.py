"""Types and pagination for crawling biorxiv and medrxiv via api.biorxiv.org."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field, fields
from datetime import date
from typing import Any, Optional, Union
from urllib.request import Request

PREPRINT_TYPE = "api.biorxiv.org/article"
DATE_FORMAT = "%Y-%m-%d"

_INT_RE = re.compile(r"[+-]?[0-9]+")


def _string(data: dict, key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"field {key!r} is not a string: {value!r}")
    return value


def _integer(data: dict, key: str) -> int:
    value = data.get(key)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"field {key!r} is not an integer: {value!r}")
    return value


@dataclass
class PreprintDetail:
    """The details of a single preprint."""

    preprint_doi: str = ""
    published_doi: str = ""
    published_journal: str = ""
    preprint_platform: str = ""
    preprint_title: str = ""
    preprint_authors: str = ""
    preprint_category: str = ""
    preprint_date: str = ""
    published_date: str = ""
    preprint_abstract: str = ""
    preprint_author_corresponding: str = ""
    preprint_author_corresponding_institution: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "PreprintDetail":
        return cls(**{f.name: _string(data, f.name) for f in fields(cls)})


@dataclass
class Message:
    """Status of an API request; cursor and total may be numbers or strings."""

    status: str = ""
    interval: str = ""
    cursor: Any = None
    count: int = 0
    total: Any = None

    @classmethod
    def from_dict(cls, data: dict) -> "Message":
        return cls(
            status=_string(data, "status"),
            interval=_string(data, "interval"),
            cursor=data.get("cursor"),
            count=_integer(data, "count"),
            total=data.get("total"),
        )


@dataclass
class Response:
    """A response holding messages and at most 100 preprints."""

    messages: list[Message] = field(default_factory=list)
    collection: list[PreprintDetail] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "Response":
        return cls(
            messages=[Message.from_dict(m) for m in data.get("messages") or []],
            collection=[PreprintDetail.from_dict(p) for p in data.get("collection") or []],
        )


def parse_response(data: Union[bytes, str]) -> Response:
    """Decode a JSON api.biorxiv.org response."""
    decoded = json.loads(data)
    if decoded is None:
        return Response()
    if not isinstance(decoded, dict):
        raise ValueError("response is not a JSON object")
    return Response.from_dict(decoded)


def as_int64(value: Any) -> int:
    """Convert a cursor or total value, which may be a number or a string, to an int."""
    if value is None:
        return 0
    if isinstance(value, bool):
        raise TypeError(f"unexpected type: {type(value).__name__}")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        if not _INT_RE.fullmatch(value):
            raise ValueError(f"invalid integer: {value!r}")
        result = int(value)
        if not -(2**63) <= result < 2**63:
            raise ValueError(f"integer out of range: {value!r}")
        return result
    raise TypeError(f"unexpected type: {type(value).__name__}")


def _join_path(base: str, *elements: str) -> str:
    return "/".join([base.rstrip("/"), *(e.strip("/") for e in elements)])


class Paginator:
    """Produces requests for successive pages of a date range."""

    def __init__(self, service_url: str, start: date, end: date, cursor: int = 0) -> None:
        self.service_url = service_url
        self.start = start
        self.end = end
        self.cursor = cursor

    def _request(self, cursor: int) -> Request:
        url = _join_path(
            self.service_url,
            self.start.strftime(DATE_FORMAT),
            self.end.strftime(DATE_FORMAT),
            str(cursor),
        )
        return Request(url, method="GET")

    def next(self, page: Optional[Response]) -> tuple[Optional[Request], bool]:
        """Return the next request and whether the crawl is done; page is None at the start."""
        if page is None:
            return self._request(self.cursor), False
        if not page.messages:
            return None, True
        msg = page.messages[0]
        try:
            cursor = as_int64(msg.cursor)
        except (TypeError, ValueError) as err:
            raise ValueError(f"unexpected cursor: {msg.cursor}: {err}") from err
        try:
            total = as_int64(msg.total)
        except (TypeError, ValueError) as err:
            raise ValueError(f"unexpected total: {msg.total}: {err}") from err
        if cursor + msg.count >= total:
            return None, True
        return self._request(cursor + msg.count), False