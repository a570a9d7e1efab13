"""Types, pagination and fetching for crawling protocols on protocols.io."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Optional, Union
from urllib.parse import parse_qs, urlencode, urlparse
from urllib.request import Request, urlopen

CONTENT_TYPE = "protocols.io/protocol"
LIST_PROTOCOLS_V3_ENDPOINT = "https://www.protocols.io/api/v3/protocols"
GET_PROTOCOL_V4_ENDPOINT = "https://www.protocols.io/api/v4/protocols"

_INT_RE = re.compile(r"[+-]?[0-9]+")

Transport = Callable[[Request], "tuple[bytes, int, Mapping[str, str]]"]


def _field(data: dict, key: str) -> Any:
    if key in data:
        return data[key]
    lowered = key.lower()
    for name, value in data.items():
        if name.lower() == lowered:
            return value
    return None


def _object(value: Any) -> dict:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"expected a JSON object, got {value!r}")
    return value


def _int(data: dict, key: str) -> int:
    value = _field(data, key)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"field {key!r} is not an integer: {value!r}")
    return value


def _str(data: dict, key: str) -> str:
    value = _field(data, key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"field {key!r} is not a string: {value!r}")
    return value


def _decode(data: Any) -> Any:
    if isinstance(data, (bytes, bytearray, str)):
        return json.loads(data)
    return data


@dataclass
class Checkpoint:
    """The most recently completed page of a paginated crawl."""

    completed_page: int = 0
    current_page: int = 0
    total_pages: int = 0

    def to_json(self) -> bytes:
        data = {
            "completed_page": self.completed_page,
            "current_page": self.current_page,
            "total_pages": self.total_pages,
        }
        return json.dumps(data, separators=(",", ":")).encode()

    @classmethod
    def from_json(cls, data: Union[bytes, str]) -> "Checkpoint":
        obj = _object(json.loads(data))
        return cls(
            completed_page=_int(obj, "completed_page"),
            current_page=_int(obj, "current_page"),
            total_pages=_int(obj, "total_pages"),
        )


@dataclass
class Pagination:
    current_page: int = 0
    total_pages: int = 0
    total_results: int = 0
    next_page: str = ""
    prev_page: Any = None
    page_size: int = 0
    first: int = 0
    last: int = 0
    changed_on: Any = None

    @classmethod
    def from_dict(cls, data: Any) -> "Pagination":
        obj = _object(data)
        return cls(
            current_page=_int(obj, "current_page"),
            total_pages=_int(obj, "total_pages"),
            total_results=_int(obj, "total_results"),
            next_page=_str(obj, "next_page"),
            prev_page=_field(obj, "prev_page"),
            page_size=_int(obj, "page_size"),
            first=_int(obj, "first"),
            last=_int(obj, "last"),
            changed_on=_field(obj, "changed_on"),
        )


@dataclass
class ListProtocolsV3:
    """One page of the protocol listing; items are left undecoded."""

    extras: Any = None
    items: list[Any] = field(default_factory=list)
    pagination: Pagination = field(default_factory=Pagination)
    total: int = 0
    total_pages: int = 0
    total_results: int = 0

    @classmethod
    def from_dict(cls, data: Any) -> "ListProtocolsV3":
        obj = _object(data)
        items = _field(obj, "items") or []
        if not isinstance(items, list):
            raise ValueError("items is not a JSON array")
        return cls(
            extras=_field(obj, "Extras"),
            items=list(items),
            pagination=Pagination.from_dict(_field(obj, "pagination")),
            total=_int(obj, "total"),
            total_pages=_int(obj, "total_pages"),
            total_results=_int(obj, "total_results"),
        )


@dataclass
class Creator:
    name: str = ""
    username: str = ""
    affiliation: str = ""

    @classmethod
    def from_dict(cls, data: Any) -> "Creator":
        obj = _object(data)
        return cls(
            name=_str(obj, "Name"),
            username=_str(obj, "Username"),
            affiliation=_str(obj, "Affilation"),
        )


@dataclass
class Protocol:
    id: int = 0
    uri: str = ""
    url: str = ""
    title: str = ""
    description: str = ""
    version_id: int = 0
    created_on: int = 0
    creator: Creator = field(default_factory=Creator)

    @classmethod
    def from_dict(cls, data: Any) -> "Protocol":
        obj = _object(data)
        return cls(
            id=_int(obj, "id"),
            uri=_str(obj, "uri"),
            url=_str(obj, "url"),
            title=_str(obj, "title"),
            description=_str(obj, "description"),
            version_id=_int(obj, "version_id"),
            created_on=_int(obj, "created_on"),
            creator=Creator.from_dict(_field(obj, "Creator")),
        )


@dataclass
class ProtocolPayload:
    protocol: Protocol = field(default_factory=Protocol)
    status_code: int = 0

    @classmethod
    def from_dict(cls, data: Any) -> "ProtocolPayload":
        obj = _object(data)
        return cls(
            protocol=Protocol.from_dict(_field(obj, "payload")),
            status_code=_int(obj, "status_code"),
        )


def parse_list_protocols(data: Union[bytes, str]) -> ListProtocolsV3:
    """Decode a JSON protocol listing page."""
    return ListProtocolsV3.from_dict(json.loads(data))


def parse_protocol_payload(data: Union[bytes, str]) -> ProtocolPayload:
    """Decode a JSON single-protocol response."""
    return ProtocolPayload.from_dict(json.loads(data))


@dataclass
class CrawlResponse:
    """What is known about the download of one crawled object."""

    error: Optional[str] = None
    encoding: str = ""
    when: Optional[datetime] = None
    body: bytes = b""
    status_code: int = 0
    headers: dict[str, str] = field(default_factory=dict)
    checkpoint: bytes = b""
    current: int = 0
    total: int = 0


@dataclass
class CrawledObject:
    content_type: str = CONTENT_TYPE
    value: ProtocolPayload = field(default_factory=ProtocolPayload)
    response: CrawlResponse = field(default_factory=CrawlResponse)


@dataclass
class PaginatorOptions:
    endpoint_url: str = LIST_PROTOCOLS_V3_ENDPOINT
    parameters: dict[str, list[str]] = field(default_factory=dict)
    from_page: int = 0
    to_page: int = 0


class Paginator:
    """Produces requests for successive pages of the protocol listing."""

    def __init__(self, checkpoint: Checkpoint, options: PaginatorOptions) -> None:
        self.options = options
        self.parameters = {key: list(values) for key, values in options.parameters.items()}
        self.parameters["fields"] = ["id,version_id"]
        self.completed_page = checkpoint.completed_page
        self.current_page = checkpoint.current_page
        self.total_pages = 0
        if self.completed_page == 0 and self.current_page == 0:
            self.current_page = 1

    def _url_for(self, page: int, first: bool) -> str:
        if first and self.options.from_page != 0:
            page = self.options.from_page
        self.parameters["page_id"] = [str(page)]
        query = urlencode(sorted(self.parameters.items()), doseq=True)
        return f"{self.options.endpoint_url}?{query}"

    def next(self, page: Optional[ListProtocolsV3]) -> tuple[Optional[Request], bool]:
        """Return the next request and whether the crawl is done; page is None at the start."""
        if page is None:
            return Request(self._url_for(self.current_page, True), method="GET"), False
        p = page.pagination
        self.completed_page = p.current_page
        self.total_pages = p.total_pages
        to_page = self.options.to_page
        if p.current_page >= p.total_pages or (to_page != 0 and self.completed_page >= to_page):
            return None, True
        values = parse_qs(urlparse(p.next_page).query).get("page_id")
        if not values:
            raise ValueError(f"{p.next_page}: failed to find page_id parameter: {p!r}")
        text = values[0]
        if not _INT_RE.fullmatch(text):
            raise ValueError(f"failed to parse {text!r}")
        self.current_page = int(text)
        return Request(self._url_for(self.current_page, False), method="GET"), False


@dataclass
class FetcherOptions:
    """Fetch settings; version_map maps protocol ids to already downloaded versions."""

    endpoint_url: str = GET_PROTOCOL_V4_ENDPOINT
    version_map: dict[int, int] = field(default_factory=dict)


def _default_transport(request: Request) -> tuple[bytes, int, Mapping[str, str]]:
    with urlopen(request) as resp:
        return resp.read(), resp.status, dict(resp.headers.items())


@dataclass(frozen=True)
class PublicBearerToken:
    """Adds a protocols.io public bearer token to requests."""

    token: str

    def with_authorization(self, request: Any) -> Any:
        request.add_header("Authorization", "Bearer " + self.token)
        return request


class Fetcher:
    """Downloads the protocols listed on a page that are new or have changed."""

    def __init__(
        self,
        options: FetcherOptions,
        *,
        transport: Optional[Transport] = None,
        authorizer: Any = None,
    ) -> None:
        self._options = options
        self._transport = transport or _default_transport
        self._authorizer = authorizer

    def _fetch_one(self, protocol: Protocol) -> tuple[ProtocolPayload, CrawlResponse]:
        response = CrawlResponse()
        request = Request(f"{self._options.endpoint_url}/{protocol.id}", method="GET")
        try:
            if self._authorizer is not None:
                self._authorizer.with_authorization(request)
            body, status, headers = self._transport(request)
            payload = parse_protocol_payload(body)
        except (OSError, ValueError) as err:
            response.error = str(err)
            return ProtocolPayload(), response
        response.headers = dict(headers)
        response.encoding = _field(response.headers, "Content-Type") or ""
        response.when = datetime.now(timezone.utc)
        response.body = body
        response.status_code = status
        return payload, response

    def fetch(self, page: ListProtocolsV3) -> list[CrawledObject]:
        """Return one object per listed item; unchanged protocols yield an empty value."""
        crawled_objects = []
        last = len(page.items) - 1
        for index, item in enumerate(page.items):
            crawled = CrawledObject()
            try:
                protocol = Protocol.from_dict(_decode(item))
            except (TypeError, ValueError) as err:
                crawled.response.error = str(err)
            else:
                known = self._options.version_map.get(protocol.id)
                if known is None or known < protocol.version_id:
                    crawled.value, crawled.response = self._fetch_one(protocol)
            pagination = page.pagination
            if index == last:
                crawled.response.checkpoint = Checkpoint(
                    completed_page=pagination.current_page,
                    current_page=pagination.current_page + 1,
                    total_pages=pagination.total_pages,
                ).to_json()
            crawled.response.current = pagination.current_page
            crawled.response.total = pagination.total_pages
            crawled_objects.append(crawled)
        return crawled_objects