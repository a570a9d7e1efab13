"""Types, pagination and collection listing for the papersapp (ReadCube Papers) API."""

from __future__ import annotations

import json
from dataclasses import MISSING, dataclass, field, fields
from enum import Enum
from typing import Any, Callable, Optional, Union
from urllib.parse import urlencode
from urllib.request import Request, urlopen

COLLECTION_TYPE = "papersapp.com/collection"
ITEM_TYPE = "papersapp.com/item"

GetJSON = Callable[[str], Any]
Decoder = Callable[[Any, str], Any]


def _lookup(data: dict, name: str) -> Any:
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


def _str(value: Any, name: str) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"field {name!r} is not a string: {value!r}")
    return value


def _int(value: Any, name: str) -> int:
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"field {name!r} is not an integer: {value!r}")
    return value


def _float(value: Any, name: str) -> float:
    if value is None:
        return 0.0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"field {name!r} is not a number: {value!r}")
    return float(value)


def _bool(value: Any, name: str) -> bool:
    if value is None:
        return False
    if not isinstance(value, bool):
        raise ValueError(f"field {name!r} is not a boolean: {value!r}")
    return value


def _any(value: Any, name: str) -> Any:
    return value


def _strings(value: Any, name: str) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"field {name!r} is not a JSON array: {value!r}")
    return [_str(v, name) for v in value]


def _model(cls: type) -> Decoder:
    def decode(value: Any, name: str) -> Any:
        return None if value is None else cls.from_dict(value)

    return decode


def _models(cls: type, nullable: bool = True) -> Decoder:
    def decode(value: Any, name: str) -> list:
        if value is None:
            return []
        if not isinstance(value, list):
            raise ValueError(f"field {name!r} is not a JSON array: {value!r}")
        result = []
        for element in value:
            if element is None:
                result.append(None if nullable else cls())
            else:
                result.append(cls.from_dict(element))
        return result

    return decode


def _json_field(name: str, decode: Decoder, *, omitempty: bool = True,
                default: Any = MISSING, default_factory: Any = MISSING) -> Any:
    return field(
        default=default,
        default_factory=default_factory,
        metadata={"json": name, "decode": decode, "omitempty": omitempty},
    )


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (str, list, dict, bool, int, float)):
        return not value
    return False


def _encode(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, _JSONModel):
        return value.to_dict()
    if isinstance(value, list):
        return [_encode(v) for v in value]
    return value


class _JSONModel:
    """JSON encoding and decoding driven by field metadata."""

    @classmethod
    def from_dict(cls, data: Any):
        obj = _object(data)
        kwargs = {}
        for f in fields(cls):
            name = f.metadata["json"]
            kwargs[f.name] = f.metadata["decode"](_lookup(obj, name), name)
        return cls(**kwargs)

    @classmethod
    def from_json(cls, data: Union[bytes, str]):
        return cls.from_dict(json.loads(data))

    def to_dict(self) -> dict:
        out = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if f.metadata["omitempty"] and _is_empty(value):
                continue
            out[f.metadata["json"]] = _encode(value)
        return out

    def to_json(self) -> bytes:
        return json.dumps(self.to_dict(), separators=(",", ":")).encode()


class ItemType(str, Enum):
    """Known kinds of library item."""

    ABSTRACT = "abstract"
    ARTICLE = "article"
    ARTWORK = "artwork"
    AUDIO_RECORDING = "audio_recording"
    BILL = "bill"
    BLOG_POST = "blog_post"
    BOOK = "book"
    BOOK_SECTION = "book_section"
    CASE = "case"
    CLINICAL_TRIAL = "clinical_trial"
    COMPUTER_PROGRAM = "computer_program"
    CONFERENCE_PAPER = "conference_paper"
    DICTIONARY_ENTRY = "dictionary_entry"
    DOCUMENT = "document"
    EMAIL = "email"
    ENCYCLOPEDIA_ARTICLE = "encyclopedia_article"
    FILM = "film"
    FORUM_POST = "forum_post"
    GUIDANCE_DOCUMENTS = "guidance_documents"
    HEARING = "hearing"
    INSTANT_MESSAGE = "instant_message"
    INTERVIEW = "interview"
    LETTER = "letter"
    MAGAZINE = "magazine"
    MANUSCRIPT = "manuscript"
    MAP = "map"
    NEWSPAPER_ARTICLE = "newspaper_article"
    PATENT = "patent"
    PODCAST = "podcast"
    POSTER_PRESENTATION = "poster_presentation"
    PRESENTATION = "presentation"
    RADIO_BROADCAST = "radio_broadcast"
    REPORT = "report"
    STATUTE = "statute"
    THESIS = "thesis"
    TV_BROADCAST = "tv_broadcast"
    VIDEO_RECORDING = "video_recording"
    WEBPAGE = "webpage"


def _item_type(value: Any, name: str) -> Union[ItemType, str]:
    text = _str(value, name)
    try:
        return ItemType(text)
    except ValueError:
        return text


@dataclass
class ArticleMetadata(_JSONModel):
    abstract: str = _json_field("abstract", _str, default="")
    authors: list[str] = _json_field("authors", _strings, omitempty=False, default_factory=list)
    chapter: str = _json_field("chapter", _str, default="")
    eisbn: str = _json_field("eisbn", _str, default="")
    eissn: str = _json_field("eissn", _str, default="")
    isbn: str = _json_field("isbn", _str, default="")
    issn: str = _json_field("issn", _str, default="")
    issue: str = _json_field("issue", _str, default="")
    journal: str = _json_field("journal", _str, default="")
    journal_abbrev: str = _json_field("journal_abbrev", _str, default="")
    pagination: str = _json_field("pagination", _str, default="")
    title: str = _json_field("title", _str, default="")
    url: str = _json_field("url", _str, default="")
    volume: str = _json_field("volume", _str, default="")
    year: int = _json_field("year", _int, default=0)


@dataclass
class CustomField(_JSONModel):
    display: str = _json_field("display", _str, default="")
    field: str = _json_field("field", _str, default="")
    show_in_details: bool = _json_field("show_in_details", _bool, default=False)
    show_in_table: bool = _json_field("show_in_table", _bool, default=False)
    type: str = _json_field("type", _str, default="")


@dataclass
class CollectionOwner(_JSONModel):
    email: str = _json_field("email", _str, default="")
    id: str = _json_field("id", _str, default="")
    name: str = _json_field("name", _str, default="")


@dataclass
class Collection(_JSONModel):
    custom_fields: list[Optional[CustomField]] = _json_field(
        "custom_fields", _models(CustomField), omitempty=False, default_factory=list)
    id: str = _json_field("id", _str, default="")
    name: str = _json_field("name", _str, default="")
    owner: Optional[CollectionOwner] = _json_field("owner", _model(CollectionOwner), default=None)
    shared: bool = _json_field("shared", _bool, default=False)


@dataclass
class Collections(_JSONModel):
    collections: list[Optional[Collection]] = _json_field(
        "collections", _models(Collection), omitempty=False, default_factory=list)


@dataclass
class ExtIds(_JSONModel):
    arxiv: str = _json_field("arxiv", _str, default="")
    doi: str = _json_field("doi", _str, default="")
    gsid: str = _json_field("gsid", _str, default="")
    patent_id: str = _json_field("patent_id", _str, default="")
    pmcid: str = _json_field("pmcid", _str, default="")
    pmid: str = _json_field("pmid", _str, default="")


@dataclass
class File(_JSONModel):
    created: str = _json_field("created", _str, default="")
    file_type: str = _json_field("file_type", _str, default="")
    name: str = _json_field("name", _str, default="")
    pages: float = _json_field("pages", _float, default=0.0)
    sha256: str = _json_field("sha256", _str, default="")
    size: float = _json_field("size", _float, default=0.0)
    type: str = _json_field("type", _str, default="")
    url: str = _json_field("url", _str, default="")


@dataclass
class ImportData(_JSONModel):
    imported_by: str = _json_field("imported_by", _str, default="")
    original_id: str = _json_field("original_id", _str, default="")
    original_type: str = _json_field("original_type", _str, default="")
    source: str = _json_field("source", _str, default="")


@dataclass
class UserData(_JSONModel):
    color: str = _json_field("color", _str, default="")
    created: str = _json_field("created", _str, default="")
    notes: str = _json_field("notes", _str, default="")
    star: bool = _json_field("star", _bool, default=False)
    tags: list[str] = _json_field("tags", _strings, omitempty=False, default_factory=list)


@dataclass
class Item(_JSONModel):
    article: Optional[ArticleMetadata] = _json_field("article", _model(ArticleMetadata), default=None)
    custom_metadata: Any = _json_field("custom_metadata", _any, default=None)
    custom_type: str = _json_field("custom_type", _str, default="")
    ext_ids: Optional[ExtIds] = _json_field("ext_ids", _model(ExtIds), default=None)
    files: list[File] = _json_field("files", _models(File, nullable=False), default_factory=list)
    id: str = _json_field("id", _str, default="")
    import_data: Optional[ImportData] = _json_field("import_data", _model(ImportData), default=None)
    item_type: Union[ItemType, str] = _json_field("item_type", _item_type, default="")
    pdf_hash: str = _json_field("pdf_hash", _str, default="")
    user_data: Optional[UserData] = _json_field("user_data", _model(UserData), default=None)


@dataclass
class Items(_JSONModel):
    """One page of items; scroll_id requests the following page."""

    items: list[Optional[Item]] = _json_field("items", _models(Item), omitempty=False,
                                              default_factory=list)
    total: int = _json_field("total", _int, default=0)
    scroll_id: str = _json_field("scroll_id", _str, default="")


@dataclass
class List(_JSONModel):
    deleted: bool = _json_field("deleted", _bool, default=False)
    id: str = _json_field("id", _str, default="")
    modified: str = _json_field("modified", _str, default="")
    name: str = _json_field("name", _str, default="")
    parent_id: str = _json_field("parent_id", _str, default="")


@dataclass
class Lists(_JSONModel):
    lists: list[Optional[List]] = _json_field("lists", _models(List), omitempty=False,
                                              default_factory=list)


@dataclass
class Token(_JSONModel):
    token: str = _json_field("token", _str, default="")


@dataclass
class CollectionItem:
    """A single item together with the collection it belongs to."""

    item: Optional[Item] = None
    collection: Optional[Collection] = None

    def to_dict(self) -> dict:
        return {
            "Item": None if self.item is None else self.item.to_dict(),
            "Collection": None if self.collection is None else self.collection.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Any) -> "CollectionItem":
        obj = _object(data)
        return cls(
            item=_model(Item)(_lookup(obj, "Item"), "Item"),
            collection=_model(Collection)(_lookup(obj, "Collection"), "Collection"),
        )


def parse_items(data: Union[bytes, str]) -> Items:
    """Decode a JSON page of items."""
    return Items.from_json(data)


def parse_collections(data: Union[bytes, str]) -> Collections:
    """Decode a JSON set of collections."""
    return Collections.from_json(data)


def _default_get_json(url: str) -> Any:
    with urlopen(url) as resp:
        return json.loads(resp.read())


def list_collections(service_url: str, get_json: Optional[GetJSON] = None) -> list[Optional[Collection]]:
    """Fetch and return all collections available from the service."""
    fetch = get_json or _default_get_json
    return Collections.from_dict(fetch(service_url + "/collections")).collections


@dataclass
class ItemPaginatorOptions:
    endpoint_url: str = ""
    parameters: dict[str, list[str]] = field(default_factory=dict)


class ItemPaginator:
    """Produces requests for successive pages of items using scroll ids.

    Items are counted so that the crawl ends once the total is reached,
    avoiding the extra request needed to see a repeated scroll id.
    """

    def __init__(self, options: ItemPaginatorOptions) -> None:
        self.endpoint_url = options.endpoint_url
        self.parameters = {key: list(values) for key, values in options.parameters.items()}
        self.downloaded = 0

    def next(self, items: Optional[Items]) -> tuple[Request, bool]:
        """Return the next request and whether the crawl is done; items is None at the start."""
        done = False
        if items is not None:
            self.downloaded += len(items.items)
            if self.downloaded >= items.total:
                done = True
            self.parameters["scroll_id"] = [items.scroll_id]
        query = urlencode(sorted(self.parameters.items()), doseq=True)
        return Request(f"{self.endpoint_url}?{query}", method="GET"), done