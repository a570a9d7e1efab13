import json
from urllib.parse import parse_qs, urlparse

import pytest

from webapiclients.papersapp import (
    ArticleMetadata,
    Collection,
    CollectionItem,
    CollectionOwner,
    CustomField,
    ExtIds,
    File,
    Item,
    ItemPaginator,
    ItemPaginatorOptions,
    Items,
    ItemType,
    List,
    Lists,
    Token,
    UserData,
    list_collections,
    parse_collections,
    parse_items,
)

SAMPLE_ITEMS = {
    "items": [
        {
            "id": "3cdfbfb9-07c2-4924-9eb3-3b790df74c0e",
            "item_type": "article",
            "article": {
                "title": "Parathyroid hormone: past and present",
                "authors": ["A. Author", "B. Author"],
                "journal": "Journal of Bone and Mineral Research",
                "year": 2010,
            },
            "ext_ids": {"doi": "10.1002/jbmr.178", "pmid": "20614475"},
            "files": [{"name": "paper.pdf", "pages": 12, "size": 1024.5}],
            "user_data": {"star": True, "tags": ["Shark"]},
            "custom_metadata": {"anything": [1, 2]},
        },
        {"id": "second", "item_type": "tv_broadcast"},
    ],
    "total": 5,
    "scroll_id": "scroll-1",
}


def _query(request):
    return parse_qs(urlparse(request.full_url).query, keep_blank_values=True)


def test_parse_items_decodes_nested_fields():
    items = parse_items(json.dumps(SAMPLE_ITEMS))
    assert items.total == 5
    assert items.scroll_id == "scroll-1"
    first = items.items[0]
    assert first.id == "3cdfbfb9-07c2-4924-9eb3-3b790df74c0e"
    assert first.item_type is ItemType.ARTICLE
    assert first.article.year == 2010
    assert first.article.authors == ["A. Author", "B. Author"]
    assert first.ext_ids.doi == "10.1002/jbmr.178"
    assert first.files[0].pages == 12.0
    assert first.user_data.tags == ["Shark"]
    assert first.custom_metadata == {"anything": [1, 2]}
    assert items.items[1].item_type is ItemType.TV_BROADCAST


def test_items_round_trip():
    items = parse_items(json.dumps(SAMPLE_ITEMS))
    again = parse_items(items.to_json())
    assert again == items


def test_unknown_item_type_is_kept():
    item = Item.from_dict({"item_type": "hologram"})
    assert item.item_type == "hologram"
    assert Item.from_dict(item.to_dict()) == item


def test_omitempty_fields_are_left_out():
    assert Item().to_dict() == {}
    data = UserData().to_dict()
    assert "star" not in data
    assert data["tags"] == []


def test_field_names_are_case_insensitive():
    ext = ExtIds.from_dict({"DOI": "10.1002/jbmr.178"})
    assert ext.doi == "10.1002/jbmr.178"


@pytest.mark.parametrize(
    "cls,data",
    [
        (ArticleMetadata, {"year": "2010"}),
        (ArticleMetadata, {"year": 2010.5}),
        (Collection, {"shared": "yes"}),
        (File, {"pages": "many"}),
        (UserData, {"tags": "Shark"}),
        (Item, {"id": 7}),
    ],
)
def test_wrong_types_raise(cls, data):
    with pytest.raises(ValueError):
        cls.from_dict(data)


def test_non_object_raises():
    with pytest.raises(ValueError):
        parse_items("[1, 2]")


def test_parse_collections():
    data = {
        "collections": [
            {
                "id": "7f5e3fe2-bcd7-42b5-972e-c271f5449977",
                "name": "Elephant Shark Shared Library",
                "shared": True,
                "owner": {"email": "owner@example.com", "id": "u1", "name": "Owner"},
                "custom_fields": [{"field": "f", "show_in_table": True}],
            },
            None,
        ]
    }
    cols = parse_collections(json.dumps(data))
    first = cols.collections[0]
    assert first.name == "Elephant Shark Shared Library"
    assert first.shared is True
    assert first.owner == CollectionOwner(email="owner@example.com", id="u1", name="Owner")
    assert first.custom_fields == [CustomField(field="f", show_in_table=True)]
    assert cols.collections[1] is None
    assert parse_collections(cols.to_json()) == cols


def test_list_collections_uses_collections_endpoint():
    seen = []

    def get_json(url):
        seen.append(url)
        return {"collections": [{"id": "c1", "name": "one"}, {"id": "c2", "shared": True}]}

    cols = list_collections("https://api.example.com", get_json)
    assert seen == ["https://api.example.com/collections"]
    assert [c.id for c in cols] == ["c1", "c2"]
    assert cols[1].shared is True


def test_list_collections_propagates_errors():
    def get_json(url):
        raise OSError("unreachable")

    with pytest.raises(OSError):
        list_collections("https://api.example.com", get_json)


def test_lists_and_token_round_trip():
    lists = Lists(lists=[List(id="l1", name="Shark Folder", deleted=True, parent_id="p")])
    assert Lists.from_json(lists.to_json()) == lists
    token = Token(token="token")
    assert Token.from_json(token.to_json()) == token
    assert json.loads(token.to_json()) == {"token": "token"}


def test_collection_item_round_trip():
    ci = CollectionItem(item=Item(id="i1"), collection=Collection(id="c1", name="lib"))
    data = ci.to_dict()
    assert data["Item"]["id"] == "i1"
    assert CollectionItem.from_dict(json.loads(json.dumps(data))) == ci


def test_item_paginator_first_request():
    opts = ItemPaginatorOptions(
        endpoint_url="https://api.example.com/collections/c1/items",
        parameters={"size": ["50"]},
    )
    pg = ItemPaginator(opts)
    req, done = pg.next(None)
    assert done is False
    assert req.get_method() == "GET"
    assert req.full_url.startswith("https://api.example.com/collections/c1/items?")
    assert _query(req) == {"size": ["50"]}


def test_item_paginator_counts_items_until_total():
    pg = ItemPaginator(ItemPaginatorOptions(
        endpoint_url="https://api.example.com/items", parameters={"size": ["2"]}))
    pg.next(None)
    req, done = pg.next(Items(items=[Item(id="a"), Item(id="b")], total=3, scroll_id="s1"))
    assert done is False
    assert _query(req) == {"size": ["2"], "scroll_id": ["s1"]}
    req, done = pg.next(Items(items=[Item(id="c")], total=3, scroll_id="s2"))
    assert done is True
    assert _query(req)["scroll_id"] == ["s2"]
    assert pg.downloaded == 3


def test_item_paginator_does_not_mutate_options():
    opts = ItemPaginatorOptions(endpoint_url="https://api.example.com/items",
                                parameters={"size": ["2"]})
    pg = ItemPaginator(opts)
    pg.next(Items(items=[Item()], total=10, scroll_id="s"))
    assert opts.parameters == {"size": ["2"]}