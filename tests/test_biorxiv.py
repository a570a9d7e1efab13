import json
from datetime import date

import pytest

from webapiclients.biorxiv import (
    Message,
    Paginator,
    PreprintDetail,
    Response,
    as_int64,
    parse_response,
)

BASE = "https://api.example.com/pubs/biorxiv"


def test_as_int64_values():
    assert as_int64(None) == 0
    assert as_int64(7) == 7
    assert as_int64(3.9) == 3
    assert as_int64("42") == 42
    assert as_int64("-8") == -8


@pytest.mark.parametrize("value", ["abc", "1.5", " 4", ""])
def test_as_int64_bad_strings(value):
    with pytest.raises(ValueError):
        as_int64(value)


@pytest.mark.parametrize("value", [[], {}, True])
def test_as_int64_bad_types(value):
    with pytest.raises(TypeError):
        as_int64(value)


def test_parse_response():
    payload = {
        "messages": [{"status": "ok", "interval": "2020-01-01:2020-12-01",
                      "cursor": "100", "count": 100, "total": 250}],
        "collection": [{"preprint_doi": "10.1101/x", "preprint_title": "A title"}],
    }
    resp = parse_response(json.dumps(payload))
    assert resp.messages[0].status == "ok"
    assert resp.messages[0].cursor == "100"
    assert resp.messages[0].count == 100
    assert resp.collection == [PreprintDetail(preprint_doi="10.1101/x", preprint_title="A title")]


def test_parse_response_rejects_bad_field():
    with pytest.raises(ValueError):
        parse_response('{"collection": [{"preprint_doi": 5}]}')


def make_paginator(cursor=0):
    return Paginator(BASE, date(2020, 1, 1), date(2020, 12, 1), cursor)


def test_first_request():
    request, done = make_paginator(5).next(None)
    assert done is False
    assert request.full_url == BASE + "/2020-01-01/2020-12-01/5"
    assert request.get_method() == "GET"


def test_next_request_advances_cursor():
    page = Response(messages=[Message(status="ok", cursor="100", count=100, total=250)])
    request, done = make_paginator().next(page)
    assert done is False
    assert request.full_url == BASE + "/2020-01-01/2020-12-01/200"


def test_done_when_total_reached():
    page = Response(messages=[Message(status="ok", cursor=200, count=50, total="250")])
    assert make_paginator().next(page) == (None, True)


def test_done_without_messages():
    assert make_paginator().next(Response()) == (None, True)


def test_bad_cursor():
    page = Response(messages=[Message(cursor="x", count=1, total=10)])
    with pytest.raises(ValueError, match="unexpected cursor"):
        make_paginator().next(page)


def test_bad_total():
    page = Response(messages=[Message(cursor=1, count=1, total=[1])])
    with pytest.raises(ValueError, match="unexpected total"):
        make_paginator().next(page)