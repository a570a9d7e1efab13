import base64
import json
import random
from types import SimpleNamespace

import pytest

from webapiclients.benchling import (
    APIToken,
    Backoff,
    Checkpoint,
    load_checkpoint,
    save_checkpoint,
)


class MemoryCheckpoints:
    def __init__(self, initial=None):
        self.initial = initial
        self.saved = []

    def latest(self):
        return self.saved[-1] if self.saved else self.initial

    def checkpoint(self, label, data):
        self.saved.append(data)
        return str(len(self.saved))


class FakeRequest:
    def __init__(self):
        self.headers = {}

    def add_header(self, key, value):
        self.headers[key] = value


def test_api_token_header_round_trip():
    request = FakeRequest()
    APIToken(token="token").with_authorization(request)
    value = request.headers["Authorization"]
    assert value.startswith("Basic ")
    encoded = value[len("Basic "):]
    assert "=" not in encoded
    padded = encoded + "=" * (-len(encoded) % 4)
    assert base64.urlsafe_b64decode(padded) == b"token:"


def make_backoff(initial, steps):
    sleeps = []
    backoff = Backoff(initial, steps, sleep=sleeps.append, rng=random.Random(1))
    return backoff, sleeps


def test_backoff_exponential_without_header():
    backoff, sleeps = make_backoff(2, 3)
    response = SimpleNamespace(headers={})
    assert [backoff.wait(response) for _ in range(3)] == [False, False, False]
    assert sleeps[0] == 2
    assert all(b == 2 * a for a, b in zip(sleeps, sleeps[1:]))
    assert backoff.retries == 3


def test_backoff_stops_after_steps():
    backoff, sleeps = make_backoff(1, 2)
    response = SimpleNamespace(headers={})
    backoff.wait(response)
    backoff.wait(response)
    count = len(sleeps)
    assert backoff.wait(response) is True
    assert len(sleeps) == count
    assert backoff.retries == 2


def test_backoff_uses_rate_limit_header():
    backoff, sleeps = make_backoff(100, 5)
    response = SimpleNamespace(headers={"X-Rate-Limit-Reset": "5"})
    assert backoff.wait(response) is False
    assert sleeps == [5]
    backoff.wait(response)
    assert 5 <= sleeps[1] <= 6
    # Header delays do not double the exponential delay.
    backoff.wait(SimpleNamespace(headers={}))
    assert sleeps[2] == 100


def test_backoff_none_response_and_headers():
    backoff, sleeps = make_backoff(3, 5)
    backoff.wait(None)
    backoff.wait(SimpleNamespace(headers=None))
    assert sleeps[0] == 3
    assert sleeps[1] == 2 * sleeps[0]


def test_backoff_rejects_non_response():
    backoff, _ = make_backoff(1, 1)
    with pytest.raises(TypeError):
        backoff.wait(object())


def test_load_checkpoint_defaults():
    cp = load_checkpoint(MemoryCheckpoints())
    assert cp.users_date == "0001-01-01T00:00:00Z"
    assert cp.entries_date == cp.users_date


def test_checkpoint_round_trip():
    op = MemoryCheckpoints()
    cp = Checkpoint(users_date="2023-01-02T03:04:05Z", entries_date="2023-02-01T00:00:00Z")
    save_checkpoint(op, cp)
    assert json.loads(op.saved[-1]) == {
        "users_date": cp.users_date,
        "entries_date": cp.entries_date,
    }
    assert load_checkpoint(op) == cp


def test_load_checkpoint_partial():
    op = MemoryCheckpoints(b'{"entries_date": "2024-05-05T00:00:00Z"}')
    cp = load_checkpoint(op)
    assert cp.entries_date == "2024-05-05T00:00:00Z"
    assert cp.users_date == load_checkpoint(MemoryCheckpoints()).users_date


def test_load_checkpoint_invalid():
    with pytest.raises(ValueError):
        load_checkpoint(MemoryCheckpoints(b"not json"))