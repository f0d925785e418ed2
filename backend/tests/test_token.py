from __future__ import annotations

import httpx

from lifecycle.token import (
    ERROR_FETCH_FAILED,
    ERROR_NOT_AVAILABLE,
    ERROR_NOT_CONFIGURED,
    read_cached_token,
    resolve_token,
    save_token,
)


def _client(handler):
    return httpx.Client(transport=httpx.MockTransport(handler))


def test_environment_token_wins(monkeypatch):
    monkeypatch.setenv("MAPSYNC_MAPBOX_TOKEN", " pk.env ")
    save_token("pk.cached")
    r = resolve_token()
    assert (r.token, r.source, r.error) == ("pk.env", "env", None)


def test_cached_token_is_used_before_remote(monkeypatch):
    monkeypatch.setenv("MAPSYNC_TOKEN_URL", "https://example.test/get-mapbox-token")
    save_token("pk.cached")

    def handler(request):
        raise AssertionError("remote endpoint must not be called")

    r = resolve_token(client=_client(handler))
    assert (r.token, r.source) == ("pk.cached", "cache")


def test_nothing_configured_asks_for_a_token():
    r = resolve_token()
    assert not r.configured
    assert r.error == ERROR_NOT_CONFIGURED


def test_remote_token_is_fetched_and_cached(monkeypatch):
    monkeypatch.setenv("MAPSYNC_TOKEN_URL", "https://example.test/get-mapbox-token")

    def handler(request):
        assert request.url.path == "/get-mapbox-token"
        return httpx.Response(200, json={"token": "pk.remote"})

    r = resolve_token(client=_client(handler))
    assert (r.token, r.source) == ("pk.remote", "remote")
    assert read_cached_token() == "pk.remote"


def test_remote_without_token_reports_unavailable(monkeypatch):
    monkeypatch.setenv("MAPSYNC_TOKEN_URL", "https://example.test/get-mapbox-token")
    r = resolve_token(client=_client(lambda request: httpx.Response(200, json={})))
    assert r.token is None
    assert r.error == ERROR_NOT_AVAILABLE


def test_remote_failure_is_reported_not_raised(monkeypatch):
    monkeypatch.setenv("MAPSYNC_TOKEN_URL", "https://example.test/get-mapbox-token")
    r = resolve_token(client=_client(lambda request: httpx.Response(500, text="nope")))
    assert r.token is None
    assert r.error == ERROR_FETCH_FAILED

    r = resolve_token(client=_client(lambda request: httpx.Response(200, text="not json")))
    assert r.error == ERROR_FETCH_FAILED


def test_save_token_ignores_blank_input():
    assert save_token("   ") is None
    assert read_cached_token() is None
    assert save_token(" pk.abc ") == "pk.abc"
    assert read_cached_token() == "pk.abc"
