"""HTTP contract of the FastAPI app with an injected pipeline context."""

from dataclasses import replace

import pytest
from conftest import PRIMARY_SOURCES, FakeProvider, make_context
from fastapi.testclient import TestClient

from shopsearch import main
from shopsearch.errors import ProviderError, ProviderErrorKind


def client_with(context):
    main.app.state.context = context
    return TestClient(main.app)


@pytest.fixture
def client(context):
    with client_with(context) as test_client:
        yield test_client
    main.app.state.context = None


@pytest.fixture
def failing_client():
    feed = FakeProvider("feed", error=ProviderError(ProviderErrorKind.TIMEOUT, "feed"))
    web = FakeProvider("web", error=ProviderError(ProviderErrorKind.INVALID_CREDENTIALS, "web"))
    with client_with(make_context([feed, web], PRIMARY_SOURCES)) as test_client:
        yield test_client
    main.app.state.context = None


def test_search_returns_products(client):
    resp = client.get("/search", params={"query": "samsung galaxy s25", "sortBy": "price_low"})

    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["success"] is True
    data = body["data"]
    assert data["products"]
    assert data["pagination"]["currentPage"] == 1
    assert data["searchInfo"]["query"] == "samsung galaxy s25"
    assert data["searchInfo"]["appliedFilters"]["sortBy"] == "price_low"
    assert {"id", "title", "price", "url", "domain", "score"} <= set(data["products"][0])


def test_missing_query_is_400(client):
    resp = client.get("/search")

    assert resp.status_code == 400
    assert resp.json()["success"] is False
    assert resp.json()["message"] == "Search query is required"


def test_blank_query_is_400(client):
    resp = client.get("/search", params={"query": "   "})

    assert resp.status_code == 400
    assert resp.json() == {"success": False, "message": "Search query is required"}


@pytest.mark.parametrize("params", [{"page": "0"}, {"sortBy": "cheapest"}, {"priceRange": "free"}])
def test_invalid_options_are_400(client, params):
    resp = client.get("/search", params={"query": "samsung", **params})

    assert resp.status_code == 400
    assert resp.json()["success"] is False


def test_total_failure_is_generic_500(failing_client, monkeypatch):
    monkeypatch.setattr(main, "settings", replace(main.settings, app_env="production"))

    resp = failing_client.get("/search", params={"query": "samsung galaxy s25"})

    assert resp.status_code == 500
    assert resp.json() == {"success": False, "message": "Failed to search products"}


def test_development_mode_includes_detail(failing_client, monkeypatch):
    monkeypatch.setattr(main, "settings", replace(main.settings, app_env="development"))

    resp = failing_client.get("/search", params={"query": "samsung galaxy s25"})

    assert resp.status_code == 500
    assert "samsung galaxy s25" in resp.json()["error"]


def test_suggestions_and_trending(client):
    suggestions = client.get("/search/suggestions", params={"query": "lap"}).json()
    empty = client.get("/search/suggestions").json()
    trending = client.get("/search/trending").json()

    assert suggestions == {"success": True, "data": {"suggestions": ["laptop"]}}
    assert empty["data"]["suggestions"] == []
    assert len(trending["data"]["trending"]) == 10
