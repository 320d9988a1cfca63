"""HTTP surface: record queries, cache headers and inspection routes."""

import pytest
from dependency_injector import providers
from fastapi.testclient import TestClient

from core.container import container
from services.filters import DateResolver, FilterCompiler
from services.refill import RefillError

from conftest import TABLE_ID, TODAY, ids

QUERY_URL = f"/api/tables/{TABLE_ID}/records/query"


class FailingRefillProvider:
    async def fetch_schema(self, table_id):
        raise RefillError(table_id, "structure request failed: 503")

    async def fetch_records(self, table_id):
        raise RefillError(table_id, "records request failed: 503")


@pytest.fixture
def client(settings, refill_provider):
    container.settings.override(providers.Object(settings))
    container.refill_provider.override(providers.Object(refill_provider))
    container.reset_singletons()

    import main

    with TestClient(main.app) as test_client:
        yield test_client

    container.reset_override()
    container.reset_singletons()


def test_query_miss_then_hit(client, refill_provider):
    body = {
        "filter": {"operator": "and", "fields": [
            {"field": "status", "comparison": "is", "value": "Active"},
        ]},
        "sort": [{"field": "priority", "direction": "desc"}],
    }

    first = client.post(QUERY_URL, json=body)
    assert first.status_code == 200
    assert first.headers["X-Cache"] == "MISS"
    payload = first.json()
    assert payload["success"] is True
    assert ids(payload["records"]) == ["rec_1", "rec_2"]
    assert payload["count"] == 2
    assert payload["total_count"] == 2
    assert payload["cache_hit"] is False

    second = client.post(QUERY_URL, json=body)
    assert second.headers["X-Cache"] == "HIT"
    assert second.json()["cache_hit"] is True
    assert refill_provider.record_calls == 1


def test_query_pagination_and_projection(client):
    response = client.post(QUERY_URL, json={"limit": 1, "offset": 2, "fields": ["title"]})
    payload = response.json()
    assert payload["records"] == [{"id": "rec_3", "title": "Plan offsite"}]
    assert payload["total_count"] == 4


def test_query_returns_warnings(client):
    response = client.post(QUERY_URL, json={
        "filter": {"fields": [{"field": "tags", "comparison": "is", "value": "q2"}]},
    })
    assert response.status_code == 200
    assert [w["field"] for w in response.json()["warnings"]] == ["tags"]


def test_mutation_level_sets_ttl(client):
    response = client.post(QUERY_URL, json={"mutation_level": "low_mutation"})
    assert 0 < response.json()["time_remaining"] <= 604800

    entry = client.get("/api/cache/status", params={"table_id": TABLE_ID}).json()["tables"][0]
    assert entry["ttl_seconds"] == 604800
    assert entry["expires_at"] == entry["cached_at"] + 604800


@pytest.mark.parametrize("body", [
    {"ttl_seconds": 10},
    {"limit": -1},
    {"mutation_level": "sometimes"},
    {"sort": [{"field": "priority", "direction": "sideways"}]},
])
def test_invalid_request_bodies(client, body):
    assert client.post(QUERY_URL, json=body).status_code == 422


def test_strict_validation_error_is_bad_request(client, refill_provider):
    strict = FilterCompiler(DateResolver("utc", today=lambda: TODAY), strict=True)
    container.filter_compiler.override(providers.Object(strict))

    response = client.post(QUERY_URL, json={
        "filter": {"fields": [{"field": "priority", "comparison": "contains", "value": "5"}]},
    })

    assert response.status_code == 400
    assert "Invalid operator 'contains'" in response.json()["detail"]
    assert refill_provider.record_calls == 0


def test_refill_failure_is_bad_gateway(client):
    container.refill_provider.override(providers.Object(FailingRefillProvider()))

    response = client.post(QUERY_URL, json={})

    assert response.status_code == 502
    assert TABLE_ID in response.json()["detail"]


def test_cache_status_and_performance(client):
    client.post(QUERY_URL, json={})
    client.post(QUERY_URL, json={})

    status = client.get("/api/cache/status").json()
    assert status["success"] is True
    [table] = status["tables"]
    assert table["table_id"] == TABLE_ID
    assert table["record_count"] == 4
    assert table["is_valid"] is True

    performance = client.get("/api/cache/performance", params={"table_id": TABLE_ID}).json()
    assert (performance["hits"], performance["misses"]) == (1, 1)
    assert performance["hit_rate"] == 50.0



def test_refresh_route_invalidates_table(client, refill_provider):
    client.post(QUERY_URL, json={})

    response = client.post(f"/api/cache/{TABLE_ID}/refresh")
    assert response.status_code == 200
    assert response.json() == {"success": True, "table_id": TABLE_ID, "invalidated": True,
                               "refetched": False, "time_remaining": 0}

    again = client.post(QUERY_URL, json={})
    assert again.headers["X-Cache"] == "MISS"
    assert refill_provider.record_calls == 2
    assert refill_provider.schema_calls == 2


def test_refresh_route_with_refetch(client, refill_provider):
    response = client.post(f"/api/cache/{TABLE_ID}/refresh", params={"refetch": "true"})
    payload = response.json()
    assert payload["refetched"] is True
    assert payload["invalidated"] is False
    assert payload["time_remaining"] > 0

    assert client.post(QUERY_URL, json={}).headers["X-Cache"] == "HIT"
    assert refill_provider.record_calls == 1


def test_refresh_route_refill_failure(client):
    container.refill_provider.override(providers.Object(FailingRefillProvider()))
    response = client.post(f"/api/cache/{TABLE_ID}/refresh", params={"refetch": "true"})
    assert response.status_code == 502

def test_filter_operators(client):
    operators = client.get("/api/filters/operators").json()["operators"]
    assert operators["has_any_of"] == "has_any_of"
    assert operators["is_before"] == "is_before"


def test_health_has_no_cache_header(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "OK"
    assert "X-Cache" not in response.headers
