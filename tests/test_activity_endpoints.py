import json

import pytest

from activitygen.api.deps import get_activity_log
from activitygen.main import app


def _body(payload):
    return {"input": json.dumps(payload)}


@pytest.mark.asyncio
async def test_write_returns_segment_paths(client, activity_log):
    payload = {
        "write": ["WRITE_ENTITIES"],
        "data": [{"monthsAgo": 0, "all": {"clients": [{"count": 3}]}, "numSegments": 2}],
    }

    r = await client.post("/activity/write", json=_body(payload))

    assert r.status_code == 200
    paths = r.json()["paths"]
    assert len(paths) == 2
    assert all(p.startswith("sys/counters/activity/log/entity/") for p in paths)
    assert set(paths) == set(activity_log.entity_segments)
    assert r.headers.get("X-Request-ID")


@pytest.mark.asyncio
async def test_write_then_monthly_counts(client, activity_log):
    payload = {
        "write": ["WRITE_ENTITIES", "WRITE_PRECOMPUTED_QUERIES"],
        "data": [
            {"monthsAgo": 1, "all": {"clients": [{"count": 2, "namespace": "ns1"}]}},
            {"monthsAgo": 0, "all": {"clients": [
                {"count": 2, "namespace": "ns1", "repeated": True},
                {"count": 1, "nonEntity": True},
            ]}},
        ],
    }
    r = await client.post("/activity/write", json=_body(payload))
    assert r.status_code == 200
    assert len(r.json()["paths"]) == 2
    assert len(activity_log.precomputed_queries) == 2

    await activity_log.wait_for_refresh()
    monthly = await client.get("/activity/monthly")
    assert monthly.status_code == 200
    rows = monthly.json()
    assert [row["clients"] for row in rows] == [2, 3]
    assert rows[1]["non_entity_clients"] == 1


@pytest.mark.asyncio
async def test_invalid_input(client, activity_log):
    r = await client.post("/activity/write", json={"input": "{not json"})
    assert r.status_code == 400
    assert r.json()["detail"].startswith("Invalid input data")

    r = await client.post("/activity/write", json=_body({"data": [{"monthsAgo": 0, "all": {}}]}))
    assert r.status_code == 400
    assert r.json()["detail"] == 'Missing required "write" values'
    assert activity_log.entity_segments == {}


@pytest.mark.asyncio
async def test_unknown_namespace_names_the_month(client):
    payload = {
        "write": ["WRITE_ENTITIES"],
        "data": [{"monthsAgo": 3, "all": {"clients": [{"namespace": "nope"}]}}],
    }
    r = await client.post("/activity/write", json=_body(payload))
    assert r.status_code == 400
    assert r.json()["detail"] == "failed to process data for month 3: namespace nope not found"


@pytest.mark.asyncio
async def test_missing_repeated_clients(client):
    payload = {
        "write": ["WRITE_ENTITIES"],
        "data": [
            {"monthsAgo": 1, "all": {"clients": [{"count": 1}]}},
            {"monthsAgo": 0, "all": {"clients": [{"count": 3, "repeated": True}]}},
        ],
    }
    r = await client.post("/activity/write", json=_body(payload))
    assert r.status_code == 400
    assert "missing repeated 2 clients" in r.json()["detail"]


@pytest.mark.asyncio
async def test_too_few_segments(client, activity_log):
    payload = {
        "write": ["WRITE_ENTITIES"],
        "data": [{"monthsAgo": 0, "all": {"clients": [{"count": 1}]}, "numSegments": 1, "skipSegmentIndexes": [0]}],
    }
    r = await client.post("/activity/write", json=_body(payload))
    assert r.status_code == 400
    assert "too low" in r.json()["detail"]
    assert activity_log.entity_segments == {}


@pytest.mark.asyncio
async def test_healthz(client):
    r = await client.get("/healthz")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_storage_failure_is_a_server_error(client):
    class BrokenLog:
        async def save_entity_segment(self, start_timestamp, sequence_number, clients):
            raise RuntimeError("storage unavailable")

        async def segment_to_precomputed_query(self, timestamp, reader, opts):
            raise RuntimeError("storage unavailable")

        async def refresh_from_stored_log(self, now):
            raise RuntimeError("storage unavailable")

    app.dependency_overrides[get_activity_log] = lambda: BrokenLog()
    payload = {
        "write": ["WRITE_ENTITIES"],
        "data": [{"monthsAgo": 0, "all": {"clients": [{"count": 2}]}}],
    }

    r = await client.post("/activity/write", json=_body(payload))

    assert r.status_code == 500
    assert r.json()["detail"] == "failed to write data"


@pytest.mark.asyncio
async def test_client_id_failure_is_a_server_error(client, activity_log, monkeypatch):
    def no_entropy():
        raise OSError("no entropy source")

    monkeypatch.setattr("activitygen.generation.pool.uuid4", no_entropy)
    payload = {
        "write": ["WRITE_ENTITIES"],
        "data": [{"monthsAgo": 0, "all": {"clients": [{"count": 1}]}}],
    }

    r = await client.post("/activity/write", json=_body(payload))

    assert r.status_code == 500
    assert "no entropy source" in r.json()["detail"]
    assert activity_log.entity_segments == {}
