"""
Integration tests for the HTTP surface.

The full application (middleware, exception handlers, routers) runs in
process against the in-memory record store, so these tests check status
codes, bodies and headers exactly as a field platform or map viewer sees
them.
"""

import asyncio
import xml.etree.ElementTree as ET
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from config.settings import Settings
from main import create_app
from middleware.rate_limiter import limiter
from middleware.request_id import REQUEST_ID_HEADER
from record_store.elasticsearch_store import ElasticsearchRecordStore
from track_export.kml import KML_NAMESPACE

pytestmark = pytest.mark.integration

NS = {"kml": KML_NAMESPACE}


def _submit(client, deployment, platform, lat, lon, timestamp, **extra):
    payload = {
        "deployment": deployment,
        "platform": platform,
        "latitude": lat,
        "longitude": lon,
        "timestamp": timestamp,
        **extra,
    }
    return client.post("/api/data", json=payload)


class TestSubmitLocation:
    def test_submit_returns_success(self, client, memory_store, sample_location_submission):
        response = client.post("/api/data", json=sample_location_submission)

        assert response.status_code == 200
        assert response.json() == {"status": "success"}
        assert len(memory_store.records) == 1
        assert memory_store.records[0].created_at is not None

    def test_missing_platform_rejected_and_nothing_stored(self, client, memory_store):
        response = client.post("/api/data", json={
            "deployment": "d1",
            "latitude": 10.0,
            "longitude": 20.0,
            "timestamp": "2024-01-01T00:00:00Z",
        })

        assert response.status_code == 400
        body = response.json()
        assert body["error_code"] == "MALFORMED_INPUT"
        assert body["request_id"] == response.headers[REQUEST_ID_HEADER]
        locs = [e["loc"] for e in body["details"]["validation_errors"]]
        assert ["body", "platform"] in locs
        assert memory_store.records == []

    def test_wrong_coordinate_type_rejected(self, client, memory_store):
        response = _submit(client, "d1", "p1", "ten", 20.0, "2024-01-01T00:00:00Z")

        assert response.status_code == 400
        assert memory_store.records == []

    def test_non_json_body_rejected(self, client, memory_store):
        response = client.post(
            "/api/data",
            content=b"not json",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["error_code"] == "MALFORMED_INPUT"
        assert memory_store.records == []

    def test_store_failure_returns_500(self, client, memory_store, sample_location_submission):
        memory_store.fail_with = "connection refused"

        response = client.post("/api/data", json=sample_location_submission)

        assert response.status_code == 500
        body = response.json()
        assert body["error_code"] == "STORE_ERROR"
        assert "connection refused" in body["message"]


class TestQueries:
    def test_example_flow(self, client):
        """Two platforms in one deployment, listed, filtered and exported."""
        assert _submit(client, "d1", "p1", 10.0, 20.0, "2024-01-01T00:00:00Z").status_code == 200
        assert _submit(client, "d1", "p1", 10.5, 20.5, "2024-01-01T00:01:00Z").status_code == 200
        assert _submit(client, "d1", "p2", 11.0, 21.0, "2024-01-01T00:00:30Z").status_code == 200

        locations = client.get("/api/locations", params={"deployment": "d1"}).json()
        assert [r["timestamp"] for r in locations] == [
            "2024-01-01T00:00:00Z",
            "2024-01-01T00:00:30Z",
            "2024-01-01T00:01:00Z",
        ]
        assert [r["platform"] for r in locations] == ["p1", "p2", "p1"]

        assert client.get("/api/deployments").json() == ["d1"]
        assert sorted(client.get("/api/platforms/d1").json()) == ["p1", "p2"]

        only_p1 = client.get("/api/locations", params={"deployment": "d1", "platform": "p1"}).json()
        assert [(r["latitude"], r["longitude"]) for r in only_p1] == [(10.0, 20.0), (10.5, 20.5)]

        kml = client.get("/download_kml/d1")
        root = ET.fromstring(kml.content)
        assert len(root.findall(".//kml:LineString", NS)) == 2
        assert len(root.findall(".//kml:Point", NS)) == 3

    def test_locations_carry_every_field(self, client):
        _submit(client, "d1", "p1", 10.0, 20.0, "2024-01-01T00:00:00Z", source="lora")

        record = client.get("/api/locations").json()[0]

        assert record["deployment"] == "d1"
        assert record["source"] == "lora"
        assert record["created_at"] is not None

    def test_equal_timestamps_keep_submission_order(self, client):
        _submit(client, "d1", "p1", 1.0, 2.0, "2024-01-01T00:00:05Z")
        for i in range(5):
            _submit(client, "d1", f"p{i}", float(i), 0.0, "2024-01-01T00:00:00Z")

        locations = client.get("/api/locations", params={"deployment": "d1"}).json()

        assert [r["latitude"] for r in locations[:5]] == [0.0, 1.0, 2.0, 3.0, 4.0]
        assert locations[5]["timestamp"] == "2024-01-01T00:00:05Z"
        assert [r["created_at"] for r in locations[:5]] == sorted(r["created_at"] for r in locations[:5])

    def test_empty_query_params_are_not_filters(self, client):
        _submit(client, "d1", "p1", 1.0, 2.0, "t1")
        _submit(client, "d2", "p2", 1.0, 2.0, "t2")

        response = client.get("/api/locations?deployment=&platform=")

        assert len(response.json()) == 2

    def test_deployments_listed_once(self, client):
        for i in range(3):
            _submit(client, "d1", f"p{i}", 1.0, 2.0, f"t{i}")
        _submit(client, "d2", "p0", 1.0, 2.0, "t9")

        deployments = client.get("/api/deployments").json()

        assert sorted(deployments) == ["d1", "d2"]

    def test_unknown_deployment_gives_empty_lists(self, client):
        assert client.get("/api/platforms/nope").json() == []
        assert client.get("/api/locations", params={"deployment": "nope"}).json() == []

    def test_empty_store(self, client):
        assert client.get("/api/locations").json() == []
        assert client.get("/api/deployments").json() == []

    def test_query_store_failure_returns_500(self, client, memory_store):
        memory_store.fail_with = "cluster unavailable"

        for path in ["/api/locations", "/api/deployments", "/api/platforms/d1", "/download_kml/d1"]:
            response = client.get(path)
            assert response.status_code == 500, path
            assert response.json()["error_code"] == "STORE_ERROR"


class TestKmlDownload:
    def test_download_headers(self, client):
        _submit(client, "d1", "p1", 10.0, 20.0, "2024-01-01T00:00:00Z")

        response = client.get("/download_kml/d1")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/vnd.google-earth.kml+xml")
        assert response.headers["content-disposition"] == "attachment; filename=d1_track.kml"
        assert response.content.startswith(b"<?xml")

    def test_non_latin1_deployment_downloads(self, client):
        assert _submit(client, "Mission-Ω", "p1", 10.0, 20.0, "2024-01-01T00:00:00Z").status_code == 200
        assert client.get("/api/platforms/Mission-Ω").json() == ["p1"]

        response = client.get("/download_kml/Mission-Ω")

        assert response.status_code == 200
        assert response.headers["content-disposition"] == (
            "attachment; filename=\"Mission-__track.kml\"; "
            "filename*=UTF-8''Mission-%CE%A9_track.kml"
        )
        root = ET.fromstring(response.content)
        assert root.find("kml:Document/kml:name", NS).text == "Mission-Ω"
        assert len(root.findall(".//kml:Point", NS)) == 1

    def test_unknown_deployment_is_empty_document(self, client):
        response = client.get("/download_kml/nope")

        assert response.status_code == 200
        root = ET.fromstring(response.content)
        assert root.findall(".//kml:Placemark", NS) == []


class TestCors:
    def test_preflight_answered_with_204(self, client):
        response = client.options("/api/data", headers={
            "Origin": "http://map.example.com",
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "Content-Type",
        })

        assert response.status_code == 204
        assert response.content == b""
        assert response.headers["access-control-allow-origin"] == "*"
        assert "POST" in response.headers["access-control-allow-methods"]

    def test_simple_request_allows_any_origin(self, client):
        response = client.get("/api/deployments", headers={"Origin": "http://anywhere.test"})

        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "*"

    def test_error_responses_carry_cors_headers(self, client):
        response = client.post(
            "/api/data",
            json={"deployment": "d1"},
            headers={"Origin": "http://anywhere.test"},
        )

        assert response.status_code == 400
        assert response.headers["access-control-allow-origin"] == "*"


class TestHealth:
    def test_health_endpoints(self, client):
        assert client.get("/health").json()["status"] == "ok"
        assert client.get("/health/live").json()["status"] == "alive"

        ready = client.get("/health/ready")
        assert ready.status_code == 200
        assert ready.json()["status"] == "healthy"

    def test_ready_reports_unreachable_store(self, client, memory_store):
        memory_store.reachable = False

        response = client.get("/health/ready")

        assert response.status_code == 503
        body = response.json()
        assert body["status"] == "unhealthy"
        assert body["failure_reasons"][0]["dependency"] == "record_store"

    def test_every_response_has_request_id(self, client):
        response = client.get("/health", headers={REQUEST_ID_HEADER: "req-abc-1"})

        assert response.headers[REQUEST_ID_HEADER] == "req-abc-1"


class TestLifespan:
    def test_injected_store_is_not_closed(self, test_settings, memory_store):
        app = create_app(settings=test_settings, record_store=memory_store)

        with TestClient(app):
            pass

        assert memory_store.closed is False
        assert app.state.record_store is memory_store

    def test_owned_store_opened_off_event_loop_and_closed(self, test_settings, memory_store):
        opened_in = []

        def open_store(settings):
            try:
                asyncio.get_running_loop()
                opened_in.append("event_loop")
            except RuntimeError:
                opened_in.append("worker_thread")
            return memory_store

        app = create_app(settings=test_settings)
        with patch.object(ElasticsearchRecordStore, "from_settings", side_effect=open_store):
            with TestClient(app) as test_client:
                assert test_client.get("/health/ready").status_code == 200

        assert opened_in == ["worker_thread"]
        assert memory_store.closed is True
        assert app.state.record_store is None


class TestRateLimiting:
    @pytest.fixture
    def limited_client(self, memory_store):
        settings = Settings(
            _env_file=None,
            rate_limit_enabled=True,
            rate_limit_requests_per_minute=2,
        )
        limiter.reset()
        app = create_app(settings=settings, record_store=memory_store)
        with TestClient(app) as test_client:
            yield test_client
        limiter.reset()
        limiter.enabled = False

    def test_ingestion_limited_per_client(self, limited_client, memory_store, sample_location_submission):
        assert limited_client.post("/api/data", json=sample_location_submission).status_code == 200
        assert limited_client.post("/api/data", json=sample_location_submission).status_code == 200

        response = limited_client.post("/api/data", json=sample_location_submission)

        assert response.status_code == 429
        assert response.json()["error_code"] == "RATE_LIMITED"
        assert "Retry-After" in response.headers
        assert len(memory_store.records) == 2

    def test_queries_are_not_limited(self, limited_client):
        for _ in range(5):
            assert limited_client.get("/api/deployments").status_code == 200
