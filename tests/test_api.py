from __future__ import annotations

import math
from dataclasses import replace

import pytest
from fastapi.testclient import TestClient

from backend.api import typhoons
from backend.api.main import app
from backend.api.typhoons import TyphoonAggregator

from conftest import FakeSession, StubSource, make_forecast, make_record


@pytest.fixture
def use_records(monkeypatch):
    def install(records):
        aggregator = TyphoonAggregator(
            [StubSource("atcf_best_track", records)],
            timeout=1.0,
            session_factory=FakeSession,
        )
        monkeypatch.setattr(typhoons, "typhoon_aggregator", aggregator)
        return aggregator
    return install


@pytest.fixture
def client():
    return TestClient(app)


def sample_records():
    return [
        make_record("wp012024", basin="Western Pacific", forecast=make_forecast((124.0, 16.0), (123.0, 17.0))),
        make_record("ep102024", basin="Eastern Pacific", coordinates=(-110.0, 16.0)),
        make_record("al142024", basin="Atlantic", coordinates=(-82.9, 27.3), wind=104),
    ]


def test_root(client):
    response = client.get("/")
    assert response.status_code == 200
    assert "typhoons" in response.json()["endpoints"]


def test_health(client, use_records):
    use_records([])
    data = client.get("/api/health").json()
    assert data["status"] == "healthy"
    assert data["sources"] == ["atcf_best_track"]


def test_default_basin_serves_pacific_view(client, use_records):
    use_records(sample_records())
    data = client.get("/api/typhoons").json()

    assert [t["id"] for t in data["typhoons"]] == ["wp012024", "ep102024"]
    assert data["metadata"]["basin"] == "Western Pacific"
    assert data["metadata"]["count"] == 2
    assert data["typhoons"][0]["forecast"][0]["coordinates"] == [124.0, 16.0]


def test_other_basin_exact_match(client, use_records):
    use_records(sample_records())
    data = client.get("/api/typhoons", params={"basin": "Atlantic"}).json()

    assert [t["id"] for t in data["typhoons"]] == ["al142024"]
    assert data["typhoons"][0]["category"] == "Cat3"


def test_no_storms_is_not_an_error(client, use_records):
    use_records([])
    response = client.get("/api/typhoons")

    assert response.status_code == 200
    assert response.json()["typhoons"] == []
    assert response.json()["metadata"]["note"] == "No active tropical cyclones at this time"


def test_unexpected_failure_returns_500(client, monkeypatch):
    async def explode(*args, **kwargs):
        raise RuntimeError("aggregator exploded")

    monkeypatch.setattr(typhoons, "fetch_western_pacific_typhoons", explode)
    response = client.get("/api/typhoons")

    assert response.status_code == 500
    assert response.json()["typhoons"] == []
    assert response.json()["metadata"]["error"] == "aggregator exploded"
    assert response.json()["metadata"]["generated"]


def test_all_typhoons(client, use_records):
    use_records(sample_records())
    data = client.get("/api/typhoons/all").json()
    assert data["metadata"]["count"] == 3


def test_categories(client):
    categories = client.get("/api/typhoons/categories").json()["categories"]

    assert [c["category"] for c in categories] == ["TD", "TS", "Cat1", "Cat2", "Cat3", "Cat4", "Cat5"]
    assert categories[1] == {
        "category": "TS",
        "label": "Tropical Storm",
        "color": "#10B981",
        "min_wind_kts": 34,
        "max_wind_kts": 64,
    }
    assert categories[-1]["max_wind_kts"] is None


def test_geometry(client, use_records):
    use_records(sample_records())
    data = client.get("/api/typhoons/wp012024/geometry").json()

    assert data["type"] == "FeatureCollection"
    layers = [f["properties"]["layer"] for f in data["features"]]
    assert layers.count("uncertainty_cone") == 2
    assert "forecast_track" in layers


def test_geometry_not_found(client, use_records):
    use_records(sample_records())
    response = client.get("/api/typhoons/zz992024/geometry")

    assert response.status_code == 404
    assert response.json()["error"] == "HTTPException"


def test_non_finite_record_does_not_break_response(client, use_records):
    bad = replace(make_record("wp022024"), pressure=math.nan)
    use_records([bad, make_record("wp012024")])
    response = client.get("/api/typhoons")

    assert response.status_code == 200
    assert [t["id"] for t in response.json()["typhoons"]] == ["wp012024"]
