from __future__ import annotations

import importlib.util
import json
from pathlib import Path

import pytest

from backend.api.typhoons import TyphoonAggregator

from conftest import FakeSession, StubSource, make_record

SCRIPT = Path(__file__).resolve().parent.parent / "scripts" / "fetch_active_typhoons.py"


@pytest.fixture
def cli(monkeypatch):
    spec = importlib.util.spec_from_file_location("fetch_active_typhoons", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)

    records = [
        make_record("wp012024", basin="Western Pacific"),
        make_record("al142024", basin="Atlantic", coordinates=(-82.9, 27.3)),
    ]

    def stub_aggregator(timeout):
        return TyphoonAggregator(
            [StubSource("atcf_best_track", records)],
            timeout=timeout,
            session_factory=FakeSession,
        )

    monkeypatch.setattr(module, "TyphoonAggregator", stub_aggregator)
    return module


def test_writes_snapshot(cli, tmp_path):
    output = tmp_path / "out" / "active.json"
    assert cli.main(["--output", str(output)]) == 0

    snapshot = json.loads(output.read_text())
    assert [t["id"] for t in snapshot["typhoons"]] == ["wp012024", "al142024"]
    assert snapshot["metadata"]["basin"] is None
    assert snapshot["metadata"]["dataSources"] == ["JTWC ATCF Best Track (Primary - Official)"]


def test_basin_filter(cli, tmp_path):
    output = tmp_path / "atlantic.json"
    assert cli.main(["--basin", "Atlantic", "--output", str(output)]) == 0

    snapshot = json.loads(output.read_text())
    assert [t["id"] for t in snapshot["typhoons"]] == ["al142024"]
    assert snapshot["metadata"]["basin"] == "Atlantic"
