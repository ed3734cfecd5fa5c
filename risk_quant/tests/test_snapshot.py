from datetime import datetime, timezone

import pytest

from risk_quant.monte_carlo import SimulationEngine, StatisticsAggregator, simulate
from risk_quant.snapshot import SnapshotRecord, build_snapshot_record

RISKS = [
    {
        "id": "A",
        "kind": "threat",
        "p10": 100,
        "p50": 200,
        "p90": 400,
        "probability": 0.7,
        "distributionModel": "pert",
    }
]


@pytest.fixture(scope="module")
def result():
    return simulate(
        RISKS,
        iterations=2000,
        target_percentile=90,
        seed=3,
        engine=SimulationEngine(max_workers=1),
        aggregator=StatisticsAggregator(),
    )


class InMemoryWriter:
    def __init__(self):
        self.records = []

    def write(self, record: SnapshotRecord) -> None:
        self.records.append(record.to_dict())


def test_record_carries_run_metadata(result):
    created = datetime(2026, 1, 5, 9, 30, tzinfo=timezone.utc)
    record = build_snapshot_record(result, "project-1", "rev-7", created_at=created)
    assert record.iterations == 2000
    assert record.target_percentile == 90.0
    assert record.seed == 3
    assert record.created_at == created
    assert record.result == result


def test_created_at_defaults_to_utc_now(result):
    record = build_snapshot_record(result, "project-1")
    assert record.revision_id is None
    assert record.created_at.tzinfo is not None


def test_to_dict_is_camel_case_json(result):
    writer = InMemoryWriter()
    writer.write(build_snapshot_record(result, "project-1", "rev-7", datetime(2026, 1, 5, tzinfo=timezone.utc)))
    data = writer.records[0]
    assert data["projectId"] == "project-1"
    assert data["revisionId"] == "rev-7"
    assert data["targetPercentile"] == 90.0
    assert data["createdAt"].startswith("2026-01-05T00:00:00")
    assert data["result"]["stdDev"] == result.std_dev
    assert data["result"]["sensitivityAnalysis"][0]["riskId"] == "A"


def test_project_id_required(result):
    with pytest.raises(ValueError):
        build_snapshot_record(result, "")
