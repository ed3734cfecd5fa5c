"""
Snapshot boundary: the record a persistence layer stores for one simulation run.

Storage itself belongs to the calling service; the engine only produces the
SimulationResult. Writers implement SnapshotWriter.write and own their retries.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional, Protocol

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from risk_quant.monte_carlo.models import SimulationResult

__all__ = ["SnapshotRecord", "SnapshotWriter", "build_snapshot_record"]


class SnapshotRecord(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    project_id: str
    revision_id: Optional[str] = None
    iterations: int
    target_percentile: float
    seed: int
    created_at: datetime
    result: SimulationResult

    def to_dict(self) -> Dict[str, Any]:
        """camelCase, JSON-compatible dict."""
        return self.model_dump(mode="json", by_alias=True)


class SnapshotWriter(Protocol):
    def write(self, record: SnapshotRecord) -> None:
        ...


def build_snapshot_record(
    result: SimulationResult,
    project_id: str,
    revision_id: Optional[str] = None,
    created_at: Optional[datetime] = None,
) -> SnapshotRecord:
    """Attach run metadata to a result. created_at defaults to now (UTC)."""
    if not project_id:
        raise ValueError("project_id is required")
    return SnapshotRecord(
        project_id=project_id,
        revision_id=revision_id,
        iterations=result.metadata.iterations,
        target_percentile=result.target_percentile,
        seed=result.metadata.seed,
        created_at=created_at or datetime.now(timezone.utc),
        result=result,
    )
