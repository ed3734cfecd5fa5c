"""
PURPOSE: Data model for the risk exposure engine.

RESPONSIBILITIES:
- RiskSpec / SimulationRequest: normalized, immutable engine input
- SimulationResult and its parts: pydantic models serialized in camelCase
  for the calling service (model_dump(by_alias=True))
- No validation logic here; see normalizer.py
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class RiskKind(str, Enum):
    THREAT = "threat"
    OPPORTUNITY = "opportunity"


class DistributionModel(str, Enum):
    TRIANGULAR = "triangular"
    PERT = "pert"
    NORMAL = "normal"
    UNIFORM = "uniform"


@dataclass(frozen=True)
class RiskSpec:
    """
    One normalized register entry.

    p10/p50/p90 hold magnitudes (non-negative, p10 <= p50 <= p90). The sign of
    the contribution comes from ``kind``: threats add, opportunities subtract.
    """

    id: str
    kind: RiskKind
    p10: float
    p50: float
    p90: float
    probability: float
    distribution_model: DistributionModel
    risk_number: Optional[str] = None
    title: Optional[str] = None

    @property
    def sign(self) -> float:
        return -1.0 if self.kind is RiskKind.OPPORTUNITY else 1.0

    @property
    def signed_p50(self) -> float:
        return self.sign * self.p50

    @property
    def is_degenerate(self) -> bool:
        return self.p10 == self.p90


@dataclass(frozen=True)
class SimulationRequest:
    risks: Tuple[RiskSpec, ...]
    iterations: int
    target_percentile: float
    seed: Optional[int] = None


class _ResultModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class HistogramBucket(_ResultModel):
    bucket_start: float
    bucket_end: float
    count: int
    percentage: float


class PercentileRow(_ResultModel):
    percentile: float
    value: float
    variance_from_base: float


class SensitivityItem(_ResultModel):
    risk_id: str
    contribution: float
    variance_share: float
    cumulative_share: float
    mean_contribution: float
    correlation: float
    risk_number: Optional[str] = None
    title: Optional[str] = None


class SimulationMetadata(_ResultModel):
    seed: int
    iterations: int
    target_percentile: float
    risk_count: int
    batch_size: int
    batch_count: int


class SimulationResult(_ResultModel):
    base: float
    p10: float
    p50: float
    p90: float
    mean: float
    std_dev: float
    min: float
    max: float
    target_percentile: float
    target_value: float
    distribution: List[HistogramBucket]
    percentile_table: List[PercentileRow]
    sensitivity_analysis: List[SensitivityItem]
    metadata: SimulationMetadata
