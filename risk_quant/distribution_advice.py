"""
Distribution-model advice for risk register rows.

Choosing a distribution model per risk happens before a request reaches the
Monte Carlo engine, by an advisory process (an LLM prompt or a risk analyst).
This module is that boundary: a selector protocol, a deterministic offline
selector, a parser for advisory JSON responses, and a helper that fills in
rows that have no model yet. The engine itself never picks a model.
"""

import json
import logging
import re
from typing import Any, Dict, Iterable, List, Literal, Mapping, Protocol

from jsonschema import ValidationError as SchemaValidationError
from jsonschema import validate
from pydantic import BaseModel

from risk_quant.monte_carlo.models import DistributionModel

logger = logging.getLogger(__name__)

__all__ = [
    "DISTRIBUTION_RECOMMENDATION_SCHEMA",
    "DistributionRecommendation",
    "DistributionModelSelector",
    "SkewHeuristicSelector",
    "parse_recommendation",
    "apply_recommendations",
]

DISTRIBUTION_RECOMMENDATION_SCHEMA = {
    "type": "object",
    "required": ["distributionModel", "confidence", "reasoning"],
    "properties": {
        "distributionModel": {"type": "string", "enum": [m.value for m in DistributionModel]},
        "confidence": {"type": "string", "enum": ["high", "medium", "low"]},
        "reasoning": {"type": "string", "minLength": 1, "maxLength": 1000},
    },
}

# Mode within this fraction of the midpoint counts as symmetric.
SYMMETRY_TOLERANCE = 0.05

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


class DistributionRecommendation(BaseModel):
    risk_id: str
    distribution_model: DistributionModel
    confidence: Literal["high", "medium", "low"]
    reasoning: str


class DistributionModelSelector(Protocol):
    def recommend(self, row: Mapping[str, Any]) -> DistributionRecommendation:
        ...


def _three_point(row: Mapping[str, Any]):
    values = []
    for keys in (("p10", "optimisticP10"), ("p50", "likelyP50"), ("p90", "pessimisticP90")):
        value = next((row[k] for k in keys if row.get(k) is not None), None)
        if value is None:
            raise ValueError(f"risk {row.get('id')} needs P10, P50 and P90 for distribution advice")
        values.append(abs(float(value)))
    return values


class SkewHeuristicSelector:
    """
    Picks a model from the shape of the three-point estimate.

    - P50 on a bound (or a single-point estimate): triangular
    - P50 at the midpoint of P10..P90: normal
    - anything else (skewed): pert, which keeps most weight near the mode
    """

    def recommend(self, row: Mapping[str, Any]) -> DistributionRecommendation:
        risk_id = str(row.get("id"))
        low, mid, high = _three_point(row)
        if high == low:
            return DistributionRecommendation(
                risk_id=risk_id,
                distribution_model=DistributionModel.TRIANGULAR,
                confidence="high",
                reasoning="Single-point estimate; every model reduces to the same constant.",
            )
        position = (mid - low) / (high - low)
        if position <= 0.0 or position >= 1.0:
            return DistributionRecommendation(
                risk_id=risk_id,
                distribution_model=DistributionModel.TRIANGULAR,
                confidence="medium",
                reasoning="Most likely value sits on a bound of the range.",
            )
        if abs(position - 0.5) <= SYMMETRY_TOLERANCE:
            return DistributionRecommendation(
                risk_id=risk_id,
                distribution_model=DistributionModel.NORMAL,
                confidence="high",
                reasoning="Estimate is symmetric around P50.",
            )
        side = "upper" if position < 0.5 else "lower"
        return DistributionRecommendation(
            risk_id=risk_id,
            distribution_model=DistributionModel.PERT,
            confidence="medium",
            reasoning=f"Estimate is skewed with a larger {side} tail; PERT keeps weight near P50.",
        )


def parse_recommendation(risk_id: str, content: str) -> DistributionRecommendation:
    """
    Parse an advisory response that contains one JSON object.

    Text around the object is ignored. Raise ValueError if no valid object is found.
    """
    match = _JSON_OBJECT.search(content or "")
    if match is None:
        raise ValueError(f"No JSON object found in advisory response for risk {risk_id}")
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise ValueError(f"Advisory response for risk {risk_id} is not valid JSON: {e}") from e
    if isinstance(data, dict):
        data = {k: v.strip().lower() if k in ("distributionModel", "confidence") and isinstance(v, str) else v
                for k, v in data.items()}
    try:
        validate(instance=data, schema=DISTRIBUTION_RECOMMENDATION_SCHEMA)
    except SchemaValidationError as e:
        raise ValueError(f"Advisory response validation failed for risk {risk_id}: {e.message}") from e
    return DistributionRecommendation(
        risk_id=risk_id,
        distribution_model=DistributionModel(data["distributionModel"]),
        confidence=data["confidence"],
        reasoning=data["reasoning"],
    )


def apply_recommendations(
    raw_risks: Iterable[Mapping[str, Any]],
    selector: DistributionModelSelector,
) -> List[Dict[str, Any]]:
    """
    Return copies of the rows with a distributionModel filled in where missing.

    Rows that already carry a model are never changed. Rows the selector cannot
    advise on are returned without a model, so request validation rejects them.
    """
    rows = []
    for raw in raw_risks:
        row = dict(raw)
        if row.get("distributionModel") is None and row.get("distribution_model") is None:
            try:
                recommendation = selector.recommend(row)
            except ValueError as e:
                logger.warning("No distribution advice for risk %s: %s", row.get("id"), e)
            else:
                row["distributionModel"] = recommendation.distribution_model.value
                logger.debug(
                    "Risk %s assigned %s (%s confidence)",
                    row.get("id"),
                    recommendation.distribution_model.value,
                    recommendation.confidence,
                )
        rows.append(row)
    return rows
