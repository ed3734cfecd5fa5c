"""
PURPOSE: Validate and canonicalize risk register entries into RiskSpec objects.

RESPONSIBILITIES:
- Check required numeric fields are present, real and finite
- Check P10 <= P50 <= P90 on the magnitude (absolute value) axis
- Check probability in [0, 1] and distributionModel is a known model
- Fold the sign convention into RiskSpec.kind so downstream code only adds
- Validate request-level parameters (iterations, target percentile, seed)

Every problem in a request is collected before raising; a request with any
invalid risk is rejected as a whole, never run on the remaining subset.
"""

import logging
import math
from numbers import Integral, Real
from typing import Any, Iterable, List, Mapping, Optional, Tuple

from risk_quant.monte_carlo.config import DEFAULT_TARGET_PERCENTILE, MAX_ITERATIONS
from risk_quant.monte_carlo.errors import (
    UNSUPPORTED_DISTRIBUTION,
    UnsupportedDistributionError,
    ValidationError,
    ValidationIssue,
)
from risk_quant.monte_carlo.models import (
    DistributionModel,
    RiskKind,
    RiskSpec,
    SimulationRequest,
)

logger = logging.getLogger(__name__)

__all__ = ["RiskInputNormalizer", "normalize_risks", "build_request"]

# Canonical field name -> accepted spellings in raw register rows.
_FIELD_ALIASES = {
    "id": ("id", "riskId", "risk_id"),
    "kind": ("kind", "type"),
    "p10": ("p10", "optimisticP10", "optimistic_p10"),
    "p50": ("p50", "likelyP50", "likely_p50"),
    "p90": ("p90", "pessimisticP90", "pessimistic_p90"),
    "probability": ("probability",),
    "distributionModel": ("distributionModel", "distribution_model"),
    "riskNumber": ("riskNumber", "risk_number"),
    "title": ("title",),
}


def _lookup(raw: Mapping[str, Any], field: str) -> Any:
    for key in _FIELD_ALIASES[field]:
        if key in raw:
            return raw[key]
    return None


def _is_real_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


def _as_mapping(raw: Any) -> Optional[Mapping[str, Any]]:
    if isinstance(raw, RiskSpec):
        return {
            "id": raw.id,
            "kind": raw.kind.value,
            "p10": raw.sign * raw.p10,
            "p50": raw.sign * raw.p50,
            "p90": raw.sign * raw.p90,
            "probability": raw.probability,
            "distributionModel": raw.distribution_model.value,
            "riskNumber": raw.risk_number,
            "title": raw.title,
        }
    if isinstance(raw, Mapping):
        return raw
    return None


class RiskInputNormalizer:
    """Turns raw register rows into validated RiskSpec tuples."""

    def normalize(self, raw_risks: Iterable[Any]) -> Tuple[RiskSpec, ...]:
        """
        Validate every row and return the normalized risks in input order.

        Raises:
            UnsupportedDistributionError: if the only problems found are unknown
                distribution models.
            ValidationError: for anything else, listing every issue found.
        """
        specs, issues = self._collect(raw_risks)
        if issues:
            self._raise(issues)
        return tuple(specs)

    def build_request(
        self,
        raw_risks: Iterable[Any],
        iterations: Any,
        target_percentile: Any = DEFAULT_TARGET_PERCENTILE,
        seed: Any = None,
    ) -> SimulationRequest:
        """Validate the whole request: risks plus run parameters."""
        specs, issues = self._collect(raw_risks)
        issues.extend(self._check_run_parameters(iterations, target_percentile, seed))
        if issues:
            self._raise(issues)
        return SimulationRequest(
            risks=tuple(specs),
            iterations=int(iterations),
            target_percentile=float(target_percentile),
            seed=None if seed is None else int(seed),
        )

    def build_request_from_payload(self, payload: Mapping[str, Any]) -> SimulationRequest:
        """Validate a camelCase request payload as sent by the calling service."""
        if not isinstance(payload, Mapping):
            raise ValidationError([ValidationIssue(None, "request", "must be an object")])
        return self.build_request(
            payload.get("risks"),
            payload.get("iterations"),
            payload.get("targetPercentile", payload.get("target_percentile", DEFAULT_TARGET_PERCENTILE)),
            payload.get("seed"),
        )

    @staticmethod
    def _raise(issues: List[ValidationIssue]) -> None:
        unsupported = [issue for issue in issues if issue.code == UNSUPPORTED_DISTRIBUTION]
        if len(unsupported) == len(issues):
            first = unsupported[0]
            raise UnsupportedDistributionError(first.risk_id, first.value)
        logger.info("Rejecting simulation request with %s validation issue(s)", len(issues))
        raise ValidationError(issues)

    def _collect(self, raw_risks: Iterable[Any]) -> Tuple[List[RiskSpec], List[ValidationIssue]]:
        if raw_risks is None or isinstance(raw_risks, (str, bytes, Mapping)):
            return [], [ValidationIssue(None, "risks", "must be a list of risks")]
        rows = list(raw_risks)
        if not rows:
            return [], [ValidationIssue(None, "risks", "must contain at least one risk")]

        specs: List[RiskSpec] = []
        issues: List[ValidationIssue] = []
        seen_ids = set()
        for index, raw in enumerate(rows):
            spec, row_issues = self._normalize_one(index, raw)
            issues.extend(row_issues)
            if spec is None:
                continue
            if spec.id in seen_ids:
                issues.append(ValidationIssue(spec.id, "id", "duplicate risk id"))
                continue
            seen_ids.add(spec.id)
            specs.append(spec)
        return specs, issues

    def _normalize_one(self, index: int, raw: Any) -> Tuple[Optional[RiskSpec], List[ValidationIssue]]:
        row = _as_mapping(raw)
        if row is None:
            return None, [ValidationIssue(None, "risks", f"entry {index} must be an object")]

        issues: List[ValidationIssue] = []

        raw_id = _lookup(row, "id")
        if isinstance(raw_id, bool) or not isinstance(raw_id, (str, int)) or str(raw_id).strip() == "":
            return None, [ValidationIssue(None, "id", f"entry {index} is missing a risk id")]
        risk_id = str(raw_id).strip()

        kind = None
        raw_kind = _lookup(row, "kind")
        if raw_kind is None:
            issues.append(ValidationIssue(risk_id, "kind", "required (threat or opportunity)"))
        else:
            try:
                kind = RiskKind(str(raw_kind).strip().lower())
            except ValueError:
                issues.append(ValidationIssue(risk_id, "kind", f"must be threat or opportunity, got {raw_kind!r}"))

        magnitudes = {}
        for field in ("p10", "p50", "p90"):
            value = _lookup(row, field)
            if value is None:
                issues.append(ValidationIssue(risk_id, field, "required"))
            elif not _is_real_number(value):
                issues.append(ValidationIssue(risk_id, field, f"must be a number, got {type(value).__name__}"))
            elif not math.isfinite(value):
                issues.append(ValidationIssue(risk_id, field, "must be finite"))
            else:
                magnitudes[field] = abs(float(value))

        if len(magnitudes) == 3:
            low, mid, high = magnitudes["p10"], magnitudes["p50"], magnitudes["p90"]
            if not low <= mid <= high:
                issues.append(
                    ValidationIssue(
                        risk_id,
                        "p50",
                        f"magnitudes must satisfy |p10| <= |p50| <= |p90|, got {low}, {mid}, {high}",
                    )
                )

        probability = _lookup(row, "probability")
        if probability is None:
            issues.append(ValidationIssue(risk_id, "probability", "required"))
        elif not _is_real_number(probability) or not math.isfinite(probability):
            issues.append(ValidationIssue(risk_id, "probability", "must be a finite number"))
        elif not 0.0 <= probability <= 1.0:
            issues.append(ValidationIssue(risk_id, "probability", f"must be in [0, 1], got {probability}"))

        model = None
        raw_model = _lookup(row, "distributionModel")
        if raw_model is None:
            issues.append(ValidationIssue(risk_id, "distributionModel", "required"))
        else:
            try:
                model = DistributionModel(str(raw_model).strip().lower())
            except ValueError:
                issues.append(
                    ValidationIssue(
                        risk_id,
                        "distributionModel",
                        f"unsupported distribution model: {raw_model!r}",
                        code=UNSUPPORTED_DISTRIBUTION,
                        value=raw_model,
                    )
                )

        if issues:
            return None, issues

        risk_number = _lookup(row, "riskNumber")
        title = _lookup(row, "title")
        return (
            RiskSpec(
                id=risk_id,
                kind=kind,
                p10=magnitudes["p10"],
                p50=magnitudes["p50"],
                p90=magnitudes["p90"],
                probability=float(probability),
                distribution_model=model,
                risk_number=None if risk_number is None else str(risk_number),
                title=None if title is None else str(title),
            ),
            [],
        )

    @staticmethod
    def _check_run_parameters(iterations: Any, target_percentile: Any, seed: Any) -> List[ValidationIssue]:
        issues = []
        if isinstance(iterations, bool) or not isinstance(iterations, Integral):
            issues.append(ValidationIssue(None, "iterations", "must be a positive integer"))
        elif not 1 <= iterations <= MAX_ITERATIONS:
            issues.append(ValidationIssue(None, "iterations", f"must be in [1, {MAX_ITERATIONS}], got {iterations}"))

        if not _is_real_number(target_percentile) or not math.isfinite(target_percentile):
            issues.append(ValidationIssue(None, "targetPercentile", "must be a finite number"))
        elif not 0.0 <= target_percentile <= 100.0:
            issues.append(ValidationIssue(None, "targetPercentile", f"must be in [0, 100], got {target_percentile}"))

        if seed is not None and (isinstance(seed, bool) or not isinstance(seed, Integral) or seed < 0):
            issues.append(ValidationIssue(None, "seed", "must be a non-negative integer"))
        return issues


_default_normalizer = RiskInputNormalizer()


def normalize_risks(raw_risks: Iterable[Any]) -> Tuple[RiskSpec, ...]:
    """Module-level wrapper for RiskInputNormalizer.normalize."""
    return _default_normalizer.normalize(raw_risks)


def build_request(
    raw_risks: Iterable[Any],
    iterations: Any,
    target_percentile: Any = DEFAULT_TARGET_PERCENTILE,
    seed: Any = None,
) -> SimulationRequest:
    """Module-level wrapper for RiskInputNormalizer.build_request."""
    return _default_normalizer.build_request(raw_risks, iterations, target_percentile, seed)
