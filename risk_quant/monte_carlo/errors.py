"""
Error taxonomy for the risk exposure engine.

Every error carries structured fields so the calling service can build its own
user-facing message. All of them are terminal for the simulation request.
"""

from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional, Sequence


class RiskEngineError(Exception):
    """Base class for all engine errors."""

    code = "risk_engine_error"

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": str(self)}


INVALID_VALUE = "invalid_value"
UNSUPPORTED_DISTRIBUTION = "unsupported_distribution"


@dataclass(frozen=True)
class ValidationIssue:
    """
    One offending field. risk_id is None for request-level problems.

    code is INVALID_VALUE or UNSUPPORTED_DISTRIBUTION; value holds the rejected
    input where it is worth echoing back (the unknown distributionModel).
    """

    risk_id: Optional[str]
    field: str
    reason: str
    code: str = INVALID_VALUE
    value: Any = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ValidationError(RiskEngineError):
    """Malformed or out-of-range request fields."""

    code = "validation_error"

    def __init__(self, issues: Sequence[ValidationIssue]):
        if not issues:
            raise ValueError("ValidationError requires at least one issue")
        self.issues: List[ValidationIssue] = list(issues)
        super().__init__(self.issues)

    @property
    def risk_id(self) -> Optional[str]:
        return self.issues[0].risk_id

    @property
    def field(self) -> str:
        return self.issues[0].field

    @property
    def reason(self) -> str:
        return self.issues[0].reason

    def __str__(self) -> str:
        parts = []
        for issue in self.issues:
            where = f"risk {issue.risk_id}" if issue.risk_id is not None else "request"
            parts.append(f"{where}: {issue.field}: {issue.reason}")
        return "; ".join(parts)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": str(self),
            "issues": [issue.to_dict() for issue in self.issues],
        }


class UnsupportedDistributionError(RiskEngineError):
    """A distributionModel value the engine does not know."""

    code = UNSUPPORTED_DISTRIBUTION

    def __init__(self, risk_id: Optional[str], value: Any):
        self.risk_id = risk_id
        self.value = value
        super().__init__(risk_id, value)

    def __str__(self) -> str:
        return f"risk {self.risk_id}: unsupported distributionModel {self.value!r}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": str(self),
            "risk_id": self.risk_id,
            "value": self.value,
        }


class NumericInstabilityError(RiskEngineError):
    """
    Internal guard: a NaN or infinity appeared during sampling or aggregation.

    Valid normalized input never triggers this, so it points at a normalizer bug.
    """

    code = "numeric_instability"

    def __init__(self, stage: str, detail: str, risk_id: Optional[str] = None):
        self.stage = stage
        self.detail = detail
        self.risk_id = risk_id
        super().__init__(stage, detail, risk_id)

    def __str__(self) -> str:
        suffix = f" (risk {self.risk_id})" if self.risk_id is not None else ""
        return f"numeric instability in {self.stage}: {self.detail}{suffix}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": str(self),
            "stage": self.stage,
            "detail": self.detail,
            "risk_id": self.risk_id,
        }


class SimulationCancelledError(RiskEngineError):
    """The caller asked the run to stop before every batch finished."""

    code = "simulation_cancelled"

    def __init__(self, completed_trials: int, total_trials: int):
        self.completed_trials = completed_trials
        self.total_trials = total_trials
        super().__init__(completed_trials, total_trials)

    def __str__(self) -> str:
        return f"simulation cancelled after {self.completed_trials}/{self.total_trials} trials"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": str(self),
            "completed_trials": self.completed_trials,
            "total_trials": self.total_trials,
        }
