"""
PURPOSE: Rank risks by how much of the simulated spread they explain (tornado ranking).

Uses the leave-one-out method: for each risk, zero its column of the
contribution matrix, recompute the trial totals and measure the variance that
disappears. contribution = Var(totals) - Var(totals without the risk).

SRP/DRY: Single responsibility = sensitivity analysis only.
         No simulation, no percentile statistics.
"""

from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from risk_quant.monte_carlo.models import SensitivityItem

__all__ = ["SensitivityAnalyzer"]


def _sample_variance(values: np.ndarray) -> float:
    if values.size < 2:
        return 0.0
    return float(np.var(values, ddof=1))


def _correlation(column: np.ndarray, totals: np.ndarray) -> float:
    if column.size < 2 or np.ptp(column) == 0 or np.ptp(totals) == 0:
        return 0.0
    return float(np.corrcoef(column, totals)[0, 1])


class SensitivityAnalyzer:
    """
    Computes leave-one-out variance contributions for each risk.

    Output is sorted by contribution descending, ties broken by risk id
    ascending, so the ranking is deterministic for a given matrix.
    """

    def __init__(self, top_n: Optional[int] = None):
        """
        Initialize analyzer.

        Args:
            top_n: Number of top risks to return (None returns every risk).
        """
        if top_n is not None and top_n < 1:
            raise ValueError(f"top_n must be positive, got {top_n}")
        self.top_n = top_n

    def rank(
        self,
        per_risk_contrib: np.ndarray,
        risk_ids: Sequence[str],
        totals: Optional[np.ndarray] = None,
        labels: Optional[Mapping[str, Tuple[Optional[str], Optional[str]]]] = None,
    ) -> List[SensitivityItem]:
        """
        Rank risks by leave-one-out variance reduction.

        Args:
            per_risk_contrib: Matrix of shape (trials, risks).
            risk_ids: Column labels, same order as the matrix columns.
            totals: Per-trial totals; recomputed from the matrix when omitted.
            labels: Optional risk_id -> (risk_number, title) passed through to the items.

        Returns:
            List of SensitivityItem, most influential first.

        Raises:
            ValueError: if the matrix shape and risk_ids disagree or ids repeat.
        """
        matrix = np.asarray(per_risk_contrib, dtype=float)
        if matrix.ndim != 2:
            raise ValueError(f"per_risk_contrib must be 2-dimensional, got shape {matrix.shape}")
        if matrix.shape[1] != len(risk_ids):
            raise ValueError(
                f"per_risk_contrib has {matrix.shape[1]} columns but {len(risk_ids)} risk ids were given"
            )
        if len(set(risk_ids)) != len(risk_ids):
            raise ValueError("risk_ids must be unique")
        if matrix.shape[0] == 0:
            raise ValueError("per_risk_contrib must contain at least one trial")

        if totals is None:
            totals = np.zeros(matrix.shape[0])
            for column in range(matrix.shape[1]):
                totals += matrix[:, column]
        else:
            totals = np.asarray(totals, dtype=float)

        total_variance = _sample_variance(totals)
        labels = labels or {}

        scored = []
        for column, risk_id in enumerate(risk_ids):
            values = matrix[:, column]
            contribution = total_variance - _sample_variance(totals - values)
            scored.append((risk_id, contribution, float(np.mean(values)), _correlation(values, totals)))

        scored.sort(key=lambda item: (-item[1], item[0]))
        if self.top_n is not None:
            scored = scored[: self.top_n]

        results = []
        cumulative = 0.0
        for risk_id, contribution, mean_contribution, correlation in scored:
            share = contribution / total_variance if total_variance > 0 else 0.0
            cumulative += share
            risk_number, title = labels.get(risk_id, (None, None))
            results.append(
                SensitivityItem(
                    risk_id=risk_id,
                    contribution=contribution,
                    variance_share=share,
                    cumulative_share=cumulative,
                    mean_contribution=mean_contribution,
                    correlation=correlation,
                    risk_number=risk_number,
                    title=title,
                )
            )
        return results

    @staticmethod
    def to_dataframe_compatible(items: List[SensitivityItem]) -> Dict[str, List]:
        """
        Convert ranked items to column lists (pandas/CSV friendly).

        Args:
            items: Output of rank().

        Returns:
            Dictionary with keys as column names, values as lists (one per row).
        """
        return {
            "rank": list(range(1, len(items) + 1)),
            "risk_id": [item.risk_id for item in items],
            "contribution": [item.contribution for item in items],
            "variance_share": [round(item.variance_share, 4) for item in items],
            "cumulative_share": [round(item.cumulative_share, 4) for item in items],
        }
