"""
PURPOSE: Core Monte Carlo simulation engine for project risk exposure.

Runs N independent trials over a risk register and records every risk's signed
contribution to every trial, plus the per-trial total.

SINGLE RESPONSIBILITY:
- Execute N independent trials for a normalized risk list
- Gate each risk by its probability and sample its magnitude
- Return raw arrays (no statistics, no formatting, no I/O)

SAMPLING PROTOCOL:
- Trials are cut into fixed-size batches that depend only on the iteration
  count and batch size, never on the worker count.
- Each (batch, risk, stream) gets its own PCG64 generator seeded from
  SeedSequence([seed, batch_index, risk_key, stream]); risk_key is derived from
  the risk id, stream 0 is occurrence and stream 1 is magnitude.
- Totals are accumulated column by column in register order after every batch
  is done, so the output is identical for any worker count or completion order.
"""

import hashlib
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from numbers import Integral
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np

from risk_quant.monte_carlo.config import BATCH_SIZE, MAX_WORKERS
from risk_quant.monte_carlo.errors import (
    NumericInstabilityError,
    SimulationCancelledError,
    ValidationError,
    ValidationIssue,
)
from risk_quant.monte_carlo.models import RiskSpec
from risk_quant.monte_carlo.risk_events import sample_risk_contributions

logger = logging.getLogger(__name__)

__all__ = ["SimulationEngine", "SimulationOutput", "risk_stream_key", "risk_stream_seeds", "generate_seed"]

OCCURRENCE_STREAM = 0
MAGNITUDE_STREAM = 1

ProgressCallback = Callable[[int, int], None]


def risk_stream_key(risk_id: str) -> int:
    """Stable 256-bit key for a risk id, independent of its position in the register."""
    digest = hashlib.sha256(risk_id.encode("utf-8")).digest()
    return int.from_bytes(digest, "big")


def risk_stream_seeds(seed: int, batch_index: int, risk_id: str) -> Tuple[np.random.SeedSequence, np.random.SeedSequence]:
    """Seed sequences for the occurrence and magnitude streams of one risk in one batch."""
    key = risk_stream_key(risk_id)
    return (
        np.random.SeedSequence([seed, batch_index, key, OCCURRENCE_STREAM]),
        np.random.SeedSequence([seed, batch_index, key, MAGNITUDE_STREAM]),
    )


def generate_seed() -> int:
    """Fresh non-deterministic seed, kept within 53 bits so it survives a JSON round trip."""
    state = np.random.SeedSequence().generate_state(1, dtype=np.uint64)[0]
    return int(state >> np.uint64(11))


@dataclass(frozen=True)
class _Batch:
    index: int
    start: int
    stop: int

    @property
    def size(self) -> int:
        return self.stop - self.start


@dataclass(frozen=True)
class SimulationOutput:
    """
    Raw engine output.

    Attributes:
        totals: shape (iterations,), total signed exposure per trial.
        per_risk_contrib: shape (iterations, len(risk_ids)), signed contribution
            of each risk to each trial (0 where the risk did not occur).
        risk_ids: column labels of per_risk_contrib, in register order.
        seed: seed actually used.
        batch_size: trials per batch.
        batch_count: number of batches run.
    """

    totals: np.ndarray
    per_risk_contrib: np.ndarray
    risk_ids: Tuple[str, ...]
    seed: int
    batch_size: int
    batch_count: int

    @property
    def iterations(self) -> int:
        return int(self.totals.shape[0])


class SimulationEngine:
    """
    Monte Carlo simulation engine for risk register exposure.

    Each trial gates every risk independently and, when it occurs, adds its
    sampled magnitude (negated for opportunities). Risks are independent of
    each other and across trials; there is no correlation model.
    """

    def __init__(self, max_workers: int = MAX_WORKERS, batch_size: int = BATCH_SIZE):
        """
        Initialize simulation engine.

        Args:
            max_workers: Worker threads for batch execution (1 runs inline).
            batch_size: Trials per batch; cancellation is checked between batches.
        """
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        self.max_workers = max_workers
        self.batch_size = batch_size

    def run(
        self,
        risks: Sequence[RiskSpec],
        iterations: int,
        seed: Optional[int] = None,
        cancel_event: Optional[threading.Event] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> SimulationOutput:
        """
        Execute the simulation.

        Args:
            risks: Normalized risks (see normalizer.py).
            iterations: Number of trials.
            seed: Seed for reproducibility; None draws a fresh one, reported in the output.
            cancel_event: Set it to stop the run; checked between batches.
            progress_callback: Called as (completed_trials, total_trials) after each batch.

        Returns:
            SimulationOutput with per-trial totals and the contribution matrix.

        Raises:
            ValidationError: empty risk list or non-positive iterations.
            SimulationCancelledError: cancel_event was set before the run finished.
            NumericInstabilityError: a non-finite total was produced.
        """
        risks = tuple(risks)
        if not risks:
            raise ValidationError([ValidationIssue(None, "risks", "must contain at least one risk")])
        if isinstance(iterations, bool) or not isinstance(iterations, Integral) or iterations < 1:
            raise ValidationError([ValidationIssue(None, "iterations", "must be a positive integer")])
        iterations = int(iterations)
        if seed is None:
            seed = generate_seed()

        batches = self._plan_batches(iterations)
        contrib = np.zeros((iterations, len(risks)))

        logger.info(
            "Starting simulation: %s iterations, %s risks, %s batches, seed=%s",
            iterations,
            len(risks),
            len(batches),
            seed,
        )
        started = time.perf_counter()

        def run_batch(batch: _Batch) -> bool:
            if cancel_event is not None and cancel_event.is_set():
                return False
            self._run_batch(risks, seed, batch, contrib)
            return True

        self._execute(batches, run_batch, iterations, cancel_event, progress_callback)

        totals = np.zeros(iterations)
        for column in range(len(risks)):
            totals += contrib[:, column]
        if not np.all(np.isfinite(totals)):
            raise NumericInstabilityError("aggregation", "non-finite trial total")

        logger.info(
            "Simulation finished in %.3f seconds (%s iterations, seed=%s)",
            time.perf_counter() - started,
            iterations,
            seed,
        )
        return SimulationOutput(
            totals=totals,
            per_risk_contrib=contrib,
            risk_ids=tuple(risk.id for risk in risks),
            seed=seed,
            batch_size=self.batch_size,
            batch_count=len(batches),
        )

    def _plan_batches(self, iterations: int) -> List[_Batch]:
        return [
            _Batch(index=index, start=start, stop=min(start + self.batch_size, iterations))
            for index, start in enumerate(range(0, iterations, self.batch_size))
        ]

    @staticmethod
    def _run_batch(risks: Tuple[RiskSpec, ...], seed: int, batch: _Batch, contrib: np.ndarray) -> None:
        for column, spec in enumerate(risks):
            occurrence_seq, magnitude_seq = risk_stream_seeds(seed, batch.index, spec.id)
            contrib[batch.start:batch.stop, column] = sample_risk_contributions(
                spec,
                np.random.default_rng(occurrence_seq),
                np.random.default_rng(magnitude_seq),
                batch.size,
            )

    def _execute(
        self,
        batches: List[_Batch],
        run_batch: Callable[[_Batch], bool],
        total: int,
        cancel_event: Optional[threading.Event],
        progress_callback: Optional[ProgressCallback],
    ) -> None:
        completed = 0

        def finish(batch: _Batch) -> None:
            nonlocal completed
            completed += batch.size
            logger.debug("Batch %s done (%s/%s trials)", batch.index, completed, total)
            if progress_callback is not None:
                progress_callback(completed, total)

        if self.max_workers == 1 or len(batches) == 1:
            for batch in batches:
                if not run_batch(batch):
                    break
                finish(batch)
        else:
            workers = min(self.max_workers, len(batches))
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="risk-quant-mc") as executor:
                futures = {executor.submit(run_batch, batch): batch for batch in batches}
                try:
                    for future in as_completed(futures):
                        if future.result():
                            finish(futures[future])
                        if cancel_event is not None and cancel_event.is_set():
                            break
                finally:
                    for future in futures:
                        future.cancel()

        if completed < total:
            logger.warning("Simulation cancelled after %s/%s trials", completed, total)
            raise SimulationCancelledError(completed, total)
