"""
PURPOSE: The engine's single operation: run a validated request end to end.

Flow: SimulationRequest -> SimulationEngine (trial arrays) -> StatisticsAggregator
and SensitivityAnalyzer -> SimulationResult.

The synchronous entry point is CPU-bound. Event-loop callers use
run_simulation_async, which moves the work to a worker thread and turns task
cancellation into cooperative engine cancellation.
"""

import asyncio
import logging
import math
import threading
from typing import Any, Iterable, Mapping, Optional

from risk_quant.monte_carlo.config import (
    DEFAULT_ITERATIONS,
    DEFAULT_TARGET_PERCENTILE,
    TOP_N_DRIVERS,
    get_engine_settings,
)
from risk_quant.monte_carlo.models import SimulationMetadata, SimulationRequest, SimulationResult
from risk_quant.monte_carlo.normalizer import RiskInputNormalizer
from risk_quant.monte_carlo.outputs import StatisticsAggregator
from risk_quant.monte_carlo.sensitivity import SensitivityAnalyzer
from risk_quant.monte_carlo.simulation import ProgressCallback, SimulationEngine

logger = logging.getLogger(__name__)

__all__ = ["run_simulation", "run_simulation_async", "simulate", "simulate_payload"]


def run_simulation(
    request: SimulationRequest,
    engine: Optional[SimulationEngine] = None,
    aggregator: Optional[StatisticsAggregator] = None,
    analyzer: Optional[SensitivityAnalyzer] = None,
    cancel_event: Optional[threading.Event] = None,
    progress_callback: Optional[ProgressCallback] = None,
) -> SimulationResult:
    """
    Run a validated simulation request.

    Risks with probability 0 are simulated like any other (they never occur),
    but they are left out of the base, the sensitivity ranking and the risk
    count, so a register with such a risk gives the same result as one without it.

    Raises:
        RiskEngineError subclasses; nothing is retried and no partial result is returned.
    """
    if engine is None or aggregator is None:
        settings = get_engine_settings()
        if engine is None:
            engine = SimulationEngine(max_workers=settings.max_workers, batch_size=settings.batch_size)
        if aggregator is None:
            aggregator = StatisticsAggregator(bucket_count=settings.histogram_buckets)
    if analyzer is None:
        analyzer = SensitivityAnalyzer(top_n=TOP_N_DRIVERS)

    output = engine.run(
        request.risks,
        request.iterations,
        seed=request.seed,
        cancel_event=cancel_event,
        progress_callback=progress_callback,
    )

    active = [index for index, risk in enumerate(request.risks) if risk.probability > 0]
    active_risks = [request.risks[index] for index in active]
    base = math.fsum(risk.signed_p50 for risk in active_risks)

    stats = aggregator.summarize(output.totals, request.target_percentile, base=base)
    if active:
        sensitivity = analyzer.rank(
            output.per_risk_contrib[:, active],
            [risk.id for risk in active_risks],
            totals=output.totals,
            labels={risk.id: (risk.risk_number, risk.title) for risk in active_risks},
        )
    else:
        sensitivity = []

    logger.info(
        "Simulation result: base=%s p50=%s p90=%s target P%s=%s",
        base,
        stats.p50,
        stats.p90,
        request.target_percentile,
        stats.target_value,
    )
    return SimulationResult(
        base=base,
        p10=stats.p10,
        p50=stats.p50,
        p90=stats.p90,
        mean=stats.mean,
        std_dev=stats.std_dev,
        min=stats.min,
        max=stats.max,
        target_percentile=stats.target_percentile,
        target_value=stats.target_value,
        distribution=stats.distribution,
        percentile_table=stats.percentile_table,
        sensitivity_analysis=sensitivity,
        metadata=SimulationMetadata(
            seed=output.seed,
            iterations=output.iterations,
            target_percentile=request.target_percentile,
            risk_count=len(active),
            batch_size=output.batch_size,
            batch_count=output.batch_count,
        ),
    )


def simulate(
    raw_risks: Iterable[Any],
    iterations: int = DEFAULT_ITERATIONS,
    target_percentile: float = DEFAULT_TARGET_PERCENTILE,
    seed: Optional[int] = None,
    **kwargs: Any,
) -> SimulationResult:
    """Validate raw register rows and run them. Keyword arguments go to run_simulation."""
    request = RiskInputNormalizer().build_request(raw_risks, iterations, target_percentile, seed)
    return run_simulation(request, **kwargs)


def simulate_payload(payload: Mapping[str, Any], **kwargs: Any) -> SimulationResult:
    """Validate a camelCase request payload ({risks, iterations, targetPercentile, seed?}) and run it."""
    request = RiskInputNormalizer().build_request_from_payload(payload)
    return run_simulation(request, **kwargs)


async def run_simulation_async(
    request: SimulationRequest,
    cancel_event: Optional[threading.Event] = None,
    **kwargs: Any,
) -> SimulationResult:
    """
    Run a request on a worker thread without blocking the event loop.

    Cancelling the awaiting task sets the engine's cancel event, so the worker
    stops at the next batch boundary instead of running to completion.
    """
    if cancel_event is None:
        cancel_event = threading.Event()
    try:
        return await asyncio.to_thread(run_simulation, request, cancel_event=cancel_event, **kwargs)
    except asyncio.CancelledError:
        cancel_event.set()
        raise

