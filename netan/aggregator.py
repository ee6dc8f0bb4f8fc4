"""Aggregator: sweep statistics and continuous-ping summaries."""

import logging
from collections.abc import Iterable

from netan.models import AnalysisStatistics, Device, PingSummary, ProbeOutcome

logger = logging.getLogger(__name__)


def _latency_stats(latencies: list[float]) -> tuple[float, float, float]:
    """Return ``(average, minimum, maximum)``, all 0 for an empty list."""
    if not latencies:
        return 0.0, 0.0, 0.0
    return sum(latencies) / len(latencies), min(latencies), max(latencies)


def aggregate(devices: Iterable[Device], total_scanned: int) -> AnalysisStatistics:
    """Compute sweep statistics from a device collection.

    Args:
        devices: Devices produced by the sweep.  Unreachable hosts may be
            left out entirely; they still count through *total_scanned*.
        total_scanned: Number of addresses that were probed.

    Returns:
        An ``AnalysisStatistics`` where ``active + inactive ==
        total_scanned``, the success rate is a percentage (0 when nothing
        was scanned) and latencies cover reachable devices only.
    """
    devices = list(devices)
    active = [d for d in devices if d.is_reachable]
    latencies = [d.latency_ms for d in active if d.latency_ms is not None]

    success_rate = len(active) / total_scanned * 100 if total_scanned > 0 else 0.0
    average, minimum, maximum = _latency_stats(latencies)

    return AnalysisStatistics(
        total_scanned=total_scanned,
        active=len(active),
        inactive=total_scanned - len(active),
        success_rate=success_rate,
        average_latency_ms=average,
        min_latency_ms=minimum,
        max_latency_ms=maximum,
    )


def summarize_pings(outcomes: Iterable[ProbeOutcome]) -> PingSummary:
    """Summarise a continuous ping series.

    Args:
        outcomes: One outcome per echo request sent.

    Returns:
        A ``PingSummary`` with packet counts, loss percentage (0 when
        nothing was sent) and latency figures over received replies.
    """
    outcomes = list(outcomes)
    sent = len(outcomes)
    latencies = [o.latency_ms for o in outcomes if o.succeeded]
    received = len(latencies)
    average, minimum, maximum = _latency_stats(latencies)

    return PingSummary(
        sent=sent,
        received=received,
        lost=sent - received,
        loss_rate=(sent - received) / sent * 100 if sent else 0.0,
        average_latency_ms=average,
        min_latency_ms=minimum,
        max_latency_ms=maximum,
    )
