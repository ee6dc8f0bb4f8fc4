"""Trace route: discover the forwarding path by raising the probe TTL."""

import logging
from dataclasses import dataclass

from netan.errors import TraceRouteFailed
from netan.models import ProbeConfiguration, ProbeOutcome, ProbeStatus
from netan.probes import Prober, is_probeable

logger = logging.getLogger(__name__)

DEFAULT_MAX_HOPS = 30
DEFAULT_HOP_TIMEOUT_MS = 5000
TRACE_PACKET_SIZE = 32


@dataclass(frozen=True)
class TraceStep:
    """What one probe reply means for the trace.

    Attributes:
        hop: Address to record for this TTL, or None to record nothing.
        done: Whether the trace stops after this step.
    """

    hop: str | None
    done: bool


def next_step(outcome: ProbeOutcome) -> TraceStep:
    """Decide how the trace proceeds after *outcome*.

    * destination answered → record it, stop;
    * TTL expired with a known router → record the router, continue;
    * timed out → record nothing, continue;
    * anything else → stop.
    """
    if outcome.status == ProbeStatus.SUCCESS:
        return TraceStep(hop=outcome.responder or outcome.target, done=True)
    if outcome.status == ProbeStatus.TTL_EXPIRED and outcome.responder:
        return TraceStep(hop=outcome.responder, done=False)
    if outcome.status == ProbeStatus.TIMED_OUT:
        return TraceStep(hop=None, done=False)
    return TraceStep(hop=None, done=True)


async def trace_route(
    target: str,
    prober: Prober,
    *,
    max_hops: int = DEFAULT_MAX_HOPS,
    timeout_ms: int = DEFAULT_HOP_TIMEOUT_MS,
    packet_size: int = TRACE_PACKET_SIZE,
) -> tuple[str, ...]:
    """Trace the route to *target*, one TTL at a time.

    Probes are strictly sequential: TTL 1, 2, ... up to *max_hops*, each
    with the DF bit set.  Running out of hops is not an error; the hops
    found so far are returned, which may be none at all.

    Args:
        target: Destination IPv4 address.
        prober: Transport used for each hop probe.
        max_hops: Hop budget; ``<= 0`` returns ``()`` without probing.
        timeout_ms: Per-hop reply timeout.
        packet_size: ICMP payload size of each hop probe.

    Returns:
        Hop addresses in path order; the last one is *target* if reached.

    Raises:
        TraceRouteFailed: If *target* is not a valid address or the
            prober fails to send a probe.
    """
    if not is_probeable(target):
        raise TraceRouteFailed(str(target), "invalid target address")

    hops: list[str] = []
    ttl = 1
    while ttl <= max_hops:
        config = ProbeConfiguration(
            timeout_ms=timeout_ms,
            packet_size=packet_size,
            ttl=ttl,
            dont_fragment=True,
        )
        try:
            outcome = await prober.probe(target, config)
        except Exception as exc:
            raise TraceRouteFailed(target, str(exc)) from exc

        step = next_step(outcome)
        logger.debug("ttl=%d %s → hop=%s", ttl, outcome.status.value, step.hop)
        if step.hop is not None:
            hops.append(step.hop)
        if step.done:
            break
        ttl += 1

    logger.info("Trace to %s found %d hop(s)", target, len(hops))
    return tuple(hops)
