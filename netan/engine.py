"""Analysis engine: range sweeps, single-host probes, ping series, traces.

Every entry point either returns its value or raises exactly one
``NetworkError``.  Errors already in the taxonomy pass through unchanged;
anything else raised by a collaborator is wrapped into the variant that
matches the operation.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

from netan.address_space import parse_cidr, subnet_from_address
from netan.aggregator import aggregate
from netan.config import NetanConfig
from netan.dns import reverse_lookup
from netan.errors import (
    InvalidNetworkRange,
    NetworkDiscoveryFailed,
    NetworkError,
    PingFailed,
    TraceRouteFailed,
)
from netan.interfaces import list_interfaces
from netan.models import (
    AddressRange,
    Device,
    NetworkAnalysisResult,
    NetworkInterfaceInfo,
    ProbeConfiguration,
    ProbeOutcome,
)
from netan.probes import Prober, is_probeable
from netan.scheduler import Resolver, discover_devices, enrich_device
from netan.traceroute import DEFAULT_HOP_TIMEOUT_MS, DEFAULT_MAX_HOPS, trace_route

logger = logging.getLogger(__name__)

InterfaceLister = Callable[[], list[NetworkInterfaceInfo]]


@dataclass(frozen=True)
class AnalysisOptions:
    """Settings for one ``analyze_range`` call.

    Attributes:
        probe_config: Settings for every sweep probe.
        max_concurrency: Maximum probes in flight.
        include_trace_route: Trace the route to the first device found.
        target_network: CIDR to sweep, or None to sweep every local
            interface subnet.
        max_hops: Hop budget for the optional trace.
        hop_timeout_ms: Per-hop timeout for the optional trace.
        deadline_seconds: Wall-clock budget shared by every range swept
            in one call, or None.
    """

    probe_config: ProbeConfiguration = field(default_factory=ProbeConfiguration)
    max_concurrency: int = 50
    include_trace_route: bool = False
    target_network: str | None = None
    max_hops: int = DEFAULT_MAX_HOPS
    hop_timeout_ms: int = DEFAULT_HOP_TIMEOUT_MS
    deadline_seconds: float | None = None

    @classmethod
    def from_config(
        cls, config: NetanConfig, target_network: str | None = None
    ) -> "AnalysisOptions":
        return cls(
            probe_config=config.probe_config(),
            max_concurrency=config.max_concurrency,
            include_trace_route=config.include_trace_route,
            target_network=target_network,
            max_hops=config.max_hops,
            hop_timeout_ms=config.hop_timeout_ms,
            deadline_seconds=config.sweep_deadline_seconds,
        )


def resolve_ranges(
    target_network: str | None, interfaces: list[NetworkInterfaceInfo]
) -> list[AddressRange]:
    """Work out which ranges to sweep.

    An explicit CIDR yields exactly that range (an invalid one raises
    ``InvalidNetworkRange``).  Otherwise every IPv4 address of every
    interface contributes its subnet; addresses without a usable mask are
    skipped and identical subnets are swept once.
    """
    if target_network is not None:
        return [parse_cidr(target_network)]

    ranges: list[AddressRange] = []
    for interface in interfaces:
        for addr in interface.addresses:
            try:
                subnet = subnet_from_address(addr.address, addr.netmask)
            except InvalidNetworkRange as exc:
                logger.warning("Skipping %s on %s: %s", addr.address, interface.name, exc)
                continue
            if subnet not in ranges:
                ranges.append(subnet)
    return ranges


async def analyze_range(
    options: AnalysisOptions,
    *,
    prober: Prober,
    resolver: Resolver = reverse_lookup,
    interface_lister: InterfaceLister | None = None,
) -> NetworkAnalysisResult:
    """Sweep a network and summarise what answered.

    Steps: enumerate local interfaces, resolve the target range(s), sweep
    and enrich each range, optionally trace the route to the first device
    found, then aggregate.  ``total_scanned`` is the summed size of every
    target range.  ``options.deadline_seconds`` bounds the sweeping of all
    ranges together; ranges reached after it runs out are not probed.

    Raises:
        InvalidNetworkRange: If ``options.target_network`` is not valid CIDR.
        NetworkInterfaceError: If local interfaces can't be enumerated.
        BatchPingFailed: If the concurrency limit is not positive.
        NetworkDiscoveryFailed: For any other failure.
    """
    started_at = datetime.now(UTC)
    t0 = time.monotonic()

    try:
        interfaces = (interface_lister or list_interfaces)()
        ranges = resolve_ranges(options.target_network, interfaces)
        logger.info(
            "Sweeping %s",
            ", ".join(r.to_cidr() for r in ranges) or "no ranges",
        )

        deadline_at = None
        if options.deadline_seconds is not None:
            deadline_at = time.monotonic() + options.deadline_seconds

        devices: list[Device] = []
        seen: set[str] = set()
        for address_range in ranges:
            budget = None
            if deadline_at is not None:
                budget = deadline_at - time.monotonic()
                if budget <= 0:
                    logger.warning(
                        "Deadline reached; not sweeping %s", address_range.to_cidr()
                    )
                    continue
            found = await discover_devices(
                address_range,
                options.probe_config,
                options.max_concurrency,
                prober,
                resolver=resolver,
                deadline_seconds=budget,
            )
            for device in found:
                if device.ip_address not in seen:
                    seen.add(device.ip_address)
                    devices.append(device)

        trace = None
        if options.include_trace_route and devices:
            trace = await _trace_first_device(devices[0].ip_address, options, prober)

        total_scanned = sum(len(r) for r in ranges)
        statistics = aggregate(devices, total_scanned)
    except NetworkError:
        raise
    except Exception as exc:
        logger.debug("Range analysis failed", exc_info=True)
        raise NetworkDiscoveryFailed(str(exc)) from exc

    return NetworkAnalysisResult(
        devices=tuple(devices),
        interfaces=tuple(interfaces),
        trace_route=trace,
        started_at=started_at,
        duration_seconds=time.monotonic() - t0,
        statistics=statistics,
        target_ranges=tuple(r.to_cidr() for r in ranges),
    )


async def _trace_first_device(
    address: str, options: AnalysisOptions, prober: Prober
) -> tuple[str, ...] | None:
    """Trace to *address*; a failed trace is logged and yields None."""
    try:
        return await trace_route(
            address,
            prober,
            max_hops=options.max_hops,
            timeout_ms=options.hop_timeout_ms,
        )
    except TraceRouteFailed as exc:
        logger.warning("%s", exc)
        return None


async def analyze_single_host(
    address: str,
    config: ProbeConfiguration | None = None,
    *,
    prober: Prober,
    resolver: Resolver = reverse_lookup,
) -> Device:
    """Probe one host and enrich it with host name and device type.

    Enrichment happens whether or not the host answered.

    Raises:
        PingFailed: If *address* is invalid or the probe can't be sent.
    """
    config = config or ProbeConfiguration()
    if not is_probeable(address):
        raise PingFailed(str(address), "invalid target address")

    try:
        outcome = await prober.probe(address, config)
        return await enrich_device(outcome, resolver)
    except NetworkError:
        raise
    except Exception as exc:
        raise PingFailed(address, str(exc)) from exc


async def continuous_ping(
    address: str,
    count: int = 4,
    interval_seconds: float = 1.0,
    config: ProbeConfiguration | None = None,
    *,
    prober: Prober,
) -> tuple[ProbeOutcome, ...]:
    """Ping *address* *count* times, waiting *interval_seconds* between.

    Raises:
        PingFailed: If *address* is invalid or a probe can't be sent.
    """
    config = config or ProbeConfiguration()
    if not is_probeable(address):
        raise PingFailed(str(address), "invalid target address")

    outcomes: list[ProbeOutcome] = []
    try:
        for i in range(count):
            outcomes.append(await prober.probe(address, config))
            if i < count - 1:
                await asyncio.sleep(interval_seconds)
    except NetworkError:
        raise
    except Exception as exc:
        raise PingFailed(address, str(exc)) from exc

    return tuple(outcomes)


async def trace(
    address: str,
    *,
    prober: Prober,
    max_hops: int = DEFAULT_MAX_HOPS,
    timeout_ms: int = DEFAULT_HOP_TIMEOUT_MS,
) -> tuple[str, ...]:
    """Trace the route to *address*.

    Raises:
        TraceRouteFailed: On an invalid target or any probe failure.
    """
    try:
        return await trace_route(
            address, prober, max_hops=max_hops, timeout_ms=timeout_ms
        )
    except NetworkError:
        raise
    except Exception as exc:
        raise TraceRouteFailed(str(address), str(exc)) from exc
