"""Bounded-concurrency probe sweeps and device enrichment."""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable

from netan.dns import reverse_lookup
from netan.errors import BatchPingFailed
from netan.models import Device, DeviceType, ProbeConfiguration, ProbeOutcome, ProbeStatus
from netan.probes import Prober

logger = logging.getLogger(__name__)

Resolver = Callable[[str], Awaitable[str | None]]

# Ordered hostname rules; the first rule with a matching substring wins.
DEVICE_TYPE_RULES: tuple[tuple[tuple[str, ...], DeviceType], ...] = (
    (("router", "gateway"), DeviceType.ROUTER),
    (("switch",), DeviceType.SWITCH),
    (("printer",), DeviceType.PRINTER),
    (("server",), DeviceType.SERVER),
    (("phone", "mobile"), DeviceType.MOBILE_DEVICE),
)


def classify_device(host_name: str | None) -> DeviceType:
    """Infer a device type from its host name.

    Matching is case-insensitive and first-match-wins over
    ``DEVICE_TYPE_RULES``, so ``"gateway-switch"`` is a router.  A name
    that matches no rule is a computer; no name at all is unknown.
    """
    if not host_name:
        return DeviceType.UNKNOWN

    lowered = host_name.lower()
    for needles, device_type in DEVICE_TYPE_RULES:
        if any(needle in lowered for needle in needles):
            return device_type
    return DeviceType.COMPUTER


async def probe_one(
    prober: Prober, address: str, config: ProbeConfiguration
) -> ProbeOutcome:
    """Run one probe, turning any transport failure into a failed outcome."""
    try:
        return await prober.probe(address, config)
    except Exception as exc:
        logger.debug("Probe to %s failed: %s", address, exc)
        return ProbeOutcome.failed(address, ProbeStatus.TIMED_OUT)


async def sweep(
    addresses: Iterable[str],
    config: ProbeConfiguration,
    concurrency_limit: int,
    prober: Prober,
    *,
    deadline_seconds: float | None = None,
) -> list[ProbeOutcome]:
    """Probe every address with at most *concurrency_limit* in flight.

    Addresses are pulled lazily from *addresses*; a slot is taken before
    each probe task is spawned and given back when the task finishes, no
    matter how it finishes.  Every input address produces exactly one
    outcome (duplicates are probed independently).  Outcomes come back in
    completion order.

    Args:
        addresses: Addresses to probe, e.g. an ``AddressRange``.
        config: Probe settings shared by every probe.
        concurrency_limit: Maximum number of probes in flight.
        prober: Transport used for each probe.
        deadline_seconds: Optional wall-clock budget for the whole sweep.
            When it runs out, in-flight probes are cancelled and they,
            along with any addresses not yet dispatched, are recorded as
            timeouts.

    Returns:
        One ``ProbeOutcome`` per input address.

    Raises:
        BatchPingFailed: If *concurrency_limit* is not positive.
    """
    if concurrency_limit <= 0:
        raise BatchPingFailed(
            f"concurrency limit must be positive, got {concurrency_limit}"
        )

    semaphore = asyncio.Semaphore(concurrency_limit)
    in_flight: dict[asyncio.Task, str] = {}
    outcomes: list[ProbeOutcome] = []
    pending = iter(addresses)
    waiting: list[str] = []  # address pulled but not yet dispatched

    def on_done(task: asyncio.Task) -> None:
        semaphore.release()
        address = in_flight.pop(task)
        if task.cancelled():
            outcomes.append(ProbeOutcome.failed(address, ProbeStatus.TIMED_OUT))
        elif task.exception() is not None:
            logger.debug("Probe task for %s raised: %s", address, task.exception())
            outcomes.append(ProbeOutcome.failed(address, ProbeStatus.TIMED_OUT))
        else:
            outcomes.append(task.result())

    async def dispatch() -> None:
        for address in pending:
            waiting.append(address)
            await semaphore.acquire()
            waiting.clear()
            task = asyncio.create_task(probe_one(prober, address, config))
            in_flight[task] = address
            task.add_done_callback(on_done)
        if in_flight:
            await asyncio.gather(*in_flight, return_exceptions=True)

    try:
        await asyncio.wait_for(dispatch(), timeout=deadline_seconds)
    except TimeoutError:
        abandoned = list(in_flight)
        logger.warning(
            "Sweep deadline of %ss reached; abandoning %d in-flight probe(s)",
            deadline_seconds,
            len(abandoned),
        )
        for task in abandoned:
            task.cancel()
        if abandoned:
            await asyncio.gather(*abandoned, return_exceptions=True)
        for address in [*waiting, *pending]:
            outcomes.append(ProbeOutcome.failed(address, ProbeStatus.TIMED_OUT))

    logger.debug("Sweep finished with %d outcome(s)", len(outcomes))
    return outcomes


async def enrich_device(
    outcome: ProbeOutcome, resolver: Resolver
) -> Device:
    """Build a ``Device`` from *outcome*, adding host name and type.

    Resolver failures are swallowed: the host name stays absent and the
    device type falls back to ``Unknown``.
    """
    device = Device.create(outcome.target).with_ping_result(outcome)

    try:
        host_name = await resolver(outcome.target)
    except Exception as exc:
        logger.debug("Hostname resolution for %s failed: %s", outcome.target, exc)
        host_name = None

    if host_name:
        device = device.with_host_name(host_name)

    return device.with_device_type(classify_device(device.host_name))


async def discover_devices(
    addresses: Iterable[str],
    config: ProbeConfiguration,
    concurrency_limit: int,
    prober: Prober,
    *,
    resolver: Resolver = reverse_lookup,
    deadline_seconds: float | None = None,
) -> list[Device]:
    """Sweep *addresses* and return the reachable ones as enriched devices.

    Enrichment runs sequentially after the sweep, one device at a time.
    """
    outcomes = await sweep(
        addresses,
        config,
        concurrency_limit,
        prober,
        deadline_seconds=deadline_seconds,
    )

    devices: list[Device] = []
    for outcome in outcomes:
        if not outcome.succeeded:
            continue
        devices.append(await enrich_device(outcome, resolver))

    logger.info(
        "Discovered %d reachable device(s) out of %d probed",
        len(devices),
        len(outcomes),
    )
    return devices
