"""Prober registry and abstract Prober base class."""

from __future__ import annotations

import ipaddress
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from netan.models import ProbeConfiguration, ProbeOutcome


class Prober(ABC):
    """Abstract base class for single-probe transports.

    A prober sends exactly one reachability probe and reports what came
    back.  Protocol-level failures (timeouts, unreachable replies) are
    returned as failed ``ProbeOutcome`` values; only transport problems
    (missing binary, missing privileges) raise.
    """

    @abstractmethod
    async def probe(self, address: str, config: ProbeConfiguration) -> ProbeOutcome:
        """Send one probe to *address*.

        Args:
            address: Dotted-quad IPv4 target.
            config: Timeout, TTL, payload size and DF flag to use.

        Returns:
            A ``ProbeOutcome`` for the attempt.

        Raises:
            PingFailed: If the probe could not be sent at all.
        """


def is_probeable(address: object) -> bool:
    """Return True if *address* is a unicast-capable IPv4 literal.

    Unspecified (``0.0.0.0``) and unparsable values are not probeable;
    probers report them as ``BadDestination`` without touching the wire.
    """
    if not isinstance(address, str):
        return False
    try:
        parsed = ipaddress.IPv4Address(address)
    except ValueError:
        return False
    return not parsed.is_unspecified


def _build_registry() -> dict[str, type[Prober]]:
    """Build the backend-name → Prober-class mapping.

    Imports are deferred to avoid circular imports and to keep the
    registry definition in one place.
    """
    from netan.probes.icmp import ScapyProber
    from netan.probes.system import SystemPingProber

    return {
        "system": SystemPingProber,
        "icmp": ScapyProber,
    }


def get_prober(name: str, **kwargs: object) -> Prober:
    """Look up and instantiate the prober backend called *name*.

    Extra keyword arguments are passed to the backend constructor.

    Raises:
        ValueError: If *name* is not in the registry.
    """
    registry = _build_registry()
    prober_cls = registry.get(name)
    if prober_cls is None:
        known = ", ".join(sorted(registry))
        raise ValueError(f"Unknown prober {name!r}. Known probers: {known}")
    return prober_cls(**kwargs)


def registered_probers() -> list[str]:
    """Return a sorted list of all registered prober backend names."""
    return sorted(_build_registry())
