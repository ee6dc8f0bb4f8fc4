"""Data models: address ranges, probe outcomes, devices, analysis results."""

import dataclasses
import ipaddress
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum


def ordinal_to_address(ordinal: int) -> str:
    """Render a 32-bit ordinal as a dotted-quad string."""
    return str(ipaddress.IPv4Address(ordinal))


def address_to_ordinal(address: str) -> int:
    """Parse a dotted-quad string into its 32-bit ordinal.

    Raises:
        ValueError: If *address* is not a valid IPv4 address.
    """
    return int(ipaddress.IPv4Address(address))


@dataclass(frozen=True)
class AddressRange:
    """A closed interval of IPv4 addresses, stored as ordinals.

    Iterating the range yields every address from ``start`` to ``end``
    inclusive, in ascending order.  Iteration has no side effects, so the
    same range can be walked any number of times.  A range whose ``end``
    is below its ``start`` is degenerate and yields nothing.

    Attributes:
        start: Ordinal of the first address.
        end: Ordinal of the last address.
    """

    start: int
    end: int

    @property
    def start_address(self) -> str:
        return ordinal_to_address(self.start)

    @property
    def end_address(self) -> str:
        return ordinal_to_address(self.end)

    def __len__(self) -> int:
        return max(0, self.end - self.start + 1)

    def __iter__(self) -> Iterator[str]:
        for ordinal in range(self.start, self.end + 1):
            yield ordinal_to_address(ordinal)

    def __contains__(self, address: object) -> bool:
        if not isinstance(address, str):
            return False
        try:
            ordinal = address_to_ordinal(address)
        except ValueError:
            return False
        return self.start <= ordinal <= self.end

    def to_cidr(self) -> str:
        """Return ``start/prefix`` when the range is an aligned block.

        Ranges that are not a single CIDR block fall back to
        ``start-end``.
        """
        size = len(self)
        if size and size & (size - 1) == 0 and self.start % size == 0:
            prefix = 32 - (size.bit_length() - 1)
            return f"{self.start_address}/{prefix}"
        return f"{self.start_address}-{self.end_address}"


@dataclass(frozen=True)
class ProbeConfiguration:
    """Settings applied to every probe of a sweep.

    Attributes:
        timeout_ms: How long to wait for a reply, in milliseconds.
        packet_size: ICMP payload size in bytes.
        ttl: IP time-to-live of the probe packet.
        dont_fragment: Whether to set the DF bit.
    """

    timeout_ms: int = 5000
    packet_size: int = 32
    ttl: int = 64
    dont_fragment: bool = True


class ProbeStatus(str, Enum):
    """Protocol-level reason attached to a probe outcome."""

    SUCCESS = "Success"
    TIMED_OUT = "TimedOut"
    TTL_EXPIRED = "TtlExpired"
    HOST_UNREACHABLE = "DestinationHostUnreachable"
    NETWORK_UNREACHABLE = "DestinationNetworkUnreachable"
    BAD_DESTINATION = "BadDestination"
    PACKET_TOO_BIG = "PacketTooBig"
    UNKNOWN = "Unknown"


@dataclass(frozen=True)
class ProbeOutcome:
    """Result of one probe attempt against one address.

    Attributes:
        target: Address that was probed.
        succeeded: Whether the target itself answered.
        latency_ms: Round-trip time; only meaningful when ``succeeded``.
        status: Protocol-level reason for the outcome.
        observed_at: When the outcome was recorded (UTC).
        responder: Address that sent the reply, when one was received.
            For a TTL-expired reply this is the intermediate router.
    """

    target: str
    succeeded: bool
    latency_ms: float
    status: ProbeStatus
    observed_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    responder: str | None = None

    @classmethod
    def success(
        cls, target: str, latency_ms: float, responder: str | None = None
    ) -> "ProbeOutcome":
        return cls(
            target=target,
            succeeded=True,
            latency_ms=latency_ms,
            status=ProbeStatus.SUCCESS,
            responder=responder or target,
        )

    @classmethod
    def failed(
        cls, target: str, status: ProbeStatus, responder: str | None = None
    ) -> "ProbeOutcome":
        return cls(
            target=target,
            succeeded=False,
            latency_ms=0.0,
            status=status,
            responder=responder,
        )


class DeviceType(str, Enum):
    UNKNOWN = "Unknown"
    ROUTER = "Router"
    SWITCH = "Switch"
    COMPUTER = "Computer"
    PRINTER = "Printer"
    MOBILE_DEVICE = "MobileDevice"
    IOT_DEVICE = "IoTDevice"
    SERVER = "Server"


@dataclass(frozen=True)
class Device:
    """A probed address and everything learned about it.

    Devices are never modified in place: each ``with_*`` method returns a
    new ``Device`` with one aspect changed.

    Attributes:
        ip_address: The device address.
        host_name: Reverse-DNS name, if one resolved.
        mac_address: Hardware address, if known.
        is_reachable: Whether the device answered its probe.
        latency_ms: Round-trip time of the probe, if one was recorded.
        status: Probe status, if the device was probed.
        device_type: Category inferred from the host name.
    """

    ip_address: str
    host_name: str | None = None
    mac_address: str | None = None
    is_reachable: bool = False
    latency_ms: float | None = None
    status: ProbeStatus | None = None
    device_type: DeviceType = DeviceType.UNKNOWN

    @classmethod
    def create(cls, ip_address: str) -> "Device":
        return cls(ip_address=ip_address)

    def with_host_name(self, host_name: str) -> "Device":
        return dataclasses.replace(self, host_name=host_name)

    def with_mac_address(self, mac_address: str) -> "Device":
        return dataclasses.replace(self, mac_address=mac_address)

    def with_ping_result(self, outcome: ProbeOutcome) -> "Device":
        return dataclasses.replace(
            self,
            is_reachable=outcome.succeeded,
            latency_ms=outcome.latency_ms,
            status=outcome.status,
        )

    def with_device_type(self, device_type: DeviceType) -> "Device":
        return dataclasses.replace(self, device_type=device_type)

    @property
    def display_name(self) -> str:
        if self.host_name:
            return f"{self.host_name} ({self.ip_address})"
        return self.ip_address

    def __str__(self) -> str:
        return self.display_name


@dataclass(frozen=True)
class InterfaceAddress:
    """An IPv4 address bound to an interface, with its subnet mask."""

    address: str
    netmask: str | None = None


@dataclass(frozen=True)
class NetworkInterfaceInfo:
    """A local network interface that is up and not a loopback.

    Attributes:
        name: OS interface name (e.g. ``"eth0"``).
        kind: Coarse category such as ``"ethernet"`` or ``"wireless"``.
        is_up: Operational status.
        speed_mbps: Link speed reported by the OS (0 when unknown).
        mtu: Maximum transmission unit.
        mac_address: Hardware address, if the interface has one.
        addresses: IPv4 addresses bound to the interface.
    """

    name: str
    kind: str = "ethernet"
    is_up: bool = True
    speed_mbps: int = 0
    mtu: int = 0
    mac_address: str | None = None
    addresses: tuple[InterfaceAddress, ...] = ()


@dataclass(frozen=True)
class AnalysisStatistics:
    """Summary statistics over one sweep (see ``aggregator.aggregate``)."""

    total_scanned: int = 0
    active: int = 0
    inactive: int = 0
    success_rate: float = 0.0
    average_latency_ms: float = 0.0
    min_latency_ms: float = 0.0
    max_latency_ms: float = 0.0


@dataclass(frozen=True)
class PingSummary:
    """Packet statistics over a continuous ping series."""

    sent: int = 0
    received: int = 0
    lost: int = 0
    loss_rate: float = 0.0
    average_latency_ms: float = 0.0
    min_latency_ms: float = 0.0
    max_latency_ms: float = 0.0


@dataclass(frozen=True)
class NetworkAnalysisResult:
    """Everything produced by one range analysis.

    Attributes:
        devices: Reachable devices discovered by the sweep.
        interfaces: Local interfaces that were up during the analysis.
        trace_route: Hops to the first device, or ``None`` when no trace
            was requested or it could not be run.
        started_at: When the analysis started (UTC).
        duration_seconds: Wall-clock duration of the analysis.
        statistics: Aggregated sweep statistics.
        target_ranges: CIDR text of every range that was swept.
    """

    devices: tuple[Device, ...]
    interfaces: tuple[NetworkInterfaceInfo, ...]
    trace_route: tuple[str, ...] | None
    started_at: datetime
    duration_seconds: float
    statistics: AnalysisStatistics
    target_ranges: tuple[str, ...] = ()
