"""Prober that sends ICMP echo requests through scapy raw sockets."""

import asyncio
import logging
import os
import time

from netan.errors import PingFailed
from netan.models import ProbeConfiguration, ProbeOutcome, ProbeStatus
from netan.probes import Prober, is_probeable

logger = logging.getLogger(__name__)

_ECHO_REPLY = 0
_DEST_UNREACHABLE = 3
_TIME_EXCEEDED = 11

# ICMP destination-unreachable codes → status.
_UNREACHABLE_CODES: dict[int, ProbeStatus] = {
    0: ProbeStatus.NETWORK_UNREACHABLE,
    1: ProbeStatus.HOST_UNREACHABLE,
    4: ProbeStatus.PACKET_TOO_BIG,
}


class ScapyProber(Prober):
    """ICMP echo prober built on scapy's ``sr1``.

    Needs raw-socket privileges (root on Unix).  The blocking ``sr1`` call
    runs in the event loop's default executor.
    """

    def __init__(self) -> None:
        self._has_privileges = self._check_privileges()

    def _check_privileges(self) -> bool:
        """Check if we have root/admin privileges for raw socket access."""
        if hasattr(os, "geteuid"):
            return os.geteuid() == 0
        # Windows: scapy reports missing privileges itself
        return True

    @property
    def available(self) -> bool:
        return self._has_privileges

    async def probe(self, address: str, config: ProbeConfiguration) -> ProbeOutcome:
        if not is_probeable(address):
            return ProbeOutcome.failed(str(address), ProbeStatus.BAD_DESTINATION)

        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, self._send, address, config)
        except PermissionError as exc:
            raise PingFailed(
                address, "permission denied - run as root for raw ICMP"
            ) from exc
        except OSError as exc:
            raise PingFailed(address, str(exc)) from exc

    def _send(self, address: str, config: ProbeConfiguration) -> ProbeOutcome:
        """Send one echo request and classify the reply (runs in a thread)."""
        from scapy.all import ICMP, IP, Raw, sr1

        packet = IP(
            dst=address,
            ttl=config.ttl,
            flags="DF" if config.dont_fragment else 0,
        ) / ICMP(type=8, code=0)
        if config.packet_size > 0:
            packet = packet / Raw(load=b"\x00" * config.packet_size)

        started = time.time()
        reply = sr1(packet, timeout=config.timeout_ms / 1000, verbose=0)

        if reply is None or not reply.haslayer(ICMP):
            return ProbeOutcome.failed(address, ProbeStatus.TIMED_OUT)

        return classify_reply(address, reply, started)


def classify_reply(address: str, reply: object, started: float) -> ProbeOutcome:
    """Map a scapy ICMP reply packet to a ``ProbeOutcome``.

    Args:
        address: The probed target.
        reply: Packet returned by ``sr1``; must carry IP and ICMP layers.
        started: Epoch time just before the request was sent, used when
            the reply has no ``time`` stamp.
    """
    from scapy.all import ICMP, IP

    icmp = reply[ICMP]
    responder = str(reply[IP].src)
    icmp_type = int(icmp.type)

    if icmp_type == _ECHO_REPLY:
        received = float(getattr(reply, "time", 0) or time.time())
        latency_ms = max(0.0, (received - started) * 1000.0)
        return ProbeOutcome.success(address, latency_ms, responder=responder)

    if icmp_type == _TIME_EXCEEDED:
        return ProbeOutcome.failed(address, ProbeStatus.TTL_EXPIRED, responder=responder)

    if icmp_type == _DEST_UNREACHABLE:
        status = _UNREACHABLE_CODES.get(int(icmp.code), ProbeStatus.UNKNOWN)
        return ProbeOutcome.failed(address, status, responder=responder)

    logger.debug("Unexpected ICMP type %d from %s", icmp_type, responder)
    return ProbeOutcome.failed(address, ProbeStatus.UNKNOWN, responder=responder)
