"""Prober backed by the platform ``ping`` binary."""

import asyncio
import contextlib
import logging
import math
import re
import shutil
import sys

from netan.errors import PingFailed
from netan.models import ProbeConfiguration, ProbeOutcome, ProbeStatus
from netan.probes import Prober, is_probeable

logger = logging.getLogger(__name__)

# Extra seconds granted to the ping process beyond the reply timeout
# before it is killed.
_PROCESS_GRACE_SECONDS = 2.0

_LATENCY_RE = re.compile(r"time\s*[=<]\s*([\d.]+)\s*ms", re.IGNORECASE)
_RESPONDER_RE = re.compile(
    r"(?:reply from|bytes from|from)\s+(\d{1,3}(?:\.\d{1,3}){3})",
    re.IGNORECASE,
)

# Substring → status, checked in order before looking for a success line.
_FAILURE_MARKERS: tuple[tuple[str, ProbeStatus], ...] = (
    ("time to live exceeded", ProbeStatus.TTL_EXPIRED),
    ("ttl expired in transit", ProbeStatus.TTL_EXPIRED),
    ("destination host unreachable", ProbeStatus.HOST_UNREACHABLE),
    ("destination net unreachable", ProbeStatus.NETWORK_UNREACHABLE),
    ("destination network unreachable", ProbeStatus.NETWORK_UNREACHABLE),
    ("frag needed", ProbeStatus.PACKET_TOO_BIG),
    ("needs to be fragmented", ProbeStatus.PACKET_TOO_BIG),
    ("message too long", ProbeStatus.PACKET_TOO_BIG),
    ("destination port unreachable", ProbeStatus.UNKNOWN),
    ("destination protocol unreachable", ProbeStatus.UNKNOWN),
)


def build_ping_command(
    address: str,
    config: ProbeConfiguration,
    platform: str | None = None,
) -> list[str]:
    """Build a single-echo ``ping`` invocation for *platform*.

    Args:
        address: Target address.
        config: Probe settings to translate into flags.
        platform: ``sys.platform`` value to build for (default: current).

    Returns:
        The argv list.
    """
    platform = platform or sys.platform

    if platform.startswith("win"):
        cmd = [
            "ping", "-n", "1",
            "-w", str(config.timeout_ms),
            "-i", str(config.ttl),
            "-l", str(config.packet_size),
        ]
        if config.dont_fragment:
            cmd.append("-f")
    elif platform == "darwin":
        cmd = [
            "ping", "-n", "-c", "1",
            "-W", str(config.timeout_ms),
            "-m", str(config.ttl),
            "-s", str(config.packet_size),
        ]
        if config.dont_fragment:
            cmd.append("-D")
    else:
        # iputils takes whole seconds for -W.
        timeout_seconds = max(1, math.ceil(config.timeout_ms / 1000))
        cmd = [
            "ping", "-n", "-c", "1",
            "-W", str(timeout_seconds),
            "-t", str(config.ttl),
            "-s", str(config.packet_size),
            "-M", "do" if config.dont_fragment else "dont",
        ]

    cmd.append(address)
    return cmd


def parse_ping_output(address: str, output: str) -> ProbeOutcome:
    """Turn the text printed by ``ping`` into a ``ProbeOutcome``.

    Failure markers (TTL exceeded, unreachable, fragmentation needed) are
    checked before the success line, because Windows prints
    ``Reply from ...`` for those too.  Output with neither is a timeout.
    """
    lowered = output.lower()
    responder_match = _RESPONDER_RE.search(output)
    responder = responder_match.group(1) if responder_match else None

    for marker, status in _FAILURE_MARKERS:
        if marker in lowered:
            return ProbeOutcome.failed(address, status, responder=responder)

    latency_match = _LATENCY_RE.search(output)
    if latency_match:
        return ProbeOutcome.success(
            address, float(latency_match.group(1)), responder=responder
        )

    return ProbeOutcome.failed(address, ProbeStatus.TIMED_OUT)


class SystemPingProber(Prober):
    """Send probes by running the operating system's ``ping`` command.

    Works without root on most systems, since ``ping`` ships with the
    privileges it needs.
    """

    def __init__(self, binary: str = "ping") -> None:
        self.binary = binary

    @property
    def available(self) -> bool:
        return shutil.which(self.binary) is not None

    async def probe(self, address: str, config: ProbeConfiguration) -> ProbeOutcome:
        if not is_probeable(address):
            return ProbeOutcome.failed(str(address), ProbeStatus.BAD_DESTINATION)

        cmd = build_ping_command(address, config)
        cmd[0] = self.binary

        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise PingFailed(address, f"cannot run {self.binary}: {exc}") from exc

        try:
            stdout, stderr = await asyncio.wait_for(
                proc.communicate(),
                timeout=config.timeout_ms / 1000 + _PROCESS_GRACE_SECONDS,
            )
        except TimeoutError:
            logger.debug("ping %s did not exit in time", address)
            return ProbeOutcome.failed(address, ProbeStatus.TIMED_OUT)
        finally:
            # Reached on cancellation too: kill and reap a child still running.
            if proc.returncode is None:
                with contextlib.suppress(ProcessLookupError):
                    proc.kill()
                await proc.wait()

        output = stdout.decode(errors="replace")
        outcome = parse_ping_output(address, output)

        # iputils exits 2 on errors such as a bad option or no permission.
        if proc.returncode not in (0, 1) and outcome.status == ProbeStatus.TIMED_OUT:
            reason = stderr.decode(errors="replace").strip() or f"exit code {proc.returncode}"
            raise PingFailed(address, reason)

        return outcome
