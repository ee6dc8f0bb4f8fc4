"""Tests for the prober registry and the system/icmp prober backends."""

import asyncio
import signal
import sys
import textwrap
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from netan.errors import PingFailed
from netan.models import ProbeConfiguration, ProbeOutcome, ProbeStatus
from netan.probes import Prober, get_prober, is_probeable, registered_probers
from netan.probes.icmp import ScapyProber, classify_reply
from netan.probes.system import (
    SystemPingProber,
    build_ping_command,
    parse_ping_output,
)
from netan.scheduler import sweep

_LINUX_SUCCESS = textwrap.dedent("""\
    PING 192.168.1.1 (192.168.1.1) 32(60) bytes of data.
    40 bytes from 192.168.1.1: icmp_seq=1 ttl=64 time=0.512 ms

    --- 192.168.1.1 ping statistics ---
    1 packets transmitted, 1 received, 0% packet loss, time 0ms
    rtt min/avg/max/mdev = 0.512/0.512/0.512/0.000 ms
""")

_LINUX_TIMEOUT = textwrap.dedent("""\
    PING 192.168.1.77 (192.168.1.77) 32(60) bytes of data.

    --- 192.168.1.77 ping statistics ---
    1 packets transmitted, 0 received, 100% packet loss, time 0ms
""")

_LINUX_TTL_EXCEEDED = textwrap.dedent("""\
    PING 8.8.8.8 (8.8.8.8) 32(60) bytes of data.
    From 10.0.0.1 icmp_seq=1 Time to live exceeded

    --- 8.8.8.8 ping statistics ---
    1 packets transmitted, 0 received, +1 errors, 100% packet loss, time 0ms
""")


class TestProberABC:
    """Prober is abstract and cannot be instantiated directly."""

    def test_cannot_instantiate(self) -> None:
        with pytest.raises(TypeError, match="abstract method"):
            Prober()  # type: ignore[abstract]

    def test_complete_subclass_instantiates(self) -> None:
        class Complete(Prober):
            async def probe(self, address, config):
                return ProbeOutcome.success(address, 1.0)

        assert isinstance(Complete(), Prober)


class TestRegistry:
    """get_prober() returns the backend registered under each name."""

    def test_system(self) -> None:
        assert isinstance(get_prober("system"), SystemPingProber)

    def test_icmp(self) -> None:
        assert isinstance(get_prober("icmp"), ScapyProber)

    def test_kwargs_are_forwarded(self) -> None:
        prober = get_prober("system", binary="/bin/ping")

        assert prober.binary == "/bin/ping"

    def test_unknown_raises(self) -> None:
        with pytest.raises(ValueError, match="Unknown prober 'smoke-signal'"):
            get_prober("smoke-signal")

    def test_registered_probers_sorted(self) -> None:
        assert registered_probers() == ["icmp", "system"]


class TestIsProbeable:
    @pytest.mark.parametrize("address", ["192.168.1.1", "8.8.8.8", "255.255.255.255"])
    def test_valid(self, address: str) -> None:
        assert is_probeable(address) is True

    @pytest.mark.parametrize("address", ["0.0.0.0", "", "example.com", "1.2.3", None, 42])
    def test_invalid(self, address: object) -> None:
        assert is_probeable(address) is False


class TestBuildPingCommand:
    """Flags are translated per platform; the target always comes last."""

    def test_linux(self) -> None:
        cfg = ProbeConfiguration(timeout_ms=1500, packet_size=56, ttl=7)

        cmd = build_ping_command("10.0.0.1", cfg, platform="linux")

        assert cmd == [
            "ping", "-n", "-c", "1",
            "-W", "2",
            "-t", "7",
            "-s", "56",
            "-M", "do",
            "10.0.0.1",
        ]

    def test_linux_timeout_floor_is_one_second(self) -> None:
        cmd = build_ping_command(
            "10.0.0.1", ProbeConfiguration(timeout_ms=100), platform="linux"
        )

        assert cmd[cmd.index("-W") + 1] == "1"

    def test_linux_fragmentation_allowed(self) -> None:
        cmd = build_ping_command(
            "10.0.0.1", ProbeConfiguration(dont_fragment=False), platform="linux"
        )

        assert cmd[cmd.index("-M") + 1] == "dont"

    def test_windows(self) -> None:
        cmd = build_ping_command("10.0.0.1", ProbeConfiguration(), platform="win32")

        assert cmd == [
            "ping", "-n", "1", "-w", "5000", "-i", "64", "-l", "32", "-f", "10.0.0.1",
        ]

    def test_darwin(self) -> None:
        cmd = build_ping_command(
            "10.0.0.1", ProbeConfiguration(dont_fragment=False), platform="darwin"
        )

        assert "-D" not in cmd
        assert cmd[cmd.index("-m") + 1] == "64"
        assert cmd[-1] == "10.0.0.1"


class TestParsePingOutput:
    """parse_ping_output() maps ping text to outcomes."""

    def test_linux_success(self) -> None:
        outcome = parse_ping_output("192.168.1.1", _LINUX_SUCCESS)

        assert outcome.succeeded is True
        assert outcome.status == ProbeStatus.SUCCESS
        assert outcome.latency_ms == pytest.approx(0.512)
        assert outcome.responder == "192.168.1.1"

    def test_linux_timeout(self) -> None:
        outcome = parse_ping_output("192.168.1.77", _LINUX_TIMEOUT)

        assert outcome.succeeded is False
        assert outcome.status == ProbeStatus.TIMED_OUT

    def test_linux_ttl_exceeded_records_router(self) -> None:
        outcome = parse_ping_output("8.8.8.8", _LINUX_TTL_EXCEEDED)

        assert outcome.status == ProbeStatus.TTL_EXPIRED
        assert outcome.responder == "10.0.0.1"
        assert outcome.target == "8.8.8.8"

    def test_windows_success(self) -> None:
        outcome = parse_ping_output(
            "8.8.8.8", "Reply from 8.8.8.8: bytes=32 time=14ms TTL=117"
        )

        assert outcome.succeeded is True
        assert outcome.latency_ms == 14.0

    def test_windows_sub_millisecond(self) -> None:
        outcome = parse_ping_output(
            "192.168.1.1", "Reply from 192.168.1.1: bytes=32 time<1ms TTL=64"
        )

        assert outcome.succeeded is True
        assert outcome.latency_ms == 1.0

    def test_windows_ttl_expired(self) -> None:
        outcome = parse_ping_output(
            "8.8.8.8", "Reply from 10.0.0.1: TTL expired in transit."
        )

        assert outcome.status == ProbeStatus.TTL_EXPIRED
        assert outcome.responder == "10.0.0.1"

    @pytest.mark.parametrize(
        ("text", "status"),
        [
            (
                "From 192.168.1.1 icmp_seq=1 Destination Host Unreachable",
                ProbeStatus.HOST_UNREACHABLE,
            ),
            (
                "Reply from 10.0.0.1: Destination net unreachable.",
                ProbeStatus.NETWORK_UNREACHABLE,
            ),
            (
                "From 10.0.0.1 icmp_seq=1 Frag needed and DF set (mtu = 1400)",
                ProbeStatus.PACKET_TOO_BIG,
            ),
            (
                "Packet needs to be fragmented but DF set.",
                ProbeStatus.PACKET_TOO_BIG,
            ),
            ("Request timed out.", ProbeStatus.TIMED_OUT),
        ],
    )
    def test_failure_markers(self, text: str, status: ProbeStatus) -> None:
        outcome = parse_ping_output("192.168.1.5", text)

        assert outcome.succeeded is False
        assert outcome.status == status


def _fake_process(stdout: bytes, stderr: bytes = b"", returncode: int = 0) -> MagicMock:
    proc = MagicMock()
    proc.communicate = AsyncMock(return_value=(stdout, stderr))
    proc.wait = AsyncMock(return_value=returncode)
    proc.returncode = returncode
    return proc


class TestSystemPingProber:
    """SystemPingProber runs ``ping`` and parses its output."""

    @patch("netan.probes.system.asyncio.create_subprocess_exec", new_callable=AsyncMock)
    def test_success(self, mock_exec: AsyncMock) -> None:
        mock_exec.return_value = _fake_process(_LINUX_SUCCESS.encode())

        outcome = asyncio.run(
            SystemPingProber().probe("192.168.1.1", ProbeConfiguration())
        )

        assert outcome.succeeded is True
        args = mock_exec.call_args.args
        assert args[0] == "ping"
        assert args[-1] == "192.168.1.1"

    @patch("netan.probes.system.asyncio.create_subprocess_exec", new_callable=AsyncMock)
    def test_custom_binary(self, mock_exec: AsyncMock) -> None:
        mock_exec.return_value = _fake_process(_LINUX_TIMEOUT.encode(), returncode=1)

        outcome = asyncio.run(
            SystemPingProber(binary="/usr/bin/ping").probe(
                "192.168.1.77", ProbeConfiguration()
            )
        )

        assert outcome.status == ProbeStatus.TIMED_OUT
        assert mock_exec.call_args.args[0] == "/usr/bin/ping"

    @patch("netan.probes.system.asyncio.create_subprocess_exec", new_callable=AsyncMock)
    def test_bad_destination_never_spawns(self, mock_exec: AsyncMock) -> None:
        outcome = asyncio.run(SystemPingProber().probe("0.0.0.0", ProbeConfiguration()))

        assert outcome.status == ProbeStatus.BAD_DESTINATION
        mock_exec.assert_not_called()

    @patch("netan.probes.system.asyncio.create_subprocess_exec", new_callable=AsyncMock)
    def test_missing_binary_raises(self, mock_exec: AsyncMock) -> None:
        mock_exec.side_effect = FileNotFoundError("ping")

        with pytest.raises(PingFailed, match="cannot run ping"):
            asyncio.run(SystemPingProber().probe("10.0.0.1", ProbeConfiguration()))

    @patch("netan.probes.system.asyncio.create_subprocess_exec", new_callable=AsyncMock)
    def test_error_exit_code_raises(self, mock_exec: AsyncMock) -> None:
        mock_exec.return_value = _fake_process(
            b"", stderr=b"ping: socket: Operation not permitted", returncode=2
        )

        with pytest.raises(PingFailed, match="Operation not permitted"):
            asyncio.run(SystemPingProber().probe("10.0.0.1", ProbeConfiguration()))

    @patch("netan.probes.system._PROCESS_GRACE_SECONDS", 0.0)
    @patch("netan.probes.system.asyncio.create_subprocess_exec", new_callable=AsyncMock)
    def test_hung_process_is_killed(self, mock_exec: AsyncMock) -> None:
        async def hang() -> tuple[bytes, bytes]:
            await asyncio.sleep(10)
            return b"", b""

        proc = _fake_process(b"")
        proc.communicate = hang
        proc.returncode = None
        mock_exec.return_value = proc

        outcome = asyncio.run(
            SystemPingProber().probe("10.0.0.1", ProbeConfiguration(timeout_ms=10))
        )

        assert outcome.status == ProbeStatus.TIMED_OUT
        proc.kill.assert_called_once()

    @pytest.mark.skipif(sys.platform == "win32", reason="needs a POSIX shell")
    def test_deadline_kills_running_children(
        self, tmp_path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        slow_ping = tmp_path / "slow-ping"
        slow_ping.write_text("#!/bin/sh\nexec sleep 30\n", encoding="utf-8")
        slow_ping.chmod(0o755)

        spawned: list[asyncio.subprocess.Process] = []
        real_exec = asyncio.create_subprocess_exec

        async def tracking_exec(*args, **kwargs):
            proc = await real_exec(*args, **kwargs)
            spawned.append(proc)
            return proc

        monkeypatch.setattr(
            "netan.probes.system.asyncio.create_subprocess_exec", tracking_exec
        )

        outcomes = asyncio.run(
            sweep(
                ["10.0.0.1", "10.0.0.2", "10.0.0.3"],
                ProbeConfiguration(timeout_ms=20000),
                8,
                SystemPingProber(binary=str(slow_ping)),
                deadline_seconds=0.5,
            )
        )

        assert [o.status for o in outcomes] == [ProbeStatus.TIMED_OUT] * 3
        assert len(spawned) == 3
        assert all(proc.returncode == -signal.SIGKILL for proc in spawned)


class TestClassifyReply:
    """classify_reply() maps scapy ICMP replies to outcomes."""

    def _reply(self, src: str, icmp_type: int, code: int = 0) -> object:
        from scapy.all import ICMP, IP

        return IP(src=src, dst="192.168.1.2") / ICMP(type=icmp_type, code=code)

    def test_echo_reply(self) -> None:
        reply = self._reply("8.8.8.8", 0)

        outcome = classify_reply("8.8.8.8", reply, reply.time - 0.015)

        assert outcome.succeeded is True
        assert outcome.latency_ms == pytest.approx(15.0, abs=0.5)
        assert outcome.responder == "8.8.8.8"

    def test_time_exceeded(self) -> None:
        outcome = classify_reply("8.8.8.8", self._reply("10.0.0.1", 11), 0.0)

        assert outcome.status == ProbeStatus.TTL_EXPIRED
        assert outcome.responder == "10.0.0.1"

    @pytest.mark.parametrize(
        ("code", "status"),
        [
            (0, ProbeStatus.NETWORK_UNREACHABLE),
            (1, ProbeStatus.HOST_UNREACHABLE),
            (4, ProbeStatus.PACKET_TOO_BIG),
            (3, ProbeStatus.UNKNOWN),
        ],
    )
    def test_destination_unreachable(self, code: int, status: ProbeStatus) -> None:
        outcome = classify_reply("8.8.8.8", self._reply("10.0.0.1", 3, code), 0.0)

        assert outcome.succeeded is False
        assert outcome.status == status

    def test_other_type_is_unknown(self) -> None:
        outcome = classify_reply("8.8.8.8", self._reply("10.0.0.1", 5), 0.0)

        assert outcome.status == ProbeStatus.UNKNOWN


class TestScapyProber:
    """ScapyProber runs the blocking send in an executor."""

    def test_send_result_is_returned(self) -> None:
        expected = ProbeOutcome.success("10.0.0.1", 2.0)
        with patch.object(ScapyProber, "_send", return_value=expected):
            outcome = asyncio.run(ScapyProber().probe("10.0.0.1", ProbeConfiguration()))

        assert outcome is expected

    def test_permission_error_raises_ping_failed(self) -> None:
        with patch.object(ScapyProber, "_send", side_effect=PermissionError(1, "nope")):
            with pytest.raises(PingFailed, match="run as root"):
                asyncio.run(ScapyProber().probe("10.0.0.1", ProbeConfiguration()))

    def test_bad_destination(self) -> None:
        with patch.object(ScapyProber, "_send") as mock_send:
            outcome = asyncio.run(ScapyProber().probe("not-an-ip", ProbeConfiguration()))

        assert outcome.status == ProbeStatus.BAD_DESTINATION
        mock_send.assert_not_called()

    @patch("netan.probes.icmp.os.geteuid", return_value=1000, create=True)
    def test_unprivileged_is_unavailable(self, _geteuid: MagicMock) -> None:
        assert ScapyProber().available is False

    @patch("netan.probes.icmp.os.geteuid", return_value=0, create=True)
    def test_root_is_available(self, _geteuid: MagicMock) -> None:
        assert ScapyProber().available is True
