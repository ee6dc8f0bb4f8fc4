"""Network error taxonomy: the closed set of failures the engine reports."""


class NetworkError(Exception):
    """Base class for every failure surfaced by the analysis engine.

    Subclasses carry just enough context to render a one-line message via
    ``message`` (also the ``str()`` of the exception).
    """

    @property
    def message(self) -> str:
        return str(self)


class PingFailed(NetworkError):
    """A single probe could not be sent or its reply could not be read."""

    def __init__(self, target: str, reason: str) -> None:
        self.target = target
        self.reason = reason
        super().__init__(f"Ping to {target} failed: {reason}")


class BatchPingFailed(NetworkError):
    """A sweep could not be run at all (e.g. a bad concurrency limit)."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Batch ping operation failed: {reason}")


class TraceRouteFailed(NetworkError):
    def __init__(self, target: str, reason: str) -> None:
        self.target = target
        self.reason = reason
        super().__init__(f"Trace route to {target} failed: {reason}")


class NetworkDiscoveryFailed(NetworkError):
    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Network discovery failed: {reason}")


class DnsResolutionFailed(NetworkError):
    def __init__(self, hostname: str, reason: str) -> None:
        self.hostname = hostname
        self.reason = reason
        super().__init__(f"DNS resolution for {hostname} failed: {reason}")


class NetworkInterfaceError(NetworkError):
    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Network interface error: {reason}")


class InvalidNetworkRange(NetworkError):
    """CIDR text (or an address/mask pair) that does not describe a range."""

    def __init__(self, raw_input: str, reason: str) -> None:
        self.raw_input = raw_input
        self.reason = reason
        super().__init__(f"Invalid network range '{raw_input}': {reason}")
