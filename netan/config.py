"""YAML configuration file loading."""

import logging
from dataclasses import dataclass, fields
from pathlib import Path

import yaml

from netan.models import ProbeConfiguration

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR = Path.home() / ".netan"
DEFAULT_CONFIG_PATH = DEFAULT_CONFIG_DIR / "config.yaml"

PROBER_BACKENDS = ("system", "icmp")


@dataclass
class NetanConfig:
    """Top-level configuration for the netan tool.

    Every field has a default, so the tool runs without a config file.

    Attributes:
        timeout_ms: Per-probe reply timeout in milliseconds.
        packet_size: ICMP payload size in bytes.
        ttl: IP time-to-live used for sweep probes.
        dont_fragment: Whether sweep probes set the DF bit.
        max_concurrency: Maximum number of probes in flight at once.
        include_trace_route: Trace the route to the first discovered
            device after a sweep.
        max_hops: Hop budget for trace route.
        hop_timeout_ms: Per-hop timeout for trace route, in milliseconds.
        prober: Probe backend, ``"system"`` (platform ``ping`` binary) or
            ``"icmp"`` (raw sockets via scapy, needs root).
        dns_timeout_seconds: Timeout for each reverse DNS lookup.
        sweep_deadline_seconds: Wall-clock budget shared by every range
            swept in one analysis, or None for no limit.
    """

    timeout_ms: int = 5000
    packet_size: int = 32
    ttl: int = 64
    dont_fragment: bool = True
    max_concurrency: int = 50
    include_trace_route: bool = False
    max_hops: int = 30
    hop_timeout_ms: int = 5000
    prober: str = "system"
    dns_timeout_seconds: float = 1.0
    sweep_deadline_seconds: float | None = None

    def probe_config(self) -> ProbeConfiguration:
        """Build the ``ProbeConfiguration`` used for sweep probes."""
        return ProbeConfiguration(
            timeout_ms=self.timeout_ms,
            packet_size=self.packet_size,
            ttl=self.ttl,
            dont_fragment=self.dont_fragment,
        )


# YAML keys are the NetanConfig field names.
_CONFIG_KEYS = frozenset(f.name for f in fields(NetanConfig))


def load_config(path: Path | str | None = None) -> NetanConfig:
    """Load configuration from a YAML file.

    Args:
        path: Explicit path to a YAML config file.  If ``None``, the
            default location (``~/.netan/config.yaml``) is tried.  If the
            default file doesn't exist, a ``NetanConfig`` with all defaults
            is returned silently.

    Returns:
        A populated ``NetanConfig`` instance.

    Raises:
        FileNotFoundError: If an explicit *path* was given but doesn't exist.
        ConfigError: If the file contains invalid YAML, has an unexpected
            top-level structure, or holds out-of-range values.
    """
    resolved = _resolve_path(path)

    if resolved is None:
        logger.debug("No config file found; using defaults")
        return NetanConfig()

    logger.debug("Loading config from %s", resolved)
    text = resolved.read_text(encoding="utf-8")

    try:
        raw = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {resolved}: {exc}") from exc

    if raw is None:
        # Empty file: all defaults.
        return NetanConfig()

    if not isinstance(raw, dict):
        raise ConfigError(
            f"Expected a YAML mapping at the top level in {resolved}, "
            f"got {type(raw).__name__}"
        )

    config = _build_config(raw, source=resolved)
    validate_config(config)
    return config


class ConfigError(Exception):
    """Raised when a configuration file is malformed or unreadable."""


def validate_config(config: NetanConfig) -> None:
    """Check types and value ranges that YAML alone cannot express.

    Raises:
        ConfigError: On the first invalid value found.
    """
    positive = ("timeout_ms", "max_concurrency", "max_hops", "hop_timeout_ms")
    for name in positive:
        value = getattr(config, name)
        if not _is_int(value) or value <= 0:
            raise ConfigError(f"{name} must be a positive integer, got {value!r}")

    if not _is_int(config.ttl) or not 1 <= config.ttl <= 255:
        raise ConfigError(f"ttl must be between 1 and 255, got {config.ttl!r}")

    if not _is_int(config.packet_size) or config.packet_size < 0:
        raise ConfigError(
            f"packet_size must be a non-negative integer, got {config.packet_size!r}"
        )

    for name in ("dont_fragment", "include_trace_route"):
        value = getattr(config, name)
        if not isinstance(value, bool):
            raise ConfigError(f"{name} must be true or false, got {value!r}")

    if config.prober not in PROBER_BACKENDS:
        raise ConfigError(
            f"Unknown prober {config.prober!r}. "
            f"Known probers: {', '.join(PROBER_BACKENDS)}"
        )

    if not _is_number(config.dns_timeout_seconds) or config.dns_timeout_seconds <= 0:
        raise ConfigError(
            "dns_timeout_seconds must be a positive number, "
            f"got {config.dns_timeout_seconds!r}"
        )

    deadline = config.sweep_deadline_seconds
    if deadline is not None and (not _is_number(deadline) or deadline <= 0):
        raise ConfigError(
            f"sweep_deadline_seconds must be positive, got {deadline!r}"
        )


# ------------------------------------------------------------------
# Internal helpers
# ------------------------------------------------------------------


def _is_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _resolve_path(path: Path | str | None) -> Path | None:
    """Return a concrete ``Path`` to read, or ``None`` if nothing to read.

    Raises:
        FileNotFoundError: If the caller supplied an explicit path that
            doesn't exist on disk.
    """
    if path is not None:
        p = Path(path).expanduser()
        if not p.is_file():
            raise FileNotFoundError(f"Config file not found: {p}")
        return p

    default = DEFAULT_CONFIG_PATH.expanduser()
    if default.is_file():
        return default
    return None


def _build_config(raw: dict, source: Path) -> NetanConfig:
    """Map raw YAML dict to a ``NetanConfig``, ignoring unknown keys."""
    kwargs = {key: value for key, value in raw.items() if key in _CONFIG_KEYS}

    unknown = set(raw) - _CONFIG_KEYS
    if unknown:
        logger.warning(
            "Ignoring unknown config keys in %s: %s",
            source,
            ", ".join(sorted(str(k) for k in unknown)),
        )

    return NetanConfig(**kwargs)
