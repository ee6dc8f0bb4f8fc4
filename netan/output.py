"""Output renderer: rich tables, JSON, CSV and Markdown formatters."""

import csv
import json
import logging
import sys
from io import StringIO

from rich.console import Console
from rich.table import Table

from netan.models import (
    Device,
    NetworkAnalysisResult,
    PingSummary,
    ProbeOutcome,
    address_to_ordinal,
)

logger = logging.getLogger(__name__)

FORMATS = ("table", "json", "csv", "markdown")

_CSV_HEADER = [
    "IP Address",
    "Host Name",
    "MAC Address",
    "Is Reachable",
    "Latency (ms)",
    "Device Type",
    "Ping Status",
]


def render(
    result: NetworkAnalysisResult,
    fmt: str,
    *,
    file: object | None = None,
    width: int | None = None,
) -> None:
    """Dispatch an analysis result to the appropriate formatter.

    Args:
        result: Analysis result to render.
        fmt: One of ``FORMATS``.
        file: Writable file object for output (default: ``sys.stdout``).
        width: Explicit console width for tables (default: auto-detect).

    Raises:
        ValueError: If *fmt* is unknown.
    """
    out = file or sys.stdout
    if fmt == "table":
        render_table(result, file=out, width=width)
    elif fmt == "json":
        _write_json(analysis_to_dict(result), out)
    elif fmt == "csv":
        _write_csv([_device_row(d) for d in result.devices], out)
    elif fmt == "markdown":
        out.write(_analysis_markdown(result))  # type: ignore[union-attr]
    else:
        raise ValueError(f"Unknown output format: {fmt!r}")


def render_device(
    device: Device,
    fmt: str,
    *,
    file: object | None = None,
    width: int | None = None,
) -> None:
    """Render a single-device summary in any of ``FORMATS``."""
    out = file or sys.stdout
    if fmt == "table":
        console = Console(file=out, highlight=False, width=width)
        console.print(f"[bold]Device: {device.display_name}[/bold]")
        t = Table(show_header=False)
        t.add_column("Field")
        t.add_column("Value")
        t.add_row("Status", "Online" if device.is_reachable else "Offline")
        if device.latency_ms is not None:
            t.add_row("Latency", _fmt_latency(device.latency_ms))
        if device.mac_address:
            t.add_row("MAC Address", device.mac_address)
        t.add_row("Device Type", device.device_type.value)
        if device.status is not None:
            t.add_row("Ping Status", device.status.value)
        console.print(t)
    elif fmt == "json":
        _write_json(device_to_dict(device), out)
    elif fmt == "csv":
        _write_csv([_device_row(device)], out)
    elif fmt == "markdown":
        out.write(_device_markdown(device))  # type: ignore[union-attr]
    else:
        raise ValueError(f"Unknown output format: {fmt!r}")


def render_trace(
    target: str,
    hops: tuple[str, ...],
    fmt: str,
    *,
    file: object | None = None,
    width: int | None = None,
) -> None:
    """Render trace-route hops as a table or JSON."""
    out = file or sys.stdout
    if fmt == "table":
        console = Console(file=out, highlight=False, width=width)
        if not hops:
            console.print(f"Trace route to {target}: no route found to target.")
            return
        console.print(f"[bold]Trace route to {target}[/bold]")
        t = Table()
        t.add_column("Hop", justify="right")
        t.add_column("Address")
        for index, hop in enumerate(hops, start=1):
            t.add_row(f"{index:02d}", hop)
        console.print(t)
    elif fmt == "json":
        _write_json({"target": target, "hops": list(hops)}, out)
    else:
        raise ValueError(f"Unknown output format for trace: {fmt!r}")


def render_pings(
    target: str,
    outcomes: tuple[ProbeOutcome, ...],
    summary: PingSummary,
    fmt: str,
    *,
    file: object | None = None,
    width: int | None = None,
) -> None:
    """Render a continuous ping series and its summary."""
    out = file or sys.stdout
    if fmt == "table":
        console = Console(file=out, highlight=False, width=width)
        t = Table(title=f"Ping {target}")
        t.add_column("#", justify="right")
        t.add_column("")
        t.add_column("Target")
        t.add_column("Latency", justify="right")
        t.add_column("Status")
        for index, outcome in enumerate(outcomes, start=1):
            t.add_row(
                f"{index:02d}",
                "✓" if outcome.succeeded else "✗",
                outcome.target,
                _fmt_latency(outcome.latency_ms) if outcome.succeeded else "Failed",
                outcome.status.value,
            )
        console.print(t)
        console.print(
            f"  Packets: sent = {summary.sent}, received = {summary.received}, "
            f"lost = {summary.lost} ({summary.loss_rate:.1f}% loss)"
        )
        if summary.received:
            console.print(
                f"  Round trip: min = {_fmt_latency(summary.min_latency_ms)}, "
                f"avg = {_fmt_latency(summary.average_latency_ms)}, "
                f"max = {_fmt_latency(summary.max_latency_ms)}"
            )
    elif fmt == "json":
        payload = {
            "target": target,
            "pings": [_outcome_to_dict(o) for o in outcomes],
            "summary": {
                "sent": summary.sent,
                "received": summary.received,
                "lost": summary.lost,
                "loss_rate": summary.loss_rate,
                "average_latency_ms": summary.average_latency_ms,
                "min_latency_ms": summary.min_latency_ms,
                "max_latency_ms": summary.max_latency_ms,
            },
        }
        _write_json(payload, out)
    else:
        raise ValueError(f"Unknown output format for ping: {fmt!r}")


# ---------------------------------------------------------------------------
# Table (rich) formatter
# ---------------------------------------------------------------------------


def render_table(
    result: NetworkAnalysisResult,
    *,
    file: object | None = None,
    width: int | None = None,
) -> None:
    """Render an analysis result as ``rich`` tables.

    Sections: statistics, network interfaces, discovered devices (ordered
    by device type, then address) and, when present, trace-route hops.
    """
    out = file or sys.stdout
    console = Console(file=out, highlight=False, width=width)
    stats = result.statistics

    console.print("[bold]Network Analysis Report[/bold]")
    console.print(
        f"  Analysis date: {result.started_at:%Y-%m-%d %H:%M:%S} UTC, "
        f"duration: {result.duration_seconds:.2f} seconds"
    )
    if result.target_ranges:
        console.print(f"  Ranges: {', '.join(result.target_ranges)}")

    t = Table(title="Analysis statistics")
    t.add_column("Metric")
    t.add_column("Value", justify="right")
    for label, value in _statistics_rows(result):
        t.add_row(label, value)
    console.print(t)

    if result.interfaces:
        t = Table(title="Network interfaces")
        t.add_column("Name")
        t.add_column("Kind")
        t.add_column("Status")
        t.add_column("Speed", justify="right")
        t.add_column("Addresses")
        for iface in result.interfaces:
            t.add_row(
                iface.name,
                iface.kind,
                "Up" if iface.is_up else "Down",
                f"{iface.speed_mbps} Mbps",
                ", ".join(
                    f"{a.address}/{a.netmask}" if a.netmask else a.address
                    for a in iface.addresses
                )
                or "—",
            )
        console.print(t)

    t = Table(title=f"Discovered devices ({stats.active})")
    t.add_column("")
    t.add_column("IP")
    t.add_column("Host")
    t.add_column("Type")
    t.add_column("Latency", justify="right")
    t.add_column("Status")
    for device in _sorted_by_type(result.devices):
        t.add_row(
            "✓" if device.is_reachable else "✗",
            device.ip_address,
            _fmt(device.host_name),
            device.device_type.value,
            _fmt_latency(device.latency_ms),
            _fmt(device.status.value if device.status else None),
        )
    console.print(t)

    if result.trace_route is not None:
        t = Table(title="Trace route")
        t.add_column("Hop", justify="right")
        t.add_column("Address")
        for index, hop in enumerate(result.trace_route, start=1):
            t.add_row(f"{index:02d}", hop)
        console.print(t)


# ---------------------------------------------------------------------------
# Markdown formatter
# ---------------------------------------------------------------------------


def _analysis_markdown(result: NetworkAnalysisResult) -> str:
    lines = [
        "# Network Analysis Report",
        "",
        f"**Analysis Date:** {result.started_at:%Y-%m-%d %H:%M:%S} UTC  ",
        f"**Duration:** {result.duration_seconds:.2f} seconds",
        "",
        "## Analysis Statistics",
        "",
        "| Metric | Value |",
        "| --- | --- |",
    ]
    lines += [f"| {label} | {value} |" for label, value in _statistics_rows(result)]
    lines += [
        "",
        "## Discovered Devices",
        "",
        "| IP Address | Host Name | Status | Latency | Device Type |",
        "| --- | --- | --- | --- | --- |",
    ]
    for device in sorted(result.devices, key=lambda d: _ip_key(d.ip_address)):
        status = "Online" if device.is_reachable else "Offline"
        latency = _fmt_latency(device.latency_ms, missing="-")
        lines.append(
            f"| {device.ip_address} | {device.host_name or '-'} | {status} "
            f"| {latency} | {device.device_type.value} |"
        )
    if result.trace_route is not None:
        lines += ["", "## Trace Route", ""]
        lines += [f"{i}. {hop}" for i, hop in enumerate(result.trace_route, start=1)]
    return "\n".join(lines) + "\n"


def _device_markdown(device: Device) -> str:
    lines = [
        f"## Device: {device.display_name}",
        "",
        f"**Status:** {'Online' if device.is_reachable else 'Offline'}  ",
    ]
    if device.latency_ms is not None:
        lines.append(f"**Latency:** {_fmt_latency(device.latency_ms)}  ")
    if device.mac_address:
        lines.append(f"**MAC Address:** {device.mac_address}  ")
    lines.append(f"**Device Type:** {device.device_type.value}  ")
    if device.status is not None:
        lines.append(f"**Ping Status:** {device.status.value}  ")
    return "\n".join(lines) + "\n"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def analysis_to_dict(result: NetworkAnalysisResult) -> dict:
    """Convert a ``NetworkAnalysisResult`` to a JSON-ready dict."""
    stats = result.statistics
    return {
        "started_at": result.started_at.isoformat(),
        "duration_seconds": result.duration_seconds,
        "target_ranges": list(result.target_ranges),
        "statistics": {
            "total_scanned": stats.total_scanned,
            "active": stats.active,
            "inactive": stats.inactive,
            "success_rate": stats.success_rate,
            "average_latency_ms": stats.average_latency_ms,
            "min_latency_ms": stats.min_latency_ms,
            "max_latency_ms": stats.max_latency_ms,
        },
        "interfaces": [
            {
                "name": iface.name,
                "kind": iface.kind,
                "is_up": iface.is_up,
                "speed_mbps": iface.speed_mbps,
                "mtu": iface.mtu,
                "mac_address": iface.mac_address,
                "addresses": [
                    {"address": a.address, "netmask": a.netmask}
                    for a in iface.addresses
                ],
            }
            for iface in result.interfaces
        ],
        "devices": [device_to_dict(d) for d in result.devices],
        "trace_route": list(result.trace_route) if result.trace_route is not None else None,
    }


def device_to_dict(device: Device) -> dict:
    return {
        "ip_address": device.ip_address,
        "host_name": device.host_name,
        "mac_address": device.mac_address,
        "is_reachable": device.is_reachable,
        "latency_ms": device.latency_ms,
        "status": device.status.value if device.status else None,
        "device_type": device.device_type.value,
    }


def _outcome_to_dict(outcome: ProbeOutcome) -> dict:
    return {
        "target": outcome.target,
        "succeeded": outcome.succeeded,
        "latency_ms": outcome.latency_ms,
        "status": outcome.status.value,
        "observed_at": outcome.observed_at.isoformat(),
        "responder": outcome.responder,
    }


def _statistics_rows(result: NetworkAnalysisResult) -> list[tuple[str, str]]:
    stats = result.statistics
    return [
        ("Total Addresses Scanned", str(stats.total_scanned)),
        ("Active Devices", str(stats.active)),
        ("Inactive Devices", str(stats.inactive)),
        ("Success Rate", f"{stats.success_rate:.1f}%"),
        ("Average Latency", _fmt_latency(stats.average_latency_ms)),
        ("Min Latency", _fmt_latency(stats.min_latency_ms)),
        ("Max Latency", _fmt_latency(stats.max_latency_ms)),
    ]


def _device_row(device: Device) -> list[str]:
    return [
        device.ip_address,
        device.host_name or "",
        device.mac_address or "",
        str(device.is_reachable),
        f"{device.latency_ms:.1f}" if device.latency_ms is not None else "",
        device.device_type.value,
        device.status.value if device.status else "",
    ]


def _write_json(payload: dict, out: object) -> None:
    json.dump(payload, out, indent=2, default=str)  # type: ignore[arg-type]
    out.write("\n")  # type: ignore[union-attr]


def _write_csv(rows: list[list[str]], out: object) -> None:
    writer = csv.writer(out, lineterminator="\n")  # type: ignore[arg-type]
    writer.writerow(_CSV_HEADER)
    writer.writerows(rows)


def _sorted_by_type(devices: tuple[Device, ...]) -> list[Device]:
    return sorted(devices, key=lambda d: (d.device_type.value, _ip_key(d.ip_address)))


def _ip_key(address: str) -> int:
    try:
        return address_to_ordinal(address)
    except ValueError:
        return -1


def _fmt_latency(value: float | None, missing: str = "—") -> str:
    if value is None:
        return missing
    return f"{value:.1f} ms"


def _fmt(value: object) -> str:
    """Format a field value for table display.

    ``None`` becomes ``"—"``, everything else is stringified.
    """
    if value is None:
        return "—"
    return str(value)


def render_to_string(result: NetworkAnalysisResult, fmt: str, *, width: int = 200) -> str:
    """Render to a string instead of stdout, for tests and exports.

    Args:
        result: Analysis result to render.
        fmt: One of ``FORMATS``.
        width: Console width for table rendering (default: 200).

    Returns:
        The rendered output as a string.
    """
    buf = StringIO()
    render(result, fmt, file=buf, width=width)
    return buf.getvalue()
