"""CLI entry point for the netan tool."""

import asyncio
import dataclasses
import functools
import logging
import sys
from collections.abc import Callable

import click

from netan.aggregator import summarize_pings
from netan.config import ConfigError, NetanConfig, load_config, validate_config
from netan.dns import resolve_ipv4, reverse_lookup
from netan.engine import (
    AnalysisOptions,
    analyze_range,
    analyze_single_host,
    continuous_ping,
    trace,
)
from netan.errors import NetworkError
from netan.output import FORMATS, render, render_device, render_pings, render_trace
from netan.probes import Prober, get_prober, is_probeable, registered_probers

logger = logging.getLogger(__name__)

SERIES_FORMATS = ("table", "json")

_LOG_LEVELS = {0: logging.WARNING, 1: logging.INFO}


def _fail(message: object) -> None:
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


# ---------------------------------------------------------------------------
# Shared options
# ---------------------------------------------------------------------------


def _format_option(choices: tuple[str, ...]) -> Callable:
    return click.option(
        "--format",
        "-f",
        "output_format",
        default="table",
        type=click.Choice(choices, case_sensitive=False),
        show_default=True,
        help="Output format.",
    )


_output_option = click.option(
    "--output",
    "-o",
    "output_path",
    default=None,
    type=click.Path(dir_okay=False, writable=True),
    help="Write the report to FILE instead of stdout.",
)

_prober_option = click.option(
    "--prober",
    default=None,
    type=click.Choice(registered_probers(), case_sensitive=False),
    help="Probe backend (default: from config, else 'system').",
)


def _sweep_options(func: Callable) -> Callable:
    """Options shared by the ``scan`` and ``local`` commands."""
    func = click.option(
        "--deadline",
        default=None,
        type=float,
        help="Wall-clock budget for sweeping all ranges, in seconds.",
    )(func)
    func = click.option(
        "--trace/--no-trace",
        "include_trace",
        default=None,
        help="Trace the route to the first discovered device.",
    )(func)
    func = click.option(
        "--concurrency",
        default=None,
        type=int,
        help="Maximum number of probes in flight.",
    )(func)
    func = _prober_option(func)
    func = _output_option(func)
    func = _format_option(FORMATS)(func)
    return func


# ---------------------------------------------------------------------------
# Group
# ---------------------------------------------------------------------------


@click.group()
@click.option(
    "--config",
    "-c",
    "config_path",
    default=None,
    type=click.Path(exists=False),
    help="Path to YAML config file (default: ~/.netan/config.yaml).",
)
@click.option(
    "--verbose",
    "-v",
    count=True,
    help="Increase log verbosity (-v for info, -vv for debug).",
)
@click.pass_context
def main(ctx: click.Context, config_path: str | None, verbose: int) -> None:
    """Discover devices, ping hosts and trace routes on IPv4 networks."""
    logging.basicConfig(
        level=_LOG_LEVELS.get(verbose, logging.DEBUG),
        format="%(levelname)s: %(message)s",
    )

    try:
        cfg = load_config(config_path)
    except (ConfigError, FileNotFoundError) as exc:
        _fail(exc)

    logger.debug("Config loaded: %s", cfg)
    ctx.obj = cfg


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@main.command()
@click.argument("cidr")
@_sweep_options
@click.pass_obj
def scan(
    cfg: NetanConfig,
    cidr: str,
    output_format: str,
    output_path: str | None,
    prober: str | None,
    concurrency: int | None,
    include_trace: bool | None,
    deadline: float | None,
) -> None:
    """Sweep the network given in CIDR notation, e.g. 192.168.1.0/24."""
    cfg = _apply_overrides(
        cfg,
        prober=prober,
        max_concurrency=concurrency,
        include_trace_route=include_trace,
        sweep_deadline_seconds=deadline,
    )
    _run_analysis(cfg, cidr, output_format, output_path)


@main.command()
@_sweep_options
@click.pass_obj
def local(
    cfg: NetanConfig,
    output_format: str,
    output_path: str | None,
    prober: str | None,
    concurrency: int | None,
    include_trace: bool | None,
    deadline: float | None,
) -> None:
    """Sweep the subnets of every active local interface."""
    cfg = _apply_overrides(
        cfg,
        prober=prober,
        max_concurrency=concurrency,
        include_trace_route=include_trace,
        sweep_deadline_seconds=deadline,
    )
    _run_analysis(cfg, None, output_format, output_path)


@main.command()
@click.argument("target")
@_format_option(FORMATS)
@_output_option
@_prober_option
@click.pass_obj
def host(
    cfg: NetanConfig,
    target: str,
    output_format: str,
    output_path: str | None,
    prober: str | None,
) -> None:
    """Probe a single host and show what is known about it."""
    cfg = _apply_overrides(cfg, prober=prober)
    address = _resolve_target(target)
    device = _run(
        analyze_single_host(
            address,
            cfg.probe_config(),
            prober=_make_prober(cfg),
            resolver=_make_resolver(cfg),
        )
    )
    _emit(
        functools.partial(render_device, device, output_format.lower()),
        output_path,
    )


@main.command()
@click.argument("target")
@click.option(
    "--count",
    "-n",
    default=4,
    show_default=True,
    type=click.IntRange(min=1),
    help="Number of echo requests to send.",
)
@click.option(
    "--interval",
    "-i",
    default=1.0,
    show_default=True,
    type=click.FloatRange(min=0),
    help="Seconds to wait between echo requests.",
)
@_format_option(SERIES_FORMATS)
@_output_option
@_prober_option
@click.pass_obj
def ping(
    cfg: NetanConfig,
    target: str,
    count: int,
    interval: float,
    output_format: str,
    output_path: str | None,
    prober: str | None,
) -> None:
    """Ping TARGET repeatedly and summarise packet loss and latency."""
    cfg = _apply_overrides(cfg, prober=prober)
    address = _resolve_target(target)
    outcomes = _run(
        continuous_ping(
            address,
            count,
            interval,
            cfg.probe_config(),
            prober=_make_prober(cfg),
        )
    )
    summary = summarize_pings(outcomes)
    _emit(
        functools.partial(
            render_pings, address, outcomes, summary, output_format.lower()
        ),
        output_path,
    )


@main.command(name="trace")
@click.argument("target")
@click.option(
    "--max-hops",
    default=None,
    type=click.IntRange(min=1),
    help="Maximum number of hops (default: from config, else 30).",
)
@_format_option(SERIES_FORMATS)
@_output_option
@_prober_option
@click.pass_obj
def trace_command(
    cfg: NetanConfig,
    target: str,
    max_hops: int | None,
    output_format: str,
    output_path: str | None,
    prober: str | None,
) -> None:
    """Trace the route to TARGET."""
    cfg = _apply_overrides(cfg, prober=prober, max_hops=max_hops)
    address = _resolve_target(target)
    hops = _run(
        trace(
            address,
            prober=_make_prober(cfg),
            max_hops=cfg.max_hops,
            timeout_ms=cfg.hop_timeout_ms,
        )
    )
    _emit(
        functools.partial(render_trace, address, hops, output_format.lower()),
        output_path,
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run_analysis(
    cfg: NetanConfig,
    target_network: str | None,
    output_format: str,
    output_path: str | None,
) -> None:
    """Run a range analysis and render its result.

    Pipeline: interfaces → sweep → enrich → (trace) → aggregate → render.
    """
    options = AnalysisOptions.from_config(cfg, target_network=target_network)
    result = _run(
        analyze_range(
            options,
            prober=_make_prober(cfg),
            resolver=_make_resolver(cfg),
        )
    )
    _emit(functools.partial(render, result, output_format.lower()), output_path)


def _apply_overrides(cfg: NetanConfig, **overrides: object) -> NetanConfig:
    """Return *cfg* with every non-None override applied and validated."""
    changes = {k: v for k, v in overrides.items() if v is not None}
    if not changes:
        return cfg
    if isinstance(changes.get("prober"), str):
        changes["prober"] = changes["prober"].lower()

    updated = dataclasses.replace(cfg, **changes)
    try:
        validate_config(updated)
    except ConfigError as exc:
        _fail(exc)
    return updated


def _make_prober(cfg: NetanConfig) -> Prober:
    try:
        prober = get_prober(cfg.prober)
    except ValueError as exc:
        _fail(exc)

    if not getattr(prober, "available", True):
        logger.warning(
            "Prober %r may not work here (missing binary or privileges)",
            cfg.prober,
        )
    return prober


def _make_resolver(cfg: NetanConfig) -> Callable:
    return functools.partial(reverse_lookup, timeout=cfg.dns_timeout_seconds)


def _resolve_target(target: str) -> str:
    """Return *target* itself if it is an address, else its first A record."""
    if is_probeable(target):
        return target

    try:
        addresses = resolve_ipv4(target)
    except NetworkError as exc:
        _fail(exc)

    logger.info("Resolved %s to %s", target, addresses[0])
    return addresses[0]


def _run(coro: object) -> object:
    """Drive *coro* to completion, turning network errors into exit 1."""
    try:
        return asyncio.run(coro)  # type: ignore[arg-type]
    except NetworkError as exc:
        _fail(exc)


def _emit(write: Callable, output_path: str | None) -> None:
    """Call ``write(file=...)`` on stdout or on the export file."""
    if output_path is None:
        write(file=sys.stdout)
        return

    try:
        with open(output_path, "w", encoding="utf-8") as fh:
            write(file=fh)
    except OSError as exc:
        _fail(f"cannot write {output_path}: {exc}")

    click.echo(f"Report saved to {output_path}")
