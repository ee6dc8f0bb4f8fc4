"""DNS helpers: forward resolution of targets and reverse hostname lookup."""

import asyncio
import logging
import socket

from netan.errors import DnsResolutionFailed

logger = logging.getLogger(__name__)


def resolve_ipv4(hostname: str) -> list[str]:
    """Resolve a hostname to its IPv4 addresses.

    Wraps ``socket.getaddrinfo`` and returns the deduplicated A records
    in the order the resolver returned them.  A literal IPv4 address
    resolves to itself.

    Args:
        hostname: The name to resolve (e.g. ``"example.com"``).

    Returns:
        A non-empty, deduplicated list of dotted-quad strings.

    Raises:
        DnsResolutionFailed: If resolution fails or yields no IPv4 address.
    """
    logger.debug("Resolving %s", hostname)

    try:
        results = socket.getaddrinfo(
            hostname,
            0,
            family=socket.AF_INET,
            type=socket.SOCK_STREAM,
        )
    except (socket.gaierror, UnicodeError) as exc:
        raise DnsResolutionFailed(hostname, str(exc)) from exc

    seen: set[str] = set()
    out: list[str] = []
    for _family, _type, _proto, _canonname, sockaddr in results:
        ip = sockaddr[0]
        if ip not in seen:
            seen.add(ip)
            out.append(ip)

    if not out:
        raise DnsResolutionFailed(hostname, "no IPv4 address found")

    logger.debug("Resolved %s → %d unique address(es)", hostname, len(out))
    return out


async def reverse_lookup(address: str, timeout: float = 1.0) -> str | None:
    """Best-effort reverse DNS lookup of *address*.

    The blocking ``socket.gethostbyaddr`` call runs in the default
    executor and is bounded by *timeout*.

    Returns:
        The host name, or ``None`` when the lookup fails or times out.
    """
    loop = asyncio.get_running_loop()
    try:
        hostname, _, _ = await asyncio.wait_for(
            loop.run_in_executor(None, socket.gethostbyaddr, address),
            timeout=timeout,
        )
    except TimeoutError:
        logger.debug("DNS lookup timeout for %s", address)
        return None
    except (socket.herror, socket.gaierror):
        return None  # No reverse DNS
    except OSError as exc:
        logger.debug("DNS lookup error for %s: %s", address, exc)
        return None

    return hostname or None
