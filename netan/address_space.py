"""CIDR parsing and subnet derivation for IPv4 address ranges."""

import logging

from netan.errors import InvalidNetworkRange
from netan.models import AddressRange, address_to_ordinal

logger = logging.getLogger(__name__)

_FULL_MASK = 0xFFFFFFFF


def _prefix_mask(prefix: int) -> int:
    """Return the 32-bit mask with the top *prefix* bits set."""
    return (_FULL_MASK << (32 - prefix)) & _FULL_MASK


def parse_cidr(text: str) -> AddressRange:
    """Parse ``a.b.c.d/p`` into the closed range it denotes.

    The network start is the address with all host bits cleared, the end
    is the start with all host bits set.  ``/32`` is a single address and
    ``/0`` covers the whole IPv4 space.

    Args:
        text: CIDR notation such as ``"192.168.1.0/24"``.

    Returns:
        The ``AddressRange`` covered by *text*.

    Raises:
        InvalidNetworkRange: If *text* is not ``<ipv4>/<0..32>``.  The
            error carries *text* unchanged and the reason.
    """
    if not isinstance(text, str) or not text:
        raise InvalidNetworkRange(str(text or ""), "Invalid CIDR format")

    parts = text.split("/")
    if len(parts) != 2:
        raise InvalidNetworkRange(text, "Invalid CIDR format")

    address_text, prefix_text = parts

    try:
        ordinal = address_to_ordinal(address_text)
    except ValueError as exc:
        raise InvalidNetworkRange(text, f"Invalid IP address: {exc}") from exc

    # ASCII digits only: no sign, underscore, whitespace or other scripts.
    if not (prefix_text.isascii() and prefix_text.isdigit()):
        raise InvalidNetworkRange(text, f"Invalid prefix length: {prefix_text!r}")

    prefix = int(prefix_text)
    if prefix > 32:
        raise InvalidNetworkRange(text, f"Invalid prefix length: {prefix}")

    mask = _prefix_mask(prefix)
    start = ordinal & mask
    end = start | (~mask & _FULL_MASK)
    return AddressRange(start=start, end=end)


def subnet_from_address(address: str, netmask: str | None) -> AddressRange:
    """Derive the subnet containing *address* from its dotted *netmask*.

    Uses the same mask/OR construction as ``parse_cidr``: the network is
    ``address & mask`` and the broadcast is ``address | ~mask``.

    Raises:
        InvalidNetworkRange: If no mask is available or either value is
            not a valid IPv4 address.  The error carries *address*.
    """
    if not netmask:
        raise InvalidNetworkRange(address, "No subnet mask available")

    try:
        ordinal = address_to_ordinal(address)
        mask = address_to_ordinal(netmask)
    except ValueError as exc:
        raise InvalidNetworkRange(address, str(exc)) from exc

    start = ordinal & mask
    end = ordinal | (~mask & _FULL_MASK)
    logger.debug(
        "Subnet for %s/%s: %d address(es)", address, netmask, end - start + 1
    )
    return AddressRange(start=start, end=end)
