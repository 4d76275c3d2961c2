"""Client IP whitelist matching with CIDR support.

Whitelist entries are either literal IP addresses or CIDR blocks
(``subnet/prefixLength``). A literal entry matches on exact string equality;
a CIDR entry matches when the client address falls inside the network after
masking with the prefix. IPv4 and IPv6 are both accepted; an address never
matches a network of the other family.

Error Handling:
    A malformed client address or whitelist entry never raises to the caller.
    It is logged as a security event and treated as "no match", so a broken
    entry can only narrow access, never widen it.

Dependencies:
    - ipaddress: For address parsing and network containment
    - structlog: For security event logging

Called by:
    - formgate.auth.authorizer: IP check step of the admission decision
"""

import ipaddress
from collections.abc import Sequence
from typing import Optional

import structlog

logger = structlog.get_logger()


def ip_matches(ip: Optional[str], pattern: str) -> bool:
    """Check whether an IP address matches a whitelist entry.

    Args:
        ip: Client address, e.g. "10.0.0.5"
        pattern: Literal address ("1.2.3.4") or CIDR block ("10.0.0.0/24")

    Returns:
        True when the address equals the literal or lies inside the block

    Examples:
        >>> ip_matches("10.0.0.5", "10.0.0.0/24")
        True
        >>> ip_matches("10.0.1.5", "10.0.0.0/24")
        False
        >>> ip_matches("1.2.3.4", "1.2.3.4")
        True
    """
    if not ip or not pattern:
        return False

    ip = ip.strip()
    pattern = pattern.strip()

    if ip == pattern:
        return True

    if "/" not in pattern:
        return False

    try:
        # strict=False masks host bits, e.g. "10.0.0.7/24" behaves as "10.0.0.0/24"
        network = ipaddress.ip_network(pattern, strict=False)
        address = ipaddress.ip_address(ip)
    except ValueError as e:
        logger.warning(
            "Unusable IP whitelist comparison",
            pattern=pattern,
            error=str(e),
            extra={"security_event": True},
        )
        return False

    if address.version != network.version:
        return False
    return address in network


def is_ip_allowed(ip: Optional[str], whitelist: Sequence[str]) -> bool:
    """Check a client address against a whitelist.

    An empty whitelist means unrestricted access.
    """
    if not whitelist:
        return True
    return any(ip_matches(ip, entry) for entry in whitelist)
