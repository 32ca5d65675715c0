"""URL safety checks for outbound requests (SSRF prevention).

Feed URLs come from users and from OPML uploads, so before the server
dereferences one it must confirm the destination is a public host on a
standard web port. Checks:

1. Scheme is http or https.
2. Port is absent or the scheme default (80 / 443).
3. Literal IP hosts are checked against private and reserved ranges.
4. Local hostnames (localhost, *.local, *.localhost) are refused outright.
5. Everything else is resolved, and every resolved address must be public.

Resolution is repeated on every call; results are never cached.
"""

import ipaddress
import logging
import socket
from typing import Union
from urllib.parse import urlsplit

logger = logging.getLogger(__name__)

_PRIVATE_IPV4_NETWORKS = tuple(
    ipaddress.IPv4Network(cidr)
    for cidr in (
        "10.0.0.0/8",
        "172.16.0.0/12",
        "192.168.0.0/16",
        "127.0.0.0/8",  # loopback
        "169.254.0.0/16",  # link-local, cloud metadata
        "0.0.0.0/8",
        "100.64.0.0/10",  # shared address space (carrier NAT)
        "192.0.0.0/24",  # IETF protocol assignments
        "192.0.2.0/24",  # TEST-NET-1
        "198.51.100.0/24",  # TEST-NET-2
        "203.0.113.0/24",  # TEST-NET-3
        "224.0.0.0/4",  # multicast
        "240.0.0.0/4",  # reserved, includes broadcast
    )
)

_PRIVATE_IPV6_NETWORKS = tuple(
    ipaddress.IPv6Network(cidr)
    for cidr in (
        "::1/128",
        "::/128",
        "fc00::/7",  # unique local
        "fe80::/10",  # link-local
        "100::/64",  # discard prefix
        "2001:db8::/32",  # documentation
        "2001::/32",  # Teredo
    )
)

_DEFAULT_PORTS = {"http": 80, "https": 443}

_LOCAL_HOSTNAME_SUFFIXES = (".local", ".localhost")


def is_private_address(ip: Union[str, ipaddress.IPv4Address, ipaddress.IPv6Address]) -> bool:
    """Return True if an IP literal falls in a private, loopback or reserved range.

    IPv4-mapped IPv6 addresses (``::ffff:a.b.c.d``) are judged by their
    embedded IPv4 address. A value that is not an IP literal returns False;
    callers are expected to pass validated addresses.
    """
    try:
        address = ipaddress.ip_address(ip)
    except ValueError:
        return False

    if address.version == 4:
        return any(address in network for network in _PRIVATE_IPV4_NETWORKS)

    if address.ipv4_mapped is not None:
        return is_private_address(address.ipv4_mapped)

    return any(address in network for network in _PRIVATE_IPV6_NETWORKS)


def _is_ip_literal(host: str) -> bool:
    try:
        ipaddress.ip_address(host)
    except ValueError:
        return False
    return True


def is_safe_url(url: str) -> bool:
    """
    Decide whether a URL may be fetched by the server.

    Never raises: anything that cannot be parsed or verified is treated as unsafe.

    Parameters:
        url (str): Candidate absolute URL.

    Returns:
        bool: True only if the scheme, port, and every address the host resolves to are acceptable.
    """
    try:
        parts = urlsplit(url)
        scheme = parts.scheme.lower()
        if scheme not in _DEFAULT_PORTS:
            logger.debug(f"Rejected URL with scheme {scheme!r}: {url}")
            return False

        # .port raises ValueError for non-numeric or out-of-range ports
        port = parts.port
        if port is not None and port != _DEFAULT_PORTS[scheme]:
            logger.debug(f"Rejected URL with non-standard port {port}: {url}")
            return False

        # .hostname is lower-cased and has IPv6 brackets removed
        hostname = parts.hostname
    except ValueError:
        return False

    if not hostname:
        return False
    hostname = hostname.strip("[]")

    if _is_ip_literal(hostname):
        return not is_private_address(hostname)

    if hostname == "localhost" or hostname.endswith(_LOCAL_HOSTNAME_SUFFIXES):
        logger.debug(f"Rejected local hostname: {hostname}")
        return False

    try:
        infos = socket.getaddrinfo(hostname, None, proto=socket.IPPROTO_TCP)
    except (socket.gaierror, UnicodeError, OSError) as e:
        # Unable to verify the destination: fail closed
        logger.debug(f"DNS resolution failed for {hostname}: {e}")
        return False

    if not infos:
        return False

    for _family, _type, _proto, _canonname, sockaddr in infos:
        resolved_ip = sockaddr[0]
        if is_private_address(resolved_ip):
            logger.warning(f"Hostname {hostname} resolves to private address {resolved_ip}")
            return False

    return True
