"""
JUNKER Target Resolution

Turns input lines into (url, ip) targets.

Two input formats:
    https://example.com/path          resolved via DNS (A + AAAA)
    93.184.216.34,https://example.com  explicit address (--no-resolve)
"""

import ipaddress
import logging
from typing import Awaitable, Callable, List, Optional, Tuple
from urllib.parse import SplitResult, urlsplit

import dns.asyncresolver
import dns.exception
import dns.resolver

from .errors import InputError

logger = logging.getLogger(__name__)

# name -> list of addresses
Lookup = Callable[[str], Awaitable[List[str]]]

Target = Tuple[SplitResult, str]


def parse_url(raw: str) -> SplitResult:
    """Parse and sanity-check a target URL"""
    try:
        url = urlsplit(raw.strip())
        # Touch the port so malformed ports fail here, not in a worker
        url.port
    except ValueError as e:
        raise InputError(raw, f"invalid URL ({e})") from e
    if url.scheme not in ("http", "https"):
        raise InputError(raw, "unsupported URL scheme")
    if not url.hostname:
        raise InputError(raw, "URL has no host")
    return url


def parse_ip(raw: str) -> str:
    try:
        return str(ipaddress.ip_address(raw.strip()))
    except ValueError as e:
        raise InputError(raw, "invalid IP address") from e


def parse_pair(line: str) -> Target:
    """Parse an ``<ip>,<url>`` line"""
    parts = line.split(",")
    if len(parts) != 2:
        raise InputError(line, "expected <ip>,<url>")
    ip = parse_ip(parts[0])
    return parse_url(parts[1]), ip


class DNSResolver:
    """Async A/AAAA lookup backed by dnspython"""

    RECORD_TYPES = ("A", "AAAA")

    def __init__(self, timeout: float = 5.0):
        self.resolver = dns.asyncresolver.Resolver()
        self.resolver.lifetime = timeout

    async def __call__(self, host: str) -> List[str]:
        addresses: List[str] = []
        for record_type in self.RECORD_TYPES:
            try:
                answer = await self.resolver.resolve(host, record_type)
            except dns.resolver.NXDOMAIN:
                raise
            except dns.exception.DNSException as e:
                logger.debug("%s lookup for %s failed: %s", record_type, host, e)
                continue
            addresses.extend(rdata.to_text() for rdata in answer)
        return addresses


class TargetResolver:
    """
    Maps one input line to its targets.

    With resolution enabled a bare URL yields one target per address of
    its host; IP-literal hosts skip the lookup. With resolution disabled
    each line must be an ``<ip>,<url>`` pair.
    """

    def __init__(self, resolve: bool = True, lookup: Optional[Lookup] = None):
        self.resolve = resolve
        if lookup is None and resolve:
            lookup = DNSResolver()
        self.lookup = lookup

    async def targets(self, line: str) -> List[Target]:
        """Raises InputError when the line is unusable"""
        if not self.resolve:
            return [parse_pair(line)]

        url = parse_url(line)
        try:
            return [(url, str(ipaddress.ip_address(url.hostname)))]
        except ValueError:
            pass

        try:
            addresses = await self.lookup(url.hostname)
        except (dns.exception.DNSException, OSError) as e:
            raise InputError(line, f"failed to resolve {url.hostname} ({e})") from e
        if not addresses:
            raise InputError(line, f"no addresses for {url.hostname}")
        return [(url, ip) for ip in addresses]
