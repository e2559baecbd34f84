"""Secure retrieval of remote policy files."""

from __future__ import annotations

import hashlib
import http.client
import ipaddress
import posixpath
import socket
import ssl
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union
from urllib.parse import SplitResult, urlsplit

from .errors import FetchError, IntegrityError, SizeLimitError, TransportRejection
from .logging import get_logger

logger = get_logger("remote")

DEFAULT_TIMEOUT = 30.0
MAX_POLICY_SIZE = 10 * 1024 * 1024
DEFAULT_CHECKSUM_ALGORITHM = "sha256"
CHECKSUM_ALGORITHMS = ("sha256", "sha384", "sha512")

_METADATA_ADDRESSES = frozenset(
    {ipaddress.ip_address("169.254.169.254"), ipaddress.ip_address("fd00:ec2::254")}
)

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]
Resolver = Callable[[str], List[str]]
Transport = Callable[[SplitResult, Sequence[str], float, int], Tuple[int, bytes]]


@dataclass
class FetchedPolicy:
    name: str
    url: str
    content: str
    warnings: List[str] = field(default_factory=list)


def is_blocked_ip(address: Union[str, IPAddress]) -> bool:
    """Return True for addresses a policy fetch must never connect to."""
    try:
        ip = ipaddress.ip_address(address) if isinstance(address, str) else address
    except ValueError:
        return False
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        return is_blocked_ip(ip.ipv4_mapped)
    if ip in _METADATA_ADDRESSES:
        return True
    if ip.is_loopback or ip.is_private or ip.is_link_local or ip.is_unspecified:
        return True
    return ip.is_multicast and _is_link_local_multicast(ip)


def _is_link_local_multicast(ip: IPAddress) -> bool:
    if isinstance(ip, ipaddress.IPv4Address):
        return ip in ipaddress.ip_network("224.0.0.0/24")
    return (ip.packed[1] & 0x0F) == 0x02


def is_blocked_hostname(hostname: str) -> bool:
    return hostname.lower() == "localhost"


def split_host(host: str) -> str:
    """Strip brackets and a port from ``host[:port]``."""
    if host.startswith("["):
        end = host.find("]")
        if end != -1:
            return host[1:end]
    elif host.count(":") == 1:
        return host.rsplit(":", 1)[0]
    return host


def is_blocked_host(host: str) -> bool:
    """Check a URL host (optionally with port) without resolving it."""
    hostname = split_host(host)
    if is_blocked_hostname(hostname):
        return True
    return is_blocked_ip(hostname)


def policy_name_from_url(url: str) -> str:
    """Last path segment when it names a ``.rego`` file, else ``<host>.rego``."""
    try:
        parsed = urlsplit(url)
    except ValueError:
        return url
    name = posixpath.basename(parsed.path.rstrip("/"))
    if not name or not name.endswith(".rego"):
        return f"{parsed.netloc}.rego"
    return name


def verify_checksum(data: bytes, expected: str) -> None:
    """Compare ``data`` against ``[algorithm:]hexdigest``; raise on mismatch."""
    algorithm, _, digest = expected.rpartition(":")
    algorithm = (algorithm or DEFAULT_CHECKSUM_ALGORITHM).lower()
    if algorithm not in CHECKSUM_ALGORITHMS:
        raise IntegrityError(f"unsupported checksum algorithm {algorithm!r}")
    actual = hashlib.new(algorithm, data).hexdigest()
    if actual != digest.strip().lower():
        raise IntegrityError(f"checksum mismatch: expected {digest.strip()}, got {actual}")


def resolve_host(hostname: str) -> List[str]:
    """Resolve ``hostname`` to addresses in resolver order, without duplicates."""
    try:
        infos = socket.getaddrinfo(hostname, None, proto=socket.IPPROTO_TCP)
    except socket.gaierror as exc:
        raise FetchError(f"DNS lookup for {hostname}: {exc}") from exc
    addresses: List[str] = []
    for info in infos:
        address = str(info[4][0])
        if address not in addresses:
            addresses.append(address)
    return addresses


class _PinnedHTTPSConnection(http.client.HTTPSConnection):
    """HTTPS connection that dials only pre-vetted addresses.

    TLS still verifies the certificate against the URL's hostname.
    """

    def __init__(self, host: str, addresses: Sequence[str], port: int, timeout: float) -> None:
        self._tls_context = ssl.create_default_context()
        super().__init__(host, port=port, timeout=timeout, context=self._tls_context)
        self._addresses = list(addresses)

    def connect(self) -> None:
        last_error: Optional[OSError] = None
        for address in self._addresses:
            if is_blocked_ip(address):
                raise TransportRejection(f"blocked IP {address} for host {self.host}")
            try:
                raw = socket.create_connection((address, self.port), self.timeout)
            except OSError as exc:
                last_error = exc
                continue
            try:
                self.sock = self._tls_context.wrap_socket(raw, server_hostname=self.host)
            except OSError:
                raw.close()
                raise
            return
        raise FetchError(f"failed to connect to {self.host}: {last_error}")


def https_transport(parsed: SplitResult, addresses: Sequence[str], timeout: float, limit: int) -> Tuple[int, bytes]:
    """GET ``parsed`` over a pinned connection; return status and at most ``limit`` bytes."""
    hostname = parsed.hostname or ""
    connection = _PinnedHTTPSConnection(hostname, addresses, parsed.port or 443, timeout)
    target = parsed.path or "/"
    if parsed.query:
        target = f"{target}?{parsed.query}"
    try:
        connection.request("GET", target, headers={"User-Agent": "regolint"})
        response = connection.getresponse()
        return response.status, response.read(limit)
    except FetchError:
        raise
    except (OSError, http.client.HTTPException) as exc:
        raise FetchError(f"fetching {parsed.geturl()}: {exc}") from exc
    finally:
        connection.close()


class SecureFetcher:
    """Fetches policy text over HTTPS with SSRF, size and integrity checks.

    Redirects are never followed: any non-200 status is a failure.
    """

    def __init__(
        self,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        max_size: int = MAX_POLICY_SIZE,
        resolver: Resolver | None = None,
        transport: Transport | None = None,
    ) -> None:
        self.timeout = timeout
        self.max_size = max_size
        self._resolver = resolver or resolve_host
        self._transport = transport or https_transport

    def fetch(self, url: str, checksum: str | None = None) -> FetchedPolicy:
        parsed = self._validate_url(url)
        hostname = parsed.hostname or ""
        addresses = self._vetted_addresses(hostname)

        status, body = self._transport(parsed, addresses, self.timeout, self.max_size + 1)
        if status != 200:
            raise FetchError(f"fetching {url}: status {status}")
        if len(body) > self.max_size:
            raise SizeLimitError(f"policy {url} exceeds maximum size of {self.max_size} bytes")

        warnings: List[str] = []
        if checksum:
            try:
                verify_checksum(body, checksum)
            except IntegrityError as exc:
                raise IntegrityError(f"verifying {url}: {exc}") from exc
        else:
            message = f"remote policy {url} has no checksum, integrity not verified"
            logger.warning(message)
            warnings.append(message)

        return FetchedPolicy(
            name=policy_name_from_url(url),
            url=url,
            content=body.decode("utf-8", errors="replace"),
            warnings=warnings,
        )

    def fetch_all(self, remotes: Iterable[object]) -> Dict[str, str]:
        """Fetch every ``(url, checksum)`` remote, stopping at the first failure."""
        policies: Dict[str, str] = {}
        for remote in remotes:
            fetched = self.fetch(getattr(remote, "url"), getattr(remote, "checksum", None) or None)
            policies[fetched.name] = fetched.content
        return policies

    @staticmethod
    def _validate_url(url: str) -> SplitResult:
        try:
            parsed = urlsplit(url)
        except ValueError as exc:
            raise TransportRejection(f"invalid URL {url}: {exc}") from exc
        if parsed.scheme != "https":
            raise TransportRejection(f"insecure URL scheme {parsed.scheme!r}: only https allowed")
        if not parsed.hostname:
            raise TransportRejection(f"invalid URL {url}: missing host")
        if is_blocked_host(parsed.netloc.rpartition("@")[2]):
            raise TransportRejection(
                f"blocked host {parsed.netloc!r}: internal/private addresses not allowed"
            )
        return parsed

    def _vetted_addresses(self, hostname: str) -> List[str]:
        addresses = self._resolver(hostname)
        if not addresses:
            raise FetchError(f"no IP addresses found for {hostname}")
        for address in addresses:
            if is_blocked_ip(address):
                raise TransportRejection(f"blocked IP {address} for host {hostname}")
        return list(addresses)


__all__ = [
    "DEFAULT_TIMEOUT",
    "FetchedPolicy",
    "MAX_POLICY_SIZE",
    "SecureFetcher",
    "https_transport",
    "is_blocked_host",
    "is_blocked_hostname",
    "is_blocked_ip",
    "policy_name_from_url",
    "resolve_host",
    "split_host",
    "verify_checksum",
]
