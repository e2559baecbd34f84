"""Tests for regolint.remote."""

from __future__ import annotations

import hashlib
from typing import List, Sequence, Tuple

import pytest

from regolint import remote
from regolint.config import RemotePolicy
from regolint.errors import FetchError, IntegrityError, SizeLimitError, TransportRejection
from regolint.remote import (
    MAX_POLICY_SIZE,
    SecureFetcher,
    is_blocked_host,
    is_blocked_ip,
    policy_name_from_url,
    split_host,
    verify_checksum,
)

POLICY = b"package regolint.rules.style.naming\n"


class FakeTransport:
    def __init__(self, status: int = 200, body: bytes = POLICY) -> None:
        self.status = status
        self.body = body
        self.calls: List[Tuple[str, Sequence[str], int]] = []

    def __call__(self, parsed, addresses, timeout, limit):
        self.calls.append((parsed.geturl(), list(addresses), limit))
        return self.status, self.body[:limit]


def _public_resolver(hostname: str) -> List[str]:
    return ["93.184.216.34"]


def _refusing_resolver(hostname: str) -> List[str]:
    raise AssertionError(f"resolver must not be called for {hostname}")


def test_fetch_returns_content_and_pins_resolved_addresses() -> None:
    transport = FakeTransport()
    fetcher = SecureFetcher(resolver=_public_resolver, transport=transport)
    digest = hashlib.sha256(POLICY).hexdigest()

    fetched = fetcher.fetch("https://policies.example.com/style/naming.rego", f"sha256:{digest}")

    assert fetched.name == "naming.rego"
    assert fetched.content == POLICY.decode()
    assert fetched.warnings == []
    assert transport.calls == [
        ("https://policies.example.com/style/naming.rego", ["93.184.216.34"], MAX_POLICY_SIZE + 1)
    ]


def test_missing_checksum_produces_warning() -> None:
    fetcher = SecureFetcher(resolver=_public_resolver, transport=FakeTransport())

    fetched = fetcher.fetch("https://policies.example.com/naming.rego")

    assert fetched.warnings == [
        "remote policy https://policies.example.com/naming.rego has no checksum, integrity not verified"
    ]


@pytest.mark.parametrize(
    "url",
    [
        "http://policies.example.com/naming.rego",
        "file:///etc/passwd",
        "ftp://policies.example.com/naming.rego",
    ],
)
def test_non_https_urls_are_rejected_before_resolution(url: str) -> None:
    fetcher = SecureFetcher(resolver=_refusing_resolver, transport=FakeTransport())

    with pytest.raises(TransportRejection, match="only https allowed"):
        fetcher.fetch(url)


@pytest.mark.parametrize(
    "url",
    [
        "https://localhost/naming.rego",
        "https://LOCALHOST:8443/naming.rego",
        "https://127.0.0.1/naming.rego",
        "https://10.1.2.3/naming.rego",
        "https://[::1]/naming.rego",
        "https://169.254.169.254/latest/meta-data",
        "https://user@192.168.0.10/naming.rego",
    ],
)
def test_internal_hosts_are_rejected_before_resolution(url: str) -> None:
    fetcher = SecureFetcher(resolver=_refusing_resolver, transport=FakeTransport())

    with pytest.raises(TransportRejection, match="blocked host"):
        fetcher.fetch(url)


def test_hostnames_resolving_to_internal_addresses_are_rejected() -> None:
    transport = FakeTransport()
    fetcher = SecureFetcher(resolver=lambda host: ["93.184.216.34", "10.0.0.8"], transport=transport)

    with pytest.raises(TransportRejection, match="blocked IP 10.0.0.8"):
        fetcher.fetch("https://rebind.example.com/naming.rego")
    assert transport.calls == []


def test_empty_resolution_fails() -> None:
    fetcher = SecureFetcher(resolver=lambda host: [], transport=FakeTransport())

    with pytest.raises(FetchError, match="no IP addresses found"):
        fetcher.fetch("https://policies.example.com/naming.rego")


@pytest.mark.parametrize("status", [301, 404, 500])
def test_non_200_status_fails(status: int) -> None:
    fetcher = SecureFetcher(resolver=_public_resolver, transport=FakeTransport(status=status))

    with pytest.raises(FetchError, match=f"status {status}"):
        fetcher.fetch("https://policies.example.com/naming.rego")


def test_oversized_bodies_are_rejected() -> None:
    transport = FakeTransport(body=b"x" * 64)
    fetcher = SecureFetcher(max_size=16, resolver=_public_resolver, transport=transport)

    with pytest.raises(SizeLimitError, match="exceeds maximum size of 16 bytes"):
        fetcher.fetch("https://policies.example.com/naming.rego")
    assert transport.calls[0][2] == 17


def test_body_at_size_limit_is_accepted() -> None:
    fetcher = SecureFetcher(max_size=16, resolver=_public_resolver, transport=FakeTransport(body=b"y" * 16))

    assert fetcher.fetch("https://policies.example.com/naming.rego").content == "y" * 16


def test_checksum_mismatch_is_an_integrity_error() -> None:
    fetcher = SecureFetcher(resolver=_public_resolver, transport=FakeTransport())

    with pytest.raises(IntegrityError, match="verifying https://policies.example.com/naming.rego"):
        fetcher.fetch("https://policies.example.com/naming.rego", "sha256:" + "0" * 64)


def test_fetch_all_keys_policies_by_name() -> None:
    fetcher = SecureFetcher(resolver=_public_resolver, transport=FakeTransport())

    policies = fetcher.fetch_all(
        [RemotePolicy(url="https://a.example.com/naming.rego"), RemotePolicy(url="https://b.example.com/")]
    )

    assert sorted(policies) == ["b.example.com.rego", "naming.rego"]


@pytest.mark.parametrize(
    "address, expected",
    [
        ("10.0.0.1", True),
        ("172.16.5.4", True),
        ("192.168.1.1", True),
        ("127.0.0.1", True),
        ("0.0.0.0", True),
        ("169.254.169.254", True),
        ("224.0.0.251", True),
        ("::1", True),
        ("fe80::1", True),
        ("ff02::1", True),
        ("fd00:ec2::254", True),
        ("::ffff:10.0.0.1", True),
        ("93.184.216.34", False),
        ("2606:4700:4700::1111", False),
        ("not-an-ip", False),
    ],
)
def test_is_blocked_ip(address: str, expected: bool) -> None:
    assert is_blocked_ip(address) is expected


def test_host_helpers() -> None:
    assert split_host("example.com:443") == "example.com"
    assert split_host("[::1]:8443") == "::1"
    assert split_host("example.com") == "example.com"
    assert is_blocked_host("localhost:8080") is True
    assert is_blocked_host("example.com") is False


@pytest.mark.parametrize(
    "url, expected",
    [
        ("https://example.com/policies/naming.rego", "naming.rego"),
        ("https://example.com/policies/naming.rego?ref=main", "naming.rego"),
        ("https://example.com/policies/", "example.com.rego"),
        ("https://example.com/readme.txt", "example.com.rego"),
        ("https://example.com", "example.com.rego"),
    ],
)
def test_policy_name_from_url(url: str, expected: str) -> None:
    assert policy_name_from_url(url) == expected


def test_verify_checksum_algorithms() -> None:
    verify_checksum(POLICY, hashlib.sha256(POLICY).hexdigest())
    verify_checksum(POLICY, "sha512:" + hashlib.sha512(POLICY).hexdigest())
    verify_checksum(POLICY, "SHA256:" + hashlib.sha256(POLICY).hexdigest().upper())

    with pytest.raises(IntegrityError, match="unsupported checksum algorithm"):
        verify_checksum(POLICY, "md5:" + hashlib.md5(POLICY).hexdigest())
    with pytest.raises(IntegrityError, match="checksum mismatch"):
        verify_checksum(POLICY, "sha256:deadbeef")


class FakeSocket:
    def __init__(self, address: str) -> None:
        self.address = address
        self.closed = False

    def close(self) -> None:
        self.closed = True


class FakeTLSContext:
    def __init__(self) -> None:
        self.wrapped: List[Tuple[str, str]] = []

    def wrap_socket(self, sock: FakeSocket, server_hostname: str) -> FakeSocket:
        self.wrapped.append((sock.address, server_hostname))
        return sock


def _pinned_connection(addresses: Sequence[str]) -> remote._PinnedHTTPSConnection:
    connection = remote._PinnedHTTPSConnection("example.com", addresses, 443, 5.0)
    connection._tls_context = FakeTLSContext()
    return connection


def test_pinned_connection_rejects_blocked_address_without_dialing(monkeypatch) -> None:
    dialed: List[str] = []
    monkeypatch.setattr(
        remote.socket, "create_connection", lambda address, timeout: dialed.append(address[0])
    )

    with pytest.raises(TransportRejection, match="blocked IP 10.0.0.7"):
        _pinned_connection(["10.0.0.7", "93.184.216.34"]).connect()

    assert dialed == []


def test_pinned_connection_tries_addresses_in_order(monkeypatch) -> None:
    dialed: List[str] = []

    def refuse(address, timeout):
        dialed.append(address[0])
        raise ConnectionRefusedError(f"refused {address[0]}")

    monkeypatch.setattr(remote.socket, "create_connection", refuse)

    with pytest.raises(FetchError, match="failed to connect to example.com: refused 93.184.216.35"):
        _pinned_connection(["93.184.216.34", "93.184.216.35"]).connect()

    assert dialed == ["93.184.216.34", "93.184.216.35"]


def test_pinned_connection_verifies_tls_against_hostname(monkeypatch) -> None:
    def dial(address, timeout):
        if address[0] == "93.184.216.34":
            raise ConnectionRefusedError("refused")
        return FakeSocket(address[0])

    monkeypatch.setattr(remote.socket, "create_connection", dial)
    connection = _pinned_connection(["93.184.216.34", "93.184.216.35"])

    connection.connect()

    assert connection._tls_context.wrapped == [("93.184.216.35", "example.com")]
    assert connection.sock.address == "93.184.216.35"
