"""
Differential Prober Test Suite

Drives the baseline / variant-A / variant-B protocol against a scripted
transport and checks classification, early exit and failure handling.
"""

import asyncio

import pytest

from junker.core import mutations
from junker.core.errors import TransportError, TransportTimeout
from junker.core.types import Outcome, TestStatus
from junker.scanners.differential import (
    DEFAULT_USER_AGENT,
    DifferentialProber,
    build_request,
    with_default_headers,
)

from conftest import BAD_REQUEST, NOT_IMPLEMENTED, OK, FakeTransport


def run_probe(prober, test):
    return asyncio.run(prober.probe(test))


# =============================================================================
# REQUEST CONSTRUCTION
# =============================================================================

class TestRequestBuilding:
    """Raw request templates"""

    def test_layout(self):
        raw = build_request("POST", "/x", "example.com", "A: 0", "B: 0", ["Connection: Close"])
        assert raw == (
            b"POST /x HTTP/1.1\r\n"
            b"Host: example.com\r\n"
            b"A: 0\r\n"
            b"B: 0\r\n"
            b"Connection: Close\r\n"
            b"\r\n"
        )

    def test_control_bytes_survive(self):
        raw = build_request("POST", "/", "h", "Content-Length\x00: 0", "Content-Length\x0b: 0")
        assert b"Content-Length\x00: 0\r\n" in raw
        assert b"Content-Length\x0b: 0\r\n" in raw

    def test_three_requests_vary_one_slot_each(self, two_catalog, make_test):
        prober = DifferentialProber(FakeTransport(), two_catalog, headers=[])
        baseline, variant_a, variant_b = prober.build_requests(make_test())

        assert b"Content-Length: 0\r\nContent-Length : 0\r\n" in baseline
        assert b"Content-Length: z\r\nContent-Length : 0\r\n" in variant_a
        assert b"Content-Length: 0\r\nContent-Length : z\r\n" in variant_b

    def test_host_and_path_from_url(self, two_catalog, make_test):
        prober = DifferentialProber(FakeTransport(), two_catalog, headers=[])
        test = make_test(url="https://example.com:8443/api/v1?q=1")
        baseline = prober.build_requests(test)[0]
        assert baseline.startswith(b"POST /api/v1?q=1 HTTP/1.1\r\nHost: example.com:8443\r\n")

    def test_ipv6_host_header_bracketed(self, two_catalog, make_test):
        transport = FakeTransport([OK, OK])
        test = run_probe(DifferentialProber(transport, two_catalog),
                         make_test(url="https://[2001:db8::1]:8443/", ip="2001:db8::1"))
        assert b"\r\nHost: [2001:db8::1]:8443\r\n" in test.requests[0]
        assert transport.calls[0]["server_name"] == "2001:db8::1"


class TestDefaultHeaders:
    """User-Agent / Connection defaults"""

    def test_defaults_added(self):
        headers = with_default_headers([])
        assert f"User-Agent: {DEFAULT_USER_AGENT}" in headers
        assert "Connection: Close" in headers

    def test_user_values_win(self):
        headers = with_default_headers(["user-agent: scanner", "CONNECTION: keep-alive"])
        assert headers == ["user-agent: scanner", "CONNECTION: keep-alive"]

    def test_other_headers_kept(self):
        headers = with_default_headers(["X-Test: 1"])
        assert headers[0] == "X-Test: 1"
        assert len(headers) == 3


# =============================================================================
# CLASSIFICATION
# =============================================================================

class TestClassification:
    """Outcome assignment and early exit"""

    def test_r1_equal_baseline_stops_after_two(self, two_catalog, make_test):
        transport = FakeTransport([OK, OK])
        test = run_probe(DifferentialProber(transport, two_catalog), make_test())

        assert test.outcome is Outcome.R1_EQUAL_BASELINE
        assert len(transport.calls) == 2
        assert test.responses == [OK, OK]
        assert len(test.requests) == 3

    def test_r2_equal_baseline(self, two_catalog, make_test):
        transport = FakeTransport([OK, BAD_REQUEST, OK])
        test = run_probe(DifferentialProber(transport, two_catalog), make_test())
        assert test.outcome is Outcome.R2_EQUAL_BASELINE
        assert len(transport.calls) == 3

    def test_r1_equal_r2(self, two_catalog, make_test):
        transport = FakeTransport([OK, BAD_REQUEST, BAD_REQUEST])
        test = run_probe(DifferentialProber(transport, two_catalog), make_test())
        assert test.outcome is Outcome.R1_EQUAL_R2

    def test_vulnerable(self, two_catalog, make_test):
        transport = FakeTransport([OK, BAD_REQUEST, NOT_IMPLEMENTED])
        test = run_probe(DifferentialProber(transport, two_catalog), make_test())
        assert test.outcome is Outcome.VULNERABLE
        assert test.responses == [OK, BAD_REQUEST, NOT_IMPLEMENTED]

    def test_vulnerable_by_length_band(self, two_catalog, make_test):
        status = b"HTTP/1.1 200 OK\r\n\r\n"
        transport = FakeTransport([status + b"a" * 100, status + b"b" * 300, status + b"c" * 900])
        test = run_probe(DifferentialProber(transport, two_catalog), make_test())
        assert test.outcome is Outcome.VULNERABLE

    def test_requests_sent_in_order(self, two_catalog, make_test):
        transport = FakeTransport([OK, BAD_REQUEST, NOT_IMPLEMENTED])
        test = run_probe(DifferentialProber(transport, two_catalog), make_test())
        assert [c["request"] for c in transport.calls] == test.requests

    def test_transport_arguments(self, two_catalog, make_test):
        transport = FakeTransport([OK, OK])
        prober = DifferentialProber(transport, two_catalog, timeout=1.5)
        run_probe(prober, make_test(url="https://example.com/", ip="10.0.0.7"))
        call = transport.calls[0]
        assert call["ip"] == "10.0.0.7"
        assert call["port"] == 443
        assert call["scheme"] == "https"
        assert call["timeout"] == 1.5
        assert call["server_name"] == "example.com"

    def test_custom_comparator(self, two_catalog, make_test):
        transport = FakeTransport([OK, BAD_REQUEST])
        prober = DifferentialProber(transport, two_catalog, comparator=lambda a, b: True)
        assert run_probe(prober, make_test()).outcome is Outcome.R1_EQUAL_BASELINE

    def test_lifecycle_fields(self, two_catalog, make_test):
        test = run_probe(DifferentialProber(FakeTransport([OK, OK]), two_catalog), make_test())
        assert test.status is TestStatus.DONE
        assert test.runs == 1
        assert test.started_at is not None
        assert test.finished_at >= test.started_at
        assert test.error is None


# =============================================================================
# FAILURES
# =============================================================================

class TestFailures:
    """Transport errors and deadlines end the test immediately"""

    def test_error_on_first_request(self, two_catalog, make_test):
        transport = FakeTransport([TransportError("connection refused")])
        test = run_probe(DifferentialProber(transport, two_catalog), make_test())
        assert test.outcome is Outcome.ERROR
        assert "refused" in test.error
        assert len(transport.calls) == 1
        assert test.finished_at is not None

    def test_timeout_on_variant_b(self, two_catalog, make_test):
        transport = FakeTransport([OK, BAD_REQUEST, TransportTimeout("slow")])
        test = run_probe(DifferentialProber(transport, two_catalog), make_test())
        assert test.outcome is Outcome.TIMEOUT
        assert test.error == "slow"
        assert test.responses == [OK, BAD_REQUEST]
        assert test.status is TestStatus.DONE

    def test_unexpected_exception_propagates(self, two_catalog, make_test):
        transport = FakeTransport([RuntimeError("bug")])
        test = make_test()
        with pytest.raises(RuntimeError):
            run_probe(DifferentialProber(transport, two_catalog), test)
        assert test.finished_at is not None


# =============================================================================
# ROUNDS
# =============================================================================

class TestRounds:
    """Repeated rounds confirm a vulnerable verdict"""

    VULNERABLE_ROUND = [OK, BAD_REQUEST, NOT_IMPLEMENTED]

    def test_rounds_must_be_positive(self, two_catalog):
        with pytest.raises(ValueError):
            DifferentialProber(FakeTransport(), two_catalog, rounds=0)

    def test_consistent_vulnerable_over_rounds(self, two_catalog, make_test):
        transport = FakeTransport(self.VULNERABLE_ROUND * 3)
        test = run_probe(DifferentialProber(transport, two_catalog, rounds=3), make_test())
        assert test.outcome is Outcome.VULNERABLE
        assert test.runs == 3
        assert len(transport.calls) == 9

    def test_inconsistent_round_downgrades(self, two_catalog, make_test):
        transport = FakeTransport(self.VULNERABLE_ROUND + [OK, OK])
        test = run_probe(DifferentialProber(transport, two_catalog, rounds=3), make_test())
        assert test.outcome is Outcome.R1_EQUAL_BASELINE
        assert test.runs == 2
        assert test.responses == [OK, OK]

    def test_non_vulnerable_stops_after_first_round(self, two_catalog, make_test):
        transport = FakeTransport([OK, OK])
        test = run_probe(DifferentialProber(transport, two_catalog, rounds=5), make_test())
        assert test.runs == 1
        assert len(transport.calls) == 2


def test_default_catalog_pair_renders(make_test):
    """Every default mutation renders into a request"""
    catalog = mutations.load()
    prober = DifferentialProber(FakeTransport(), catalog)
    for name in catalog:
        if name == "id":
            continue
        requests = prober.build_requests(make_test(mutations=("id", name)))
        assert len(requests) == 3
        assert len(set(requests)) == 3
