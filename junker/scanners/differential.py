"""
JUNKER Differential Prober

CL.CL desync detection by differential response analysis.

TECHNIQUE:
Two Content-Length headers, each written with a different malformation,
are placed in the same request. If every parser in the chain treats both
mutations the same way, perturbing either one changes the response in the
same way. If a front-end honours one mutation while the back-end honours
the other, perturbing slot 1 and perturbing slot 2 produce responses that
differ from the baseline *and* from each other.

PROTOCOL (per round):
1. baseline  — slot 1 = 0, slot 2 = 0
2. variant-A — slot 1 = z, slot 2 = 0
   variant-A ≈ baseline → R1_equal_baseline, stop (variant-B never sent)
3. variant-B — slot 1 = 0, slot 2 = z
   variant-B ≈ baseline  → R2_equal_baseline
   variant-B ≈ variant-A → R1_equal_R2
   otherwise             → vulnerable

Requests within a test are strictly sequential. A transport error or a
deadline ends the test immediately with `error` / `timeout`.

CWE: CWE-444 (Inconsistent Interpretation of HTTP Requests)

REFERENCES:
- https://portswigger.net/research/http-desync-attacks
- https://www.rfc-editor.org/rfc/rfc9112#section-6.3
"""

import logging
from datetime import datetime, timezone
from typing import Callable, List, Mapping, Optional, Sequence

from junker.core import mutations
from junker.core.comparator import responses_equal
from junker.core.errors import TransportError, TransportTimeout
from junker.core.types import Outcome, SmuggleTest, TestStatus

logger = logging.getLogger(__name__)

BASELINE_VALUE = "0"
VARIANT_VALUE = "z"

# (slot 1 value, slot 2 value) for baseline, variant-A, variant-B
PROBE_VALUES = (
    (BASELINE_VALUE, BASELINE_VALUE),
    (VARIANT_VALUE, BASELINE_VALUE),
    (BASELINE_VALUE, VARIANT_VALUE),
)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/42.0.2311.135 Safari/537.36 Edge/12.246"
)


def with_default_headers(headers: Sequence[str]) -> List[str]:
    """Append User-Agent and Connection headers unless the caller set them"""
    result = list(headers)
    names = {h.split(":", 1)[0].strip().lower() for h in result}
    if "user-agent" not in names:
        result.append(f"User-Agent: {DEFAULT_USER_AGENT}")
    if "connection" not in names:
        result.append("Connection: Close")
    return result


def build_request(
    method: str,
    path: str,
    host: str,
    slot1: str,
    slot2: str,
    headers: Sequence[str] = (),
) -> bytes:
    """Assemble a raw request with the two mutated headers in fixed slots"""
    lines = [f"{method} {path} HTTP/1.1", f"Host: {host}", slot1, slot2]
    lines.extend(headers)
    # latin-1 keeps every control byte of the mutation as a single octet
    return ("\r\n".join(lines) + "\r\n\r\n").encode("latin-1")


class DifferentialProber:
    """
    Runs the baseline / variant-A / variant-B exchange for one test.

    The transport, catalog and comparator are injected so the protocol can
    be driven against scripted responses in tests.
    """

    def __init__(
        self,
        transport,
        catalog: Mapping[str, str],
        headers: Optional[Sequence[str]] = None,
        timeout: float = 5.0,
        rounds: int = 1,
        comparator: Callable[[bytes, bytes], bool] = responses_equal,
    ):
        if rounds < 1:
            raise ValueError("rounds must be >= 1")
        self.transport = transport
        self.catalog = catalog
        self.headers = list(headers) if headers is not None else with_default_headers([])
        self.timeout = timeout
        self.rounds = rounds
        self.comparator = comparator

    def build_requests(self, test: SmuggleTest) -> List[bytes]:
        """Render the three concrete requests for a test"""
        first = mutations.get(self.catalog, test.mutations[0])
        second = mutations.get(self.catalog, test.mutations[1])
        return [
            build_request(
                test.method,
                test.path,
                test.host_header,
                first.render(v1),
                second.render(v2),
                self.headers,
            )
            for v1, v2 in PROBE_VALUES
        ]

    async def probe(self, test: SmuggleTest) -> SmuggleTest:
        """Execute the differential protocol and assign the outcome"""
        test.status = TestStatus.RUNNING
        test.requests = self.build_requests(test)
        test.responses = []
        test.runs = 0
        test.started_at = datetime.now(timezone.utc)

        try:
            for _ in range(self.rounds):
                test.runs += 1
                test.outcome = await self._round(test)
                # Only a vulnerable verdict needs confirming by further rounds
                if test.outcome is not Outcome.VULNERABLE:
                    break
        except TransportTimeout as e:
            test.outcome = Outcome.TIMEOUT
            test.error = str(e)
        except TransportError as e:
            test.outcome = Outcome.ERROR
            test.error = str(e)
        finally:
            test.finished_at = datetime.now(timezone.utc)
            test.status = TestStatus.DONE

        logger.debug("%s in %.2fs (%d round(s))", test, test.duration, test.runs)
        return test

    async def _round(self, test: SmuggleTest) -> Outcome:
        # Responses of the latest round only
        test.responses = []
        baseline = await self._send(test, 0)
        variant_a = await self._send(test, 1)
        if self.comparator(baseline, variant_a):
            return Outcome.R1_EQUAL_BASELINE

        variant_b = await self._send(test, 2)
        if self.comparator(baseline, variant_b):
            return Outcome.R2_EQUAL_BASELINE
        if self.comparator(variant_a, variant_b):
            return Outcome.R1_EQUAL_R2
        return Outcome.VULNERABLE

    async def _send(self, test: SmuggleTest, index: int) -> bytes:
        response = await self.transport.send(
            test.ip,
            test.port,
            test.requests[index],
            test.url.scheme,
            self.timeout,
            server_name=test.host,
        )
        test.responses.append(response)
        return response
